"""Order building, wire codec and publishing.

- MakerOrderBuilder: fluent setters + one-shot validation
- codec: MakerOrder ↔ relay event (kind 30078)
- OrderPublisher: publish path with per-session trade_id uniqueness
- OrderStream: decoded inbound orders, undecodable events dropped
"""

from .builder import MakerOrderBuilder
from .codec import (
    MAKER_ORDER_KIND,
    decode_order_content,
    encode_order_content,
    event_to_received_order,
    maker_order_filter,
    order_to_draft,
)
from .publisher import OrderPublisher
from .stream import OrderStream

__all__ = [
    "MakerOrderBuilder",
    "OrderPublisher",
    "OrderStream",
    "MAKER_ORDER_KIND",
    "encode_order_content",
    "decode_order_content",
    "order_to_draft",
    "event_to_received_order",
    "maker_order_filter",
]
