"""
Domain models and value objects.

Contains the order model: obligations, trade details, engine envelope, MakerOrder.
"""

from src.core.domain.engine_details import EngineDetails, EngineSpecifics
from src.core.domain.maker_order import MakerOrder, ReceivedOrder
from src.core.domain.obligation import MakerObligation, TakerObligation
from src.core.domain.trade_details import TradeDetails, TradeParameter

__all__ = [
    # Obligations
    "MakerObligation",
    "TakerObligation",
    # Trade details
    "TradeDetails",
    "TradeParameter",
    # Engine envelope
    "EngineSpecifics",
    "EngineDetails",
    # Orders
    "MakerOrder",
    "ReceivedOrder",
]
