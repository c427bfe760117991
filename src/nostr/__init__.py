"""Nostr-style relay layer — identity, signed events, proof-of-work, relay connections.

- Keys: Ed25519 identity used to sign every outbound event
- Event / EventDraft: signed envelope and its unsigned draft
- RelayConnection: one relay, state machine, publish/subscribe, reconnection
- RelayPool: fan-out over several relays, PoW + signing on publish
"""

from .event import Event, EventDraft, compute_event_id, count_leading_zero_bits
from .filter import Filter
from .keys import Keys
from .messages import RelayMessage, RelayMessageType, parse_relay_message
from .options import RelayOptions
from .pool import RelayPool
from .pow import MiningCancelled, mine, mine_async
from .relay import Connector, RelayConnection, RelayStatus, websocket_connector
from .subscription import Subscription

__all__ = [
    # Identity
    "Keys",
    # Events
    "Event",
    "EventDraft",
    "compute_event_id",
    "count_leading_zero_bits",
    "Filter",
    # Proof of work
    "mine",
    "mine_async",
    "MiningCancelled",
    # Relay protocol
    "RelayMessage",
    "RelayMessageType",
    "parse_relay_message",
    # Connections
    "RelayOptions",
    "RelayStatus",
    "RelayConnection",
    "RelayPool",
    "Subscription",
    "Connector",
    "websocket_connector",
]
