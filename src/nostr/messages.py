"""
Messages — сообщения протокола relay

Клиент → relay: ["EVENT", event], ["REQ", sub_id, filter...], ["CLOSE", sub_id]
Relay → клиент: ["EVENT", sub_id, event], ["OK", event_id, accepted, message],
                ["EOSE", sub_id], ["CLOSED", sub_id, message], ["NOTICE", message]
"""

import json
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence, Union

from .event import Event
from .filter import Filter


class RelayMessageType(str, Enum):
    """Тип сообщения от relay"""

    EVENT = "EVENT"
    OK = "OK"
    EOSE = "EOSE"
    CLOSED = "CLOSED"
    NOTICE = "NOTICE"


@dataclass(frozen=True)
class RelayMessage:
    """Разобранное сообщение от relay"""

    type: RelayMessageType
    subscription_id: Optional[str] = None
    event: Optional[Event] = None
    event_id: Optional[str] = None
    accepted: Optional[bool] = None
    message: str = ""


# =============================================================================
# CLIENT → RELAY
# =============================================================================


def _dumps(payload: list) -> str:
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False)


def encode_event(event: Event) -> str:
    return _dumps(["EVENT", event.to_wire()])


def encode_req(subscription_id: str, filters: Sequence[Filter]) -> str:
    return _dumps(["REQ", subscription_id, *[f.to_wire() for f in filters]])


def encode_close(subscription_id: str) -> str:
    return _dumps(["CLOSE", subscription_id])


# =============================================================================
# RELAY → CLIENT
# =============================================================================


def parse_relay_message(raw: Union[str, bytes]) -> RelayMessage:
    """
    Разбор сообщения relay.

    Raises:
        ValueError: Если сообщение не соответствует протоколу
        EventVerificationError: Если EVENT несёт некорректный конверт
    """
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ValueError(f"relay message is not JSON: {e}") from e
    if not isinstance(data, list) or not data or not isinstance(data[0], str):
        raise ValueError("relay message must be a non-empty JSON array")

    try:
        kind = RelayMessageType(data[0])
    except ValueError:
        raise ValueError(f"unknown relay message type {data[0]!r}") from None

    if kind == RelayMessageType.EVENT:
        if len(data) != 3 or not isinstance(data[1], str):
            raise ValueError("EVENT message must be [\"EVENT\", sub_id, event]")
        return RelayMessage(type=kind, subscription_id=data[1], event=Event.from_wire(data[2]))

    if kind == RelayMessageType.OK:
        if len(data) < 3 or not isinstance(data[1], str) or not isinstance(data[2], bool):
            raise ValueError("OK message must be [\"OK\", event_id, accepted, message]")
        message = data[3] if len(data) > 3 and isinstance(data[3], str) else ""
        return RelayMessage(type=kind, event_id=data[1], accepted=data[2], message=message)

    if kind in (RelayMessageType.EOSE, RelayMessageType.CLOSED):
        if len(data) < 2 or not isinstance(data[1], str):
            raise ValueError(f"{kind.value} message must carry a subscription id")
        message = data[2] if len(data) > 2 and isinstance(data[2], str) else ""
        return RelayMessage(type=kind, subscription_id=data[1], message=message)

    # NOTICE
    message = data[1] if len(data) > 1 and isinstance(data[1], str) else ""
    return RelayMessage(type=kind, message=message)
