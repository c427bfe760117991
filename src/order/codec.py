"""
Order Codec — MakerOrder ↔ событие relay

Ордер публикуется событием kind=30078 (данные приложения). content — компактный
JSON с полями ордера; EngineDetails сериализуется через реестр движков. Теги
позволяют relay фильтровать ордера без разбора content:

- ["d", trade_id]
- ["m", maker_obligation.kind]
- ["t", taker_obligation.kind]
- ["n", engine_name]
"""

import json
from typing import Any, Dict, List, Optional

from jsonschema import ValidationError as SchemaValidationError

from src.core.contracts import validate_maker_order_content
from src.core.domain import MakerOrder, ReceivedOrder
from src.core.engines import EngineRegistry, default_registry
from src.core.errors import OrderDecodeError
from src.nostr import Event, EventDraft, Filter


MAKER_ORDER_KIND = 30078

TAG_TRADE_ID = "d"
TAG_MAKER_KIND = "m"
TAG_TAKER_KIND = "t"
TAG_ENGINE = "n"


# =============================================================================
# ENCODE
# =============================================================================


def order_to_payload(order: MakerOrder, registry: Optional[EngineRegistry] = None) -> Dict[str, Any]:
    registry = registry or default_registry()
    return {
        "trade_id": order.trade_id,
        "maker_obligation": order.maker_obligation.model_dump(mode="json"),
        "taker_obligation": order.taker_obligation.model_dump(mode="json"),
        "trade_details": order.trade_details.model_dump(mode="json"),
        "engine_details": registry.encode(order.engine_details),
        "pow_difficulty": order.pow_difficulty,
    }


def encode_order_content(order: MakerOrder, registry: Optional[EngineRegistry] = None) -> str:
    return json.dumps(
        order_to_payload(order, registry),
        separators=(",", ":"),
        sort_keys=True,
        ensure_ascii=False,
    )


def order_tags(order: MakerOrder) -> List[List[str]]:
    return [
        [TAG_TRADE_ID, order.trade_id],
        [TAG_MAKER_KIND, order.maker_obligation.kind],
        [TAG_TAKER_KIND, order.taker_obligation.kind],
        [TAG_ENGINE, order.engine_details.engine_name],
    ]


def order_to_draft(
    order: MakerOrder,
    registry: Optional[EngineRegistry] = None,
    created_at: Optional[int] = None,
) -> EventDraft:
    """
    Неподписанное событие для ордера.

    Raises:
        UnknownEngineError: Движок ордера не зарегистрирован
    """
    fields: Dict[str, Any] = {
        "kind": MAKER_ORDER_KIND,
        "tags": order_tags(order),
        "content": encode_order_content(order, registry),
    }
    if created_at is not None:
        fields["created_at"] = created_at
    return EventDraft(**fields)


# =============================================================================
# DECODE
# =============================================================================


def decode_order_content(content: str, registry: Optional[EngineRegistry] = None) -> MakerOrder:
    """
    Разбор content события в MakerOrder.

    Raises:
        OrderDecodeError: content не JSON, нарушает контракт maker_order или поля невалидны
        UnknownEngineError: тег движка не зарегистрирован
    """
    registry = registry or default_registry()
    try:
        payload = json.loads(content)
    except json.JSONDecodeError as e:
        raise OrderDecodeError(f"order content is not JSON: {e}") from e

    try:
        validate_maker_order_content(payload)
    except SchemaValidationError as e:
        raise OrderDecodeError(f"order content violates contract: {e.message}") from e

    engine_details = registry.decode(payload["engine_details"])
    try:
        return MakerOrder(
            trade_id=payload["trade_id"],
            maker_obligation=payload["maker_obligation"],
            taker_obligation=payload["taker_obligation"],
            trade_details=payload["trade_details"],
            engine_details=engine_details,
            pow_difficulty=payload["pow_difficulty"],
        )
    except ValueError as e:
        raise OrderDecodeError(f"invalid order fields: {e}") from e


def event_to_received_order(event: Event, registry: Optional[EngineRegistry] = None) -> ReceivedOrder:
    """
    Разбор события с ордером maker.

    Raises:
        OrderDecodeError: событие не является корректным ордером
        UnknownEngineError: тег движка не зарегистрирован
    """
    if event.kind != MAKER_ORDER_KIND:
        raise OrderDecodeError(f"event {event.id} has kind {event.kind}, expected {MAKER_ORDER_KIND}")

    order = decode_order_content(event.content, registry)

    tagged_trade_id = event.tag_value(TAG_TRADE_ID)
    if tagged_trade_id != order.trade_id:
        raise OrderDecodeError(
            f"event {event.id} tag d={tagged_trade_id!r} does not match trade_id {order.trade_id!r}"
        )
    if event.difficulty < order.pow_difficulty:
        raise OrderDecodeError(
            f"event {event.id} difficulty {event.difficulty} below declared {order.pow_difficulty}"
        )

    return ReceivedOrder(
        event_id=event.id,
        maker_pubkey=event.pubkey,
        created_at=event.created_at,
        order=order,
    )


def maker_order_filter(
    engine_name: Optional[str] = None,
    maker_kind: Optional[str] = None,
    taker_kind: Optional[str] = None,
    trade_id: Optional[str] = None,
    authors: Optional[List[str]] = None,
    since: Optional[int] = None,
    limit: Optional[int] = None,
) -> Filter:
    """Фильтр подписки на ордера maker"""
    tags: Dict[str, List[str]] = {}
    for name, value in (
        (TAG_ENGINE, engine_name),
        (TAG_MAKER_KIND, maker_kind),
        (TAG_TAKER_KIND, taker_kind),
        (TAG_TRADE_ID, trade_id),
    ):
        if value is not None:
            tags[name] = [value]
    return Filter(kinds=[MAKER_ORDER_KIND], authors=authors, tags=tags, since=since, limit=limit)
