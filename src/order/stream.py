"""OrderStream — поток входящих ордеров maker поверх Subscription.

События, которые не декодируются (неизвестный движок, нарушение контракта),
отбрасываются с предупреждением в лог и не повторяются.
"""

import logging
from typing import Optional

from src.core.domain import ReceivedOrder
from src.core.engines import EngineRegistry, default_registry
from src.core.errors import OrderDecodeError, UnknownEngineError
from src.nostr import Subscription

from .codec import event_to_received_order

logger = logging.getLogger(__name__)


class OrderStream:
    """Асинхронный итератор ReceivedOrder"""

    def __init__(self, subscription: Subscription, registry: Optional[EngineRegistry] = None):
        self._subscription = subscription
        self._registry = registry or default_registry()
        self.dropped = 0

    @property
    def subscription(self) -> Subscription:
        return self._subscription

    async def wait_for_eose(self, timeout: Optional[float] = None) -> None:
        await self._subscription.wait_for_eose(timeout)

    async def close(self) -> None:
        await self._subscription.close()

    def __aiter__(self) -> "OrderStream":
        return self

    async def __anext__(self) -> ReceivedOrder:
        async for event in self._subscription:
            try:
                return event_to_received_order(event, self._registry)
            except UnknownEngineError as e:
                logger.warning("dropping order event %s: unknown engine %r", event.id, e.engine_name)
            except OrderDecodeError as e:
                logger.warning("dropping order event %s: %s", event.id, e)
            self.dropped += 1
        raise StopAsyncIteration

    async def __aenter__(self) -> "OrderStream":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
