"""OrderPublisher — публикация MakerOrder через пул relay.

Следит за уникальностью trade_id в пределах сессии: повторная публикация
того же trade_id отклоняется до сетевого I/O.
"""

import logging
from typing import Dict, Optional

from src.core.domain import MakerOrder
from src.core.engines import EngineRegistry, default_registry
from src.core.errors import DuplicateTradeIdError
from src.nostr import RelayPool

from .codec import order_to_draft

logger = logging.getLogger(__name__)


class OrderPublisher:
    """Путь публикации ордеров maker"""

    def __init__(self, pool: RelayPool, registry: Optional[EngineRegistry] = None):
        self._pool = pool
        self._registry = registry or default_registry()
        self._reserved: set[str] = set()
        self._published: Dict[str, str] = {}

    @property
    def pool(self) -> RelayPool:
        return self._pool

    @property
    def registry(self) -> EngineRegistry:
        return self._registry

    @property
    def published(self) -> Dict[str, str]:
        """trade_id → id события"""
        return dict(self._published)

    async def publish(self, order: MakerOrder, timeout: Optional[float] = None) -> str:
        """
        Публикация ордера.

        Returns:
            id события

        Raises:
            DuplicateTradeIdError: trade_id уже опубликован или публикуется
            UnknownEngineError: движок ордера не зарегистрирован
            PublishError: ошибки relay (NotConnected / Rejected / Timeout)
        """
        if order.trade_id in self._reserved:
            raise DuplicateTradeIdError(order.trade_id)

        draft = order_to_draft(order, self._registry)
        self._reserved.add(order.trade_id)
        try:
            event_id = await self._pool.publish(
                draft, difficulty=order.pow_difficulty, timeout=timeout
            )
        except BaseException:
            self._reserved.discard(order.trade_id)
            raise

        self._published[order.trade_id] = event_id
        logger.info("maker order %s published as event %s", order.trade_id, event_id)
        return event_id
