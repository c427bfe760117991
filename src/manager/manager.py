"""Manager — фасад n3xB.

Владеет идентичностью (Keys) и двумя независимыми пулами relay:
- путь публикации: ордера maker, строгое ожидание OK от relay
- путь подписки: живые потоки событий

Пулы имеют собственные блокировки, поэтому подписка не ждёт публикаций.
"""

import logging
from typing import Optional

from src.core.engines import EngineRegistry, default_registry
from src.core.errors import RelayConnectionError
from src.core.domain import MakerOrder
from src.nostr import Connector, Filter, Keys, RelayPool, Subscription
from src.order import MakerOrderBuilder, OrderPublisher, OrderStream, maker_order_filter

from .config import ManagerConfig

logger = logging.getLogger(__name__)


class Manager:
    """Идентичность + пути публикации и подписки"""

    def __init__(
        self,
        keys: Keys,
        publish_pool: RelayPool,
        subscribe_pool: RelayPool,
        config: Optional[ManagerConfig] = None,
        registry: Optional[EngineRegistry] = None,
    ):
        """
        Args:
            keys: идентичность участника
            publish_pool: пул для публикации ордеров
            subscribe_pool: пул для подписок
            config: конфигурация, из которой собраны пулы (для справки)
            registry: реестр движков (по умолчанию глобальный)
        """
        self._keys = keys
        self._publish_pool = publish_pool
        self._subscribe_pool = subscribe_pool
        self._config = config
        self._registry = registry or default_registry()
        self._publisher = OrderPublisher(publish_pool, self._registry)

    @classmethod
    async def create(
        cls,
        keys: Optional[Keys] = None,
        config: Optional[ManagerConfig] = None,
        connector: Optional[Connector] = None,
        registry: Optional[EngineRegistry] = None,
    ) -> "Manager":
        """
        Создание Manager и подключение обоих пулов.

        Без keys генерируется новая пара ключей. При wait_for_connection
        недоступный relay поднимает RelayConnectionError; иначе подключение
        идёт в фоне.

        Конфигурация по умолчанию задаёт минимальную сложность PoW
        DEFAULT_POW_DIFFICULTY (8 бит): ордер с pow_difficulty=0 всё равно
        майнится до этого порога. Публикация без перебора nonce требует
        ManagerConfig(pow_difficulty=0).

        Raises:
            RelayConnectionError: relay недоступен при wait_for_connection
        """
        keys = keys or Keys.generate()
        config = config or ManagerConfig()
        options = config.to_relay_options()

        manager = cls(
            keys,
            RelayPool(keys, config.relays, options, connector),
            RelayPool(keys, config.relays, options, connector),
            config=config,
            registry=registry,
        )
        try:
            await manager._publish_pool.connect()
            await manager._subscribe_pool.connect()
        except RelayConnectionError:
            await manager.close()
            raise

        logger.info("manager %s started with relays %s", keys.public_key, config.relays)
        return manager

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def keys(self) -> Keys:
        return self._keys

    @property
    def public_key(self) -> str:
        return self._keys.public_key

    @property
    def config(self) -> Optional[ManagerConfig]:
        return self._config

    @property
    def publish_pool(self) -> RelayPool:
        return self._publish_pool

    @property
    def subscribe_pool(self) -> RelayPool:
        return self._subscribe_pool

    # =========================================================================
    # ORDER MANAGEMENT
    # =========================================================================

    def build_maker_order(self) -> MakerOrderBuilder:
        """Новый builder, привязанный к пути публикации"""
        return MakerOrderBuilder(self._publisher)

    async def publish_maker_order(self, order: MakerOrder, timeout: Optional[float] = None) -> str:
        """
        Публикация готового ордера.

        Returns:
            id события
        """
        return await self._publisher.publish(order, timeout=timeout)

    async def subscribe_maker_orders(
        self,
        engine_name: Optional[str] = None,
        since: Optional[int] = None,
        registry: Optional[EngineRegistry] = None,
    ) -> OrderStream:
        """Поток ордеров maker по пути подписки"""
        sub = await self._subscribe_pool.subscribe(maker_order_filter(engine_name=engine_name, since=since))
        return OrderStream(sub, registry or self._registry)

    async def subscribe(self, *filters: Filter) -> Subscription:
        """Подписка на произвольные события (например, ответы taker)"""
        return await self._subscribe_pool.subscribe(*filters)

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    async def close(self) -> None:
        await self._publish_pool.disconnect()
        await self._subscribe_pool.disconnect()

    async def __aenter__(self) -> "Manager":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
