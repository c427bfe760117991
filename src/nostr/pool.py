"""RelayPool — пул соединений с несколькими relay и ключами подписи.

Пул — это «соединение» с точки зрения Manager: он подписывает события своими
ключами, добывает PoW до требуемой сложности и рассылает событие на все relay.
Публикации в одном пуле выполняются строго по одной (asyncio.Lock).
"""

import asyncio
import logging
import uuid
from typing import Dict, List, Optional, Sequence

from src.core.errors import (
    NotConnectedError,
    PublishError,
    PublishRejectedError,
    PublishTimeoutError,
    RelayConnectionError,
)

from .event import Event, EventDraft
from .filter import Filter
from .keys import Keys
from .options import RelayOptions
from .pow import mine_async
from .relay import Connector, RelayConnection, RelayStatus
from .subscription import Subscription

logger = logging.getLogger(__name__)


class RelayPool:
    """Набор RelayConnection с общими опциями и ключами"""

    def __init__(
        self,
        keys: Keys,
        relays: Sequence[str],
        options: Optional[RelayOptions] = None,
        connector: Optional[Connector] = None,
    ):
        if not relays:
            raise ValueError("relay pool needs at least one relay url")
        self._keys = keys
        self.options = options or RelayOptions()
        self._relays: Dict[str, RelayConnection] = {
            url: RelayConnection(url, self.options, connector) for url in dict.fromkeys(relays)
        }
        self._lock = asyncio.Lock()
        self._subscriptions: Dict[str, Subscription] = {}

    def __repr__(self) -> str:
        return f"RelayPool(public_key={self._keys.public_key!r}, relays={list(self._relays)!r})"

    @property
    def public_key(self) -> str:
        return self._keys.public_key

    @property
    def relays(self) -> List[RelayConnection]:
        return list(self._relays.values())

    def relay(self, url: str) -> RelayConnection:
        return self._relays[url]

    @property
    def status(self) -> RelayStatus:
        """CONNECTED, если подключён хотя бы один relay"""
        statuses = {r.status for r in self._relays.values()}
        for status in (RelayStatus.CONNECTED, RelayStatus.CONNECTING):
            if status in statuses:
                return status
        return RelayStatus.DISCONNECTED

    # =========================================================================
    # CONNECTION
    # =========================================================================

    async def connect(self, timeout: Optional[float] = None) -> None:
        """
        Подключение ко всем relay.

        При wait_for_connection ждёт все рукопожатия и поднимает первую ошибку;
        иначе подключение идёт в фоне.

        Raises:
            RelayConnectionError: relay недоступен (только при wait_for_connection)
        """
        if not self.options.wait_for_connection:
            for relay in self._relays.values():
                relay.start()
            return

        results = await asyncio.gather(
            *(relay.connect(timeout) for relay in self._relays.values()),
            return_exceptions=True,
        )
        errors = [r for r in results if isinstance(r, BaseException)]
        for error in errors:
            if not isinstance(error, RelayConnectionError):
                raise error
        if errors:
            raise errors[0]

    async def disconnect(self) -> None:
        for sub in list(self._subscriptions.values()):
            sub.detach_all()
        self._subscriptions.clear()
        await asyncio.gather(*(relay.disconnect() for relay in self._relays.values()))

    # =========================================================================
    # PUBLISH
    # =========================================================================

    async def publish(
        self,
        draft: EventDraft,
        difficulty: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> str:
        """
        PoW + подпись + рассылка.

        Эффективная сложность = max(difficulty, options.pow_difficulty); при 0
        поиск PoW не выполняется.

        Returns:
            id события, принятого хотя бы одним relay
        """
        target = max(difficulty or 0, self.options.pow_difficulty)
        async with self._lock:
            if target > 0:
                draft = await mine_async(draft, self._keys.public_key, target)
            event = draft.sign(self._keys)
            return await self._broadcast(event, timeout)

    async def publish_event(self, event: Event, timeout: Optional[float] = None) -> str:
        """
        Рассылка уже подписанного события.

        Raises:
            PublishRejectedError: сложность id ниже минимальной (до сетевого I/O)
            EventVerificationError: id или подпись не сходятся
        """
        floor = self.options.pow_difficulty
        if event.difficulty < floor:
            raise PublishRejectedError(
                f"pow: difficulty {event.difficulty} is below required {floor}", event.id
            )
        event.verify()
        async with self._lock:
            return await self._broadcast(event, timeout)

    async def _broadcast(self, event: Event, timeout: Optional[float]) -> str:
        results = await asyncio.gather(
            *(relay.publish(event, timeout) for relay in self._relays.values()),
            return_exceptions=True,
        )
        accepted = [r for r in results if isinstance(r, str)]
        if accepted:
            logger.info(
                "event %s published to %d/%d relays", event.id, len(accepted), len(results)
            )
            return event.id

        errors = [r for r in results if isinstance(r, BaseException)]
        for error in errors:
            if not isinstance(error, PublishError):
                raise error
        for kind in (PublishRejectedError, PublishTimeoutError, NotConnectedError):
            for error in errors:
                if isinstance(error, kind):
                    raise error
        raise errors[0]

    # =========================================================================
    # SUBSCRIBE
    # =========================================================================

    async def subscribe(self, *filters: Filter, subscription_id: Optional[str] = None) -> Subscription:
        """Подписка на всех relay пула; события сливаются без дубликатов"""
        sub = Subscription(
            subscription_id or uuid.uuid4().hex, filters, on_close=self._close_subscription
        )
        self._subscriptions[sub.id] = sub
        for relay in self._relays.values():
            await relay.add_subscription(sub)
        return sub

    async def _close_subscription(self, subscription_id: str) -> None:
        self._subscriptions.pop(subscription_id, None)
        for relay in self._relays.values():
            await relay.remove_subscription(subscription_id)
