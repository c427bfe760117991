"""
Subscription — живой поток событий по фильтрам

Один объект подписки может быть привязан к нескольким relay (пул): события
сливаются в одну очередь, дубликаты по id подавляются (помнятся последние
max_seen id). После переподключения
relay повторно отправляет REQ, поэтому итерация продолжается прозрачно.
"""

import asyncio
import logging
from collections import deque
from typing import Awaitable, Callable, Optional, Sequence

from .event import Event
from .filter import Filter

logger = logging.getLogger(__name__)

_END = object()

# Сколько последних id помнит подписка для подавления дубликатов
DEFAULT_MAX_SEEN = 10_000


class Subscription:
    """Асинхронный итератор событий подписки"""

    def __init__(
        self,
        subscription_id: str,
        filters: Sequence[Filter],
        on_close: Optional[Callable[[str], Awaitable[None]]] = None,
        max_seen: int = DEFAULT_MAX_SEEN,
    ):
        if not filters:
            raise ValueError("subscription needs at least one filter")
        if max_seen <= 0:
            raise ValueError(f"max_seen must be > 0, got {max_seen}")
        self.id = subscription_id
        self.filters = tuple(filters)
        self._on_close = on_close
        self._queue: asyncio.Queue = asyncio.Queue()
        self._seen: set[str] = set()
        self._seen_order: deque[str] = deque()
        self._max_seen = max_seen
        self._relays: set[str] = set()
        self._eose: set[str] = set()
        self._eose_event = asyncio.Event()
        self._closed = False
        self._finished = False

    @property
    def closed(self) -> bool:
        return self._closed or self._finished

    @property
    def relays(self) -> frozenset[str]:
        return frozenset(self._relays)

    # =========================================================================
    # RELAY SIDE
    # =========================================================================

    def attach(self, url: str) -> None:
        self._relays.add(url)
        self._eose_event.clear()

    def detach(self, url: str, reason: str = "") -> None:
        """Relay больше не обслуживает подписку; без relay поток завершается"""
        self._relays.discard(url)
        self._eose.discard(url)
        logger.debug("subscription %s detached from %s: %s", self.id, url, reason)
        if not self._relays:
            self._finish()
        else:
            self._check_eose()

    def detach_all(self) -> None:
        self._relays.clear()
        self._eose.clear()
        self._finish()

    def deliver(self, url: str, event: Event) -> bool:
        """Постановка события в очередь; False для дубликата"""
        if self.closed or event.id in self._seen:
            return False
        self._remember(event.id)
        self._queue.put_nowait(event)
        return True

    def _remember(self, event_id: str) -> None:
        self._seen.add(event_id)
        self._seen_order.append(event_id)
        if len(self._seen_order) > self._max_seen:
            self._seen.discard(self._seen_order.popleft())

    def mark_eose(self, url: str) -> None:
        self._eose.add(url)
        self._check_eose()

    def _check_eose(self) -> None:
        if self._relays and self._relays <= self._eose:
            self._eose_event.set()

    def _finish(self) -> None:
        if self._finished:
            return
        self._finished = True
        self._eose_event.set()
        self._queue.put_nowait(_END)

    # =========================================================================
    # CONSUMER SIDE
    # =========================================================================

    async def wait_for_eose(self, timeout: Optional[float] = None) -> None:
        """
        Ожидание конца сохранённых событий на всех relay подписки.

        Raises:
            TimeoutError: Если не все relay прислали EOSE за timeout
        """
        await asyncio.wait_for(self._eose_event.wait(), timeout)

    async def close(self) -> None:
        """Отмена подписки: CLOSE на relay и завершение итерации"""
        if self._closed:
            return
        self._closed = True
        try:
            if self._on_close is not None:
                await self._on_close(self.id)
        finally:
            self._finish()

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> Event:
        if self._finished and self._queue.empty():
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _END:
            raise StopAsyncIteration
        return item

    async def __aenter__(self) -> "Subscription":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
