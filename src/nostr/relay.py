"""RelayConnection — управляемое соединение с одним relay.

Машина состояний: DISCONNECTED → CONNECTING → CONNECTED → (DISCONNECTED при сбое).

- publish(event): один publish за раз (asyncio.Lock); при wait_for_send ждёт OK
- subscribe(filters): REQ + живой поток; после переподключения REQ повторяется
- переподключение: фоновая задача с экспоненциальной задержкой (tenacity)
"""

import asyncio
import contextlib
import logging
import uuid
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional

import websockets
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)
from websockets.exceptions import ConnectionClosed, WebSocketException

from src.core.errors import (
    ConnectTimeoutError,
    EventVerificationError,
    NotConnectedError,
    PublishRejectedError,
    PublishTimeoutError,
    RelayConnectionError,
)

from .event import Event
from .filter import Filter
from .messages import (
    RelayMessage,
    RelayMessageType,
    encode_close,
    encode_event,
    encode_req,
    parse_relay_message,
)
from .options import RelayOptions
from .subscription import Subscription

logger = logging.getLogger(__name__)

# Фабрика транспорта: url → объект с send(), close() и асинхронной итерацией
Connector = Callable[[str], Awaitable[Any]]


async def websocket_connector(url: str) -> Any:
    return await websockets.connect(url)


class RelayStatus(str, Enum):
    """Состояние соединения"""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class RelayConnection:
    """Соединение с одним relay"""

    def __init__(
        self,
        url: str,
        options: Optional[RelayOptions] = None,
        connector: Optional[Connector] = None,
    ):
        self.url = url
        self.options = options or RelayOptions()
        self._connector = connector or websocket_connector

        self._status = RelayStatus.DISCONNECTED
        self._ws: Any = None
        self._connected = asyncio.Event()
        self._lock = asyncio.Lock()
        self._closing = False

        self._reader_task: Optional[asyncio.Task] = None
        self._connect_task: Optional[asyncio.Task] = None

        self._pending: Dict[str, asyncio.Future] = {}
        self._subscriptions: Dict[str, Subscription] = {}

    def __repr__(self) -> str:
        return f"RelayConnection(url={self.url!r}, status={self._status.value})"

    @property
    def status(self) -> RelayStatus:
        return self._status

    @property
    def is_connected(self) -> bool:
        return self._status == RelayStatus.CONNECTED

    def _set_status(self, status: RelayStatus) -> None:
        if status == self._status:
            return
        logger.info("relay %s: %s -> %s", self.url, self._status.value, status.value)
        self._status = status
        if status == RelayStatus.CONNECTED:
            self._connected.set()
        else:
            self._connected.clear()

    # =========================================================================
    # CONNECTION LIFECYCLE
    # =========================================================================

    async def connect(self, timeout: Optional[float] = None) -> None:
        """
        Подключение с ожиданием рукопожатия.

        Raises:
            RelayConnectionError: relay недоступен
            ConnectTimeoutError: рукопожатие не завершилось за timeout
        """
        if self._status == RelayStatus.CONNECTED:
            return
        self._closing = False
        await self._open(timeout if timeout is not None else self.options.connect_timeout)

    def start(self) -> None:
        """Подключение в фоне (без ожидания), с повторами по политике переподключения"""
        if self._status == RelayStatus.CONNECTED:
            return
        self._closing = False
        self._schedule_connect()

    async def _open(self, timeout: float) -> None:
        self._set_status(RelayStatus.CONNECTING)
        try:
            ws = await asyncio.wait_for(self._connector(self.url), timeout)
        except asyncio.TimeoutError:
            self._set_status(RelayStatus.DISCONNECTED)
            raise ConnectTimeoutError(self.url, timeout) from None
        except (OSError, WebSocketException) as e:
            self._set_status(RelayStatus.DISCONNECTED)
            raise RelayConnectionError(self.url, f"{type(e).__name__}: {e}") from e

        self._ws = ws
        self._set_status(RelayStatus.CONNECTED)
        self._reader_task = asyncio.create_task(self._read_loop(ws), name=f"relay-reader:{self.url}")

        # Повторная регистрация подписок после (пере)подключения
        for sub in list(self._subscriptions.values()):
            try:
                await self._send(encode_req(sub.id, sub.filters))
            except NotConnectedError as e:
                # Потеря соединения обработается в _read_loop
                logger.warning("relay %s: resubscribe %s failed: %s", self.url, sub.id, e)
                break

    def _schedule_connect(self) -> None:
        if self._connect_task is not None and not self._connect_task.done():
            return
        self._connect_task = asyncio.create_task(
            self._connect_with_retry(), name=f"relay-connect:{self.url}"
        )

    async def _connect_with_retry(self) -> None:
        opts = self.options
        attempts = opts.reconnect_max_attempts if opts.reconnect else 1
        retrying = AsyncRetrying(
            stop=stop_after_attempt(attempts),
            wait=wait_exponential(
                multiplier=opts.reconnect_min_delay,
                min=opts.reconnect_min_delay,
                max=opts.reconnect_max_delay,
            ),
            retry=retry_if_exception_type(RelayConnectionError),
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    number = attempt.retry_state.attempt_number
                    logger.info("relay %s: connect attempt %d/%d", self.url, number, attempts)
                    await self._open(opts.connect_timeout)
        except RelayConnectionError as e:
            logger.error("relay %s: giving up after %d attempts: %s", self.url, attempts, e.reason)
            for sub in list(self._subscriptions.values()):
                sub.detach(self.url, "relay unreachable")
            self._subscriptions.clear()

    async def disconnect(self) -> None:
        """Закрытие соединения; подписки завершаются, ожидающие publish получают NotConnected"""
        self._closing = True
        for task in (self._connect_task, self._reader_task):
            if task is not None and not task.done():
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
        self._connect_task = None
        self._reader_task = None

        ws, self._ws = self._ws, None
        if ws is not None:
            await ws.close()
        self._set_status(RelayStatus.DISCONNECTED)
        self._fail_pending("disconnected")

        for sub in list(self._subscriptions.values()):
            sub.detach(self.url, "disconnected")
        self._subscriptions.clear()

    def _fail_pending(self, reason: str) -> None:
        for future in self._pending.values():
            if not future.done():
                future.set_exception(NotConnectedError(f"relay {self.url}: {reason}"))
        self._pending.clear()

    def _on_connection_lost(self, ws: Any, reason: str) -> None:
        if ws is not self._ws:
            return
        self._ws = None
        self._reader_task = None
        logger.warning("relay %s: connection lost (%s)", self.url, reason)
        self._set_status(RelayStatus.DISCONNECTED)
        self._fail_pending(reason)
        if self.options.reconnect and not self._closing:
            self._schedule_connect()
            return
        # Соединение не вернётся: подписки завершаются
        for sub in list(self._subscriptions.values()):
            sub.detach(self.url, reason)
        self._subscriptions.clear()

    # =========================================================================
    # INBOUND
    # =========================================================================

    async def _read_loop(self, ws: Any) -> None:
        try:
            async for raw in ws:
                self._dispatch(raw)
            reason = "closed by relay"
        except ConnectionClosed as e:
            reason = f"connection closed: {e}"
        except OSError as e:
            reason = f"{type(e).__name__}: {e}"
        self._on_connection_lost(ws, reason)

    def _dispatch(self, raw: Any) -> None:
        try:
            message = parse_relay_message(raw)
        except (ValueError, EventVerificationError) as e:
            logger.warning("relay %s: dropping malformed message: %s", self.url, e)
            return

        if message.type == RelayMessageType.EVENT:
            self._on_event(message)
        elif message.type == RelayMessageType.OK:
            future = self._pending.get(message.event_id or "")
            if future is not None and not future.done():
                future.set_result(message)
        elif message.type == RelayMessageType.EOSE:
            sub = self._subscriptions.get(message.subscription_id or "")
            if sub is not None:
                sub.mark_eose(self.url)
        elif message.type == RelayMessageType.CLOSED:
            sub = self._subscriptions.pop(message.subscription_id or "", None)
            logger.warning(
                "relay %s: subscription %s closed by relay: %s",
                self.url,
                message.subscription_id,
                message.message,
            )
            if sub is not None:
                sub.detach(self.url, message.message)
        else:
            logger.warning("relay %s: NOTICE %s", self.url, message.message)

    def _on_event(self, message: RelayMessage) -> None:
        sub = self._subscriptions.get(message.subscription_id or "")
        if sub is None:
            logger.debug("relay %s: event for unknown subscription %s", self.url, message.subscription_id)
            return
        event = message.event
        if not event.is_valid():
            logger.warning("relay %s: dropping event %s with invalid id/signature", self.url, event.id)
            return
        sub.deliver(self.url, event)

    # =========================================================================
    # OUTBOUND
    # =========================================================================

    async def _send(self, raw: str) -> None:
        ws = self._ws
        if ws is None:
            raise NotConnectedError(f"relay {self.url} is {self._status.value}")
        try:
            await ws.send(raw)
        except (ConnectionClosed, OSError) as e:
            raise NotConnectedError(f"relay {self.url}: send failed: {e}") from e

    async def _wait_connected(self, event_id: str, timeout: float) -> None:
        if self._status == RelayStatus.CONNECTED:
            return
        if not self.options.queue_while_disconnected:
            raise NotConnectedError(f"relay {self.url} is {self._status.value}")
        try:
            await asyncio.wait_for(self._connected.wait(), timeout)
        except asyncio.TimeoutError:
            raise PublishTimeoutError(event_id, timeout) from None

    async def publish(self, event: Event, timeout: Optional[float] = None) -> str:
        """
        Отправка подписанного события.

        Returns:
            id события

        Raises:
            NotConnectedError: соединение не CONNECTED (или потеряно до OK)
            PublishRejectedError: relay ответил OK с accepted=false
            PublishTimeoutError: нет OK за timeout (или переподключения при очереди)

        Заданный timeout ограничивает весь publish: ожидание переподключения
        (при queue_while_disconnected) и ожидание OK. Без timeout переподключение
        ждётся connect_timeout, а OK — send_timeout.
        """
        loop = asyncio.get_running_loop()
        async with self._lock:
            started = loop.time()
            connect_timeout = timeout if timeout is not None else self.options.connect_timeout
            await self._wait_connected(event.id, connect_timeout)
            if timeout is None:
                ack_timeout = self.options.send_timeout
            else:
                ack_timeout = max(0.0, timeout - (loop.time() - started))

            if not self.options.wait_for_send:
                await self._send(encode_event(event))
                logger.debug("relay %s: sent event %s (no ack wait)", self.url, event.id)
                return event.id

            future = loop.create_future()
            self._pending[event.id] = future
            try:
                await self._send(encode_event(event))
                ack: RelayMessage = await asyncio.wait_for(future, ack_timeout)
            except asyncio.TimeoutError:
                raise PublishTimeoutError(event.id, timeout if timeout is not None else ack_timeout) from None
            finally:
                self._pending.pop(event.id, None)

        if not ack.accepted:
            logger.warning("relay %s: event %s rejected: %s", self.url, event.id, ack.message)
            raise PublishRejectedError(ack.message, event.id, self.url)
        logger.debug("relay %s: event %s accepted", self.url, event.id)
        return event.id

    # =========================================================================
    # SUBSCRIPTIONS
    # =========================================================================

    async def add_subscription(self, sub: Subscription) -> None:
        self._subscriptions[sub.id] = sub
        sub.attach(self.url)
        if self._status == RelayStatus.CONNECTED:
            await self._send(encode_req(sub.id, sub.filters))

    async def remove_subscription(self, subscription_id: str) -> None:
        sub = self._subscriptions.pop(subscription_id, None)
        if sub is None or self._status != RelayStatus.CONNECTED:
            return
        try:
            await self._send(encode_close(subscription_id))
        except NotConnectedError as e:
            # Подписка на стороне relay умирает вместе с соединением
            logger.debug("relay %s: CLOSE %s not sent: %s", self.url, subscription_id, e)

    async def subscribe(self, *filters: Filter, subscription_id: Optional[str] = None) -> Subscription:
        """Подписка на одном relay"""
        sub = Subscription(subscription_id or uuid.uuid4().hex, filters, on_close=self.remove_subscription)
        await self.add_subscription(sub)
        return sub
