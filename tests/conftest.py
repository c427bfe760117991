"""
Shared fixtures: in-memory relay network.

FakeRelay реализует протокол relay (EVENT/OK, REQ/EVENT/EOSE, CLOSE) поверх
asyncio.Queue, без сети. Подключается к RelayConnection через параметр
connector, поэтому весь стек (пул, подписки, переподключение) проверяется
без websockets.
"""

import asyncio
import json
from typing import Any, Dict, List, Optional

import pytest

from src.core.domain import (
    EngineDetails,
    EngineSpecifics,
    MakerObligation,
    TakerObligation,
    TradeDetails,
    TradeParameter,
)
from src.core.engines import EngineRegistry
from src.nostr import Event, Filter, Keys


_CLOSE = object()


# =============================================================================
# FAKE RELAY
# =============================================================================


class FakeSocket:
    """Клиентская сторона соединения: send(), close(), асинхронная итерация"""

    def __init__(self, relay: "FakeRelay"):
        self._relay = relay
        self._inbox: asyncio.Queue = asyncio.Queue()
        self.subscriptions: Dict[str, List[Filter]] = {}
        self.sent: List[list] = []
        self.closed = False

    async def send(self, raw: str) -> None:
        if self.closed:
            raise OSError("socket is closed")
        message = json.loads(raw)
        self.sent.append(message)
        self._relay.handle(self, message)

    def push(self, message: list) -> None:
        if not self.closed:
            self._inbox.put_nowait(json.dumps(message))

    def abort(self) -> None:
        """Обрыв соединения со стороны relay"""
        if not self.closed:
            self.closed = True
            self._inbox.put_nowait(_CLOSE)

    async def close(self) -> None:
        self.abort()

    def __aiter__(self) -> "FakeSocket":
        return self

    async def __anext__(self) -> str:
        item = await self._inbox.get()
        if item is _CLOSE:
            raise StopAsyncIteration
        return item


class FakeRelay:
    """
    Relay в памяти.

    Args:
        url: адрес relay
        min_difficulty: минимальная сложность PoW принимаемых событий
        reject_reason: если задан, все события отклоняются с этой причиной
        ack: False — relay молчит в ответ на EVENT (проверка таймаутов)
        reachable: False — подключение падает с OSError
    """

    def __init__(
        self,
        url: str,
        min_difficulty: int = 0,
        reject_reason: Optional[str] = None,
        ack: bool = True,
        reachable: bool = True,
    ):
        self.url = url
        self.min_difficulty = min_difficulty
        self.reject_reason = reject_reason
        self.ack = ack
        self.reachable = reachable
        self.events: List[Event] = []
        self.sockets: List[FakeSocket] = []
        self.connect_attempts = 0

    @property
    def open_sockets(self) -> List[FakeSocket]:
        return [s for s in self.sockets if not s.closed]

    async def accept(self) -> FakeSocket:
        self.connect_attempts += 1
        if not self.reachable:
            raise OSError(f"connection refused: {self.url}")
        socket = FakeSocket(self)
        self.sockets.append(socket)
        return socket

    def drop_connections(self) -> None:
        for socket in self.open_sockets:
            socket.abort()

    def handle(self, socket: FakeSocket, message: list) -> None:
        kind = message[0]
        if kind == "EVENT":
            self._on_event(socket, message[1])
        elif kind == "REQ":
            sub_id = message[1]
            filters = [Filter.from_wire(f) for f in message[2:]]
            socket.subscriptions[sub_id] = filters
            for event in self.events:
                if any(f.matches(event) for f in filters):
                    socket.push(["EVENT", sub_id, event.to_wire()])
            socket.push(["EOSE", sub_id])
        elif kind == "CLOSE":
            socket.subscriptions.pop(message[1], None)

    def _on_event(self, socket: FakeSocket, data: Dict[str, Any]) -> None:
        event = Event.from_wire(data)
        if not self.ack:
            return
        if not event.is_valid():
            socket.push(["OK", event.id, False, "invalid: bad signature"])
            return
        if event.difficulty < self.min_difficulty:
            socket.push(
                ["OK", event.id, False, f"pow: difficulty {event.difficulty}<{self.min_difficulty}"]
            )
            return
        if self.reject_reason is not None:
            socket.push(["OK", event.id, False, self.reject_reason])
            return

        self.events.append(event)
        socket.push(["OK", event.id, True, ""])
        self.broadcast(event)

    def broadcast(self, event: Event) -> None:
        """Рассылка события живым подпискам всех клиентов"""
        for client in self.open_sockets:
            for sub_id, filters in client.subscriptions.items():
                if any(f.matches(event) for f in filters):
                    client.push(["EVENT", sub_id, event.to_wire()])


class FakeNetwork:
    """Набор FakeRelay по url; connector() передаётся в RelayConnection"""

    def __init__(self):
        self.relays: Dict[str, FakeRelay] = {}

    def add(self, url: str, **kwargs: Any) -> FakeRelay:
        relay = FakeRelay(url, **kwargs)
        self.relays[url] = relay
        return relay

    async def connector(self, url: str) -> FakeSocket:
        relay = self.relays.get(url)
        if relay is None:
            raise OSError(f"unknown host: {url}")
        return await relay.accept()


async def wait_until(predicate, timeout: float = 2.0, interval: float = 0.01) -> None:
    """Ожидание условия в event loop (для фоновых задач соединения)"""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(interval)


# =============================================================================
# TEST ENGINE
# =============================================================================


SWAP_ENGINE = "simple-swap"


class SwapSpecifics(EngineSpecifics):
    """Payload тестового движка"""

    type_tag = "simple-swap-v1"

    rate: float
    settlement: str = "on-chain"


# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture
def network():
    return FakeNetwork()


@pytest.fixture
def relay_a(network):
    return network.add("ws://relay-a")


@pytest.fixture
def keys():
    return Keys.generate()


@pytest.fixture
def registry():
    registry = EngineRegistry()
    registry.register(SWAP_ENGINE, SwapSpecifics)
    return registry


@pytest.fixture
def maker_obligation():
    return MakerObligation(kind="sell-BTC", content={"amount": 100000, "unit": "sat"})


@pytest.fixture
def taker_obligation():
    return TakerObligation(kind="buy-USD", content={"amount": 42, "methods": ["wire"]})


@pytest.fixture
def trade_details():
    return TradeDetails(
        parameters=frozenset({TradeParameter.TRUSTED_ESCROW, TradeParameter.BONDS_REQUIRED}),
        content={"bond_pct": 5},
    )


@pytest.fixture
def engine_details():
    return EngineDetails(engine_name=SWAP_ENGINE, engine_specifics=SwapSpecifics(rate=0.5))
