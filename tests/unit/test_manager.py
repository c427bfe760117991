"""
Тесты для Manager, OrderPublisher, OrderStream и ManagerConfig

Сценарии:
1. Ордер без PoW публикуется на relay-A и приходит подписчику
2. Ордер с pow_difficulty=8 проходит relay, требующий 8 бит
3. Повторный trade_id в сессии отклоняется, неудачная публикация его освобождает
4. Неизвестный движок во входящем потоке отбрасывается, поток продолжается
5. Недоступный relay при wait_for_connection даёт RelayConnectionError
"""

import asyncio

import pytest
from pydantic import ValidationError as PydanticValidationError

from src.core.domain import EngineDetails, EngineSpecifics
from src.core.engines import EngineRegistry
from src.core.errors import (
    DuplicateTradeIdError,
    PublishRejectedError,
    RelayConnectionError,
    ValidationError,
)
from src.manager import DEFAULT_POW_DIFFICULTY, DEFAULT_RELAY_URL, Manager, ManagerConfig
from src.nostr import Keys, RelayStatus
from src.order import order_to_draft
from tests.conftest import SWAP_ENGINE, SwapSpecifics, wait_until


def make_config(*urls: str, **overrides) -> ManagerConfig:
    fields = dict(
        relays=list(urls),
        pow_difficulty=0,
        connect_timeout=1.0,
        send_timeout=1.0,
        reconnect_min_delay=0.01,
        reconnect_max_delay=0.05,
    )
    fields.update(overrides)
    return ManagerConfig(**fields)


def fill(builder, values, trade_id: str = "trade-1"):
    return (
        builder.trade_id(trade_id)
        .maker_obligation(values["maker_obligation"])
        .taker_obligation(values["taker_obligation"])
        .trade_details(values["trade_details"])
        .engine_details(values["engine_details"])
    )


@pytest.fixture
def values(maker_obligation, taker_obligation, trade_details, engine_details):
    return {
        "maker_obligation": maker_obligation,
        "taker_obligation": taker_obligation,
        "trade_details": trade_details,
        "engine_details": engine_details,
    }


async def next_order(stream, timeout: float = 2.0):
    return await asyncio.wait_for(stream.__anext__(), timeout)


# =============================================================================
# CONFIG
# =============================================================================


class TestManagerConfig:
    """Тесты для ManagerConfig"""

    def test_defaults(self) -> None:
        config = ManagerConfig()
        assert config.relays == [DEFAULT_RELAY_URL]
        assert config.pow_difficulty == DEFAULT_POW_DIFFICULTY
        assert config.wait_for_connection
        assert config.wait_for_send

    def test_relay_scheme(self) -> None:
        with pytest.raises(PydanticValidationError):
            ManagerConfig(relays=["http://relay"])

    def test_relays_required(self) -> None:
        with pytest.raises(PydanticValidationError):
            ManagerConfig(relays=[])

    def test_relays_deduplicated(self) -> None:
        config = ManagerConfig(relays=["wss://a", "wss://b", "wss://a"])
        assert config.relays == ["wss://a", "wss://b"]

    def test_from_env(self) -> None:
        config = ManagerConfig.from_env(
            {
                "N3XB_RELAYS": "ws://relay-a, wss://relay-b",
                "N3XB_WAIT_FOR_CONNECTION": "false",
                "N3XB_WAIT_FOR_SEND": "yes",
                "N3XB_POW_DIFFICULTY": "12",
                "N3XB_SEND_TIMEOUT": "2.5",
            }
        )
        assert config.relays == ["ws://relay-a", "wss://relay-b"]
        assert config.wait_for_connection is False
        assert config.wait_for_send is True
        assert config.pow_difficulty == 12
        assert config.send_timeout == 2.5
        assert config.connect_timeout == 10.0

    def test_from_env_empty(self) -> None:
        assert ManagerConfig.from_env({}) == ManagerConfig()

    def test_from_env_bad_bool(self) -> None:
        with pytest.raises(ValueError):
            ManagerConfig.from_env({"N3XB_WAIT_FOR_SEND": "maybe"})

    def test_to_relay_options(self) -> None:
        options = make_config("ws://relay-a", pow_difficulty=5, wait_for_send=False).to_relay_options()
        assert options.pow_difficulty == 5
        assert options.wait_for_send is False
        assert options.connect_timeout == 1.0


# =============================================================================
# MANAGER LIFECYCLE
# =============================================================================


class TestManagerLifecycle:
    """Создание и закрытие"""

    @pytest.mark.asyncio
    async def test_create_connects_both_paths(self, network, relay_a, keys, registry) -> None:
        manager = await Manager.create(
            keys, make_config(relay_a.url), connector=network.connector, registry=registry
        )

        assert manager.public_key == keys.public_key
        assert manager.keys is keys
        assert manager.publish_pool.status == RelayStatus.CONNECTED
        assert manager.subscribe_pool.status == RelayStatus.CONNECTED
        assert len(relay_a.open_sockets) == 2

        await manager.close()
        assert relay_a.open_sockets == []

    @pytest.mark.asyncio
    async def test_create_generates_keys(self, network, relay_a) -> None:
        async with await Manager.create(config=make_config(relay_a.url), connector=network.connector) as manager:
            assert len(manager.public_key) == 64
            assert manager.config.relays == [relay_a.url]

    @pytest.mark.asyncio
    async def test_unreachable_relay(self, network, relay_a) -> None:
        relay_a.reachable = False
        with pytest.raises(RelayConnectionError):
            await Manager.create(config=make_config(relay_a.url), connector=network.connector)

    @pytest.mark.asyncio
    async def test_unreachable_relay_without_waiting(self, network, relay_a) -> None:
        relay_a.reachable = False
        config = make_config(relay_a.url, wait_for_connection=False, reconnect=False)
        manager = await Manager.create(config=config, connector=network.connector)

        assert manager.publish_pool.status != RelayStatus.CONNECTED
        await manager.close()


# =============================================================================
# PUBLISH / SUBSCRIBE SCENARIOS
# =============================================================================


class TestManagerOrders:
    """Сквозные сценарии maker → relay → подписчик"""

    @pytest.mark.asyncio
    async def test_publish_without_pow(self, network, relay_a, keys, registry, values) -> None:
        async with await Manager.create(
            keys, make_config(relay_a.url), connector=network.connector, registry=registry
        ) as manager:
            stream = await manager.subscribe_maker_orders(engine_name=SWAP_ENGINE)
            await stream.wait_for_eose(1.0)

            event_id = await fill(manager.build_maker_order(), values).publish()
            received = await next_order(stream)

        assert received.event_id == event_id
        assert received.maker_pubkey == keys.public_key
        assert received.order.trade_id == "trade-1"
        assert received.order.pow_difficulty == 0
        assert isinstance(received.order.engine_details.engine_specifics, SwapSpecifics)
        assert relay_a.events[0].tag_value("n") == SWAP_ENGINE

    @pytest.mark.asyncio
    async def test_publish_with_pow(self, network, keys, registry, values) -> None:
        relay = network.add("ws://relay-a", min_difficulty=8)
        async with await Manager.create(
            keys, make_config(relay.url), connector=network.connector, registry=registry
        ) as manager:
            order = fill(manager.build_maker_order(), values).pow_difficulty(8).build()
            event_id = await manager.publish_maker_order(order)

        (event,) = relay.events
        assert event.id == event_id
        assert event.difficulty >= 8

    @pytest.mark.asyncio
    async def test_relay_requires_more_pow(self, network, keys, registry, values) -> None:
        relay = network.add("ws://relay-a", min_difficulty=8)
        async with await Manager.create(
            keys, make_config(relay.url), connector=network.connector, registry=registry
        ) as manager:
            with pytest.raises(PublishRejectedError):
                await fill(manager.build_maker_order(), values).publish()

            # Отклонённый trade_id можно опубликовать повторно
            event_id = await fill(manager.build_maker_order(), values).pow_difficulty(8).publish()

        assert [e.id for e in relay.events] == [event_id]

    @pytest.mark.asyncio
    async def test_config_floor_applies(self, network, keys, registry, values) -> None:
        relay = network.add("ws://relay-a", min_difficulty=6)
        config = make_config(relay.url, pow_difficulty=6)
        async with await Manager.create(keys, config, connector=network.connector, registry=registry) as manager:
            await fill(manager.build_maker_order(), values).publish()

        assert relay.events[0].difficulty >= 6

    @pytest.mark.asyncio
    async def test_default_config_mines_to_default_floor(self, network, keys, registry, values) -> None:
        relay = network.add("ws://relay-a", min_difficulty=DEFAULT_POW_DIFFICULTY)
        config = ManagerConfig(relays=[relay.url])
        async with await Manager.create(keys, config, connector=network.connector, registry=registry) as manager:
            order = fill(manager.build_maker_order(), values).build()
            assert order.pow_difficulty == 0
            await manager.publish_maker_order(order)

        (event,) = relay.events
        assert event.difficulty >= DEFAULT_POW_DIFFICULTY
        (nonce,) = [t for t in event.tags if t[0] == "nonce"]
        assert int(nonce[2]) == DEFAULT_POW_DIFFICULTY

    @pytest.mark.asyncio
    async def test_zero_difficulty_never_mines(
        self, network, relay_a, keys, registry, values, monkeypatch
    ) -> None:
        async def forbidden(*args, **kwargs):
            raise AssertionError("mining must not run at difficulty 0")

        monkeypatch.setattr("src.nostr.pool.mine_async", forbidden)
        async with await Manager.create(
            keys, make_config(relay_a.url), connector=network.connector, registry=registry
        ) as manager:
            await fill(manager.build_maker_order(), values).publish()

        assert len(relay_a.events) == 1

    @pytest.mark.asyncio
    async def test_duplicate_trade_id(self, network, relay_a, keys, registry, values) -> None:
        async with await Manager.create(
            keys, make_config(relay_a.url), connector=network.connector, registry=registry
        ) as manager:
            await fill(manager.build_maker_order(), values).publish()

            with pytest.raises(DuplicateTradeIdError) as exc_info:
                await fill(manager.build_maker_order(), values).publish()
            assert exc_info.value.field == "trade_id"

            await fill(manager.build_maker_order(), values, trade_id="trade-2").publish()

        assert len(relay_a.events) == 2

    @pytest.mark.asyncio
    async def test_builder_validation_error(self, network, relay_a, keys, registry, values) -> None:
        async with await Manager.create(
            keys, make_config(relay_a.url), connector=network.connector, registry=registry
        ) as manager:
            builder = manager.build_maker_order().trade_id("trade-1")
            with pytest.raises(ValidationError) as exc_info:
                await builder.publish()

        assert exc_info.value.field == "maker_obligation"
        assert relay_a.events == []

    @pytest.mark.asyncio
    async def test_stream_drops_unknown_engine(self, network, relay_a, keys, registry, values) -> None:
        class MysterySpecifics(EngineSpecifics):
            type_tag = "mystery-v1"

        foreign = EngineRegistry()
        foreign.register("mystery", MysterySpecifics)

        async with await Manager.create(
            keys, make_config(relay_a.url), connector=network.connector, registry=registry
        ) as manager:
            stream = await manager.subscribe_maker_orders()
            await stream.wait_for_eose(1.0)

            # Ордер движка, неизвестного подписчику
            mystery = (
                fill(manager.build_maker_order(), values, trade_id="mystery-1")
                .engine_details(EngineDetails(engine_name="mystery", engine_specifics=MysterySpecifics()))
                .build()
            )
            await manager.publish_pool.publish(order_to_draft(mystery, foreign))
            await fill(manager.build_maker_order(), values, trade_id="known-1").publish()

            received = await next_order(stream)

        assert received.order.trade_id == "known-1"
        assert stream.dropped == 1

    @pytest.mark.asyncio
    async def test_stored_orders_delivered(self, network, relay_a, registry, values) -> None:
        maker = await Manager.create(
            Keys.generate(), make_config(relay_a.url), connector=network.connector, registry=registry
        )
        await fill(maker.build_maker_order(), values).publish()
        await maker.close()

        async with await Manager.create(
            config=make_config(relay_a.url), connector=network.connector, registry=registry
        ) as taker:
            stream = await taker.subscribe_maker_orders(engine_name=SWAP_ENGINE)
            received = await next_order(stream)
            assert received.maker_pubkey == maker.public_key

            other = await taker.subscribe_maker_orders(engine_name="other-engine")
            await other.wait_for_eose(1.0)
            await other.close()
            with pytest.raises(StopAsyncIteration):
                await next_order(other)

    @pytest.mark.asyncio
    async def test_subscription_survives_reconnect(self, network, relay_a, keys, registry, values) -> None:
        async with await Manager.create(
            keys, make_config(relay_a.url), connector=network.connector, registry=registry
        ) as manager:
            stream = await manager.subscribe_maker_orders()
            await stream.wait_for_eose(1.0)

            relay_a.drop_connections()
            await wait_until(
                lambda: manager.publish_pool.status == RelayStatus.CONNECTED
                and manager.subscribe_pool.status == RelayStatus.CONNECTED
                and len(relay_a.open_sockets) == 2
            )

            event_id = await fill(manager.build_maker_order(), values).publish()
            received = await next_order(stream)

        assert received.event_id == event_id


# =============================================================================
# REFERENCE SCENARIOS
# =============================================================================


class TestManagerScenarios:
    """Сценарий relay-A: trade_id abc-123, sell-X / buy-Y, simple-swap"""

    @pytest.fixture
    def scenario_builder(self):
        def apply(builder):
            return (
                builder.trade_id("abc-123")
                .maker_obligation({"kind": "sell-X", "content": {"amount": 1}})
                .taker_obligation({"kind": "buy-Y", "content": {"amount": 2}})
                .trade_details({"parameters": ["trade_times_out"], "content": {"timeout_secs": 600}})
                .engine_details(
                    EngineDetails(engine_name=SWAP_ENGINE, engine_specifics=SwapSpecifics(rate=1.5))
                )
            )

        return apply

    @pytest.mark.asyncio
    @pytest.mark.parametrize("difficulty", [0, 8])
    async def test_relay_a(self, network, keys, registry, scenario_builder, difficulty) -> None:
        relay = network.add("ws://relay-A", min_difficulty=difficulty)
        async with await Manager.create(
            keys, make_config(relay.url), connector=network.connector, registry=registry
        ) as manager:
            order = scenario_builder(manager.build_maker_order()).pow_difficulty(difficulty).build()

            assert order.trade_id == "abc-123"
            assert order.maker_obligation.kind == "sell-X"
            assert order.taker_obligation.kind == "buy-Y"
            assert order.engine_details.engine_specifics == SwapSpecifics(rate=1.5)
            assert order.pow_difficulty == difficulty

            event_id = await manager.publish_maker_order(order)

        (event,) = relay.events
        assert event.id == event_id
        assert event.difficulty >= difficulty
        has_nonce = any(t[0] == "nonce" for t in event.tags)
        assert has_nonce == (difficulty > 0)
