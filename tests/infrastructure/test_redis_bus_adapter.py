"""Tests for RedisMessageBus with a mocked redis client."""

import pytest
from unittest.mock import AsyncMock, MagicMock

from redis.exceptions import ConnectionError as RedisConnectionError, RedisError

from termbridge.domain.errors import BusConnectionError
from termbridge.domain.ports.message_bus_port import MessageBusPort
from termbridge.infrastructure.adapters.redis_bus_adapter import (
    RedisMessageBus,
    create_client,
)
from termbridge.infrastructure.config import BusConfig

FAST = BusConfig(connect_retries=3, retry_delay_seconds=0)


def _pubsub(messages=(), error=None):
    """PubSub double whose listen() yields messages, then optionally raises."""
    pubsub = MagicMock()
    pubsub.subscribe = AsyncMock()
    pubsub.get_message = AsyncMock(return_value={"type": "subscribe", "data": 1})
    pubsub.aclose = AsyncMock()

    async def listen():
        for message in messages:
            yield message
        if error is not None:
            raise error

    pubsub.listen = listen
    return pubsub


def _message(data):
    return {"type": "message", "channel": "terminal:commands", "data": data}


def _client(*pubsubs):
    client = MagicMock()
    client.ping = AsyncMock(return_value=True)
    client.publish = AsyncMock(return_value=1)
    client.aclose = AsyncMock()
    client.pubsub = MagicMock(side_effect=list(pubsubs))
    return client


class TestCreateClient:
    def test_uses_config(self):
        client = create_client(BusConfig(host="cache", port=6380, db=2))
        kwargs = client.connection_pool.connection_kwargs
        assert kwargs["host"] == "cache"
        assert kwargs["port"] == 6380
        assert kwargs["db"] == 2
        assert kwargs["password"] == "password"


class TestConnect:
    def test_implements_port(self):
        assert isinstance(RedisMessageBus(FAST, client=_client()), MessageBusPort)

    @pytest.mark.asyncio
    async def test_connect_pings(self):
        client = _client()
        await RedisMessageBus(FAST, client=client).connect()
        client.ping.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_connect_retries_transient_errors(self):
        client = _client()
        client.ping.side_effect = [RedisConnectionError("down"), True]
        await RedisMessageBus(FAST, client=client).connect()
        assert client.ping.await_count == 2

    @pytest.mark.asyncio
    async def test_connect_gives_up(self):
        client = _client()
        client.ping.side_effect = RedisConnectionError("down")
        with pytest.raises(BusConnectionError, match="after 3 attempts"):
            await RedisMessageBus(FAST, client=client).connect()
        assert client.ping.await_count == 3


class TestPublish:
    @pytest.mark.asyncio
    async def test_publish_success(self):
        client = _client()
        bus = RedisMessageBus(FAST, client=client)
        assert await bus.publish("terminal:results", "{}") is True
        client.publish.assert_awaited_once_with("terminal:results", "{}")

    @pytest.mark.asyncio
    async def test_publish_failure_returns_false(self):
        client = _client()
        client.publish.side_effect = RedisError("boom")
        bus = RedisMessageBus(FAST, client=client)
        assert await bus.publish("terminal:results", "{}") is False


class TestSubscribe:
    @pytest.mark.asyncio
    async def test_yields_message_payloads(self):
        pubsub = _pubsub([_message("one"), {"type": "pong"}, _message(b"two")])
        bus = RedisMessageBus(FAST, client=_client(pubsub))

        messages = await bus.subscribe("terminal:commands")
        pubsub.subscribe.assert_awaited_once_with("terminal:commands")

        received = [m async for m in messages]
        assert received == ["one", "two"]
        pubsub.aclose.assert_awaited()

    @pytest.mark.asyncio
    async def test_resubscribes_after_connection_loss(self):
        first = _pubsub([_message("before")], error=RedisConnectionError("reset"))
        second = _pubsub([_message("after")])
        client = _client(first, second)
        bus = RedisMessageBus(FAST, client=client)

        received = [m async for m in await bus.subscribe("terminal:commands")]
        assert received == ["before", "after"]
        assert client.pubsub.call_count == 2
        first.aclose.assert_awaited()

    @pytest.mark.asyncio
    async def test_gives_up_after_retry_bound(self):
        error = RedisConnectionError("reset")
        pubsubs = [_pubsub(error=error) for _ in range(4)]
        bus = RedisMessageBus(FAST, client=_client(*pubsubs))

        messages = await bus.subscribe("terminal:commands")
        with pytest.raises(BusConnectionError, match="Lost subscription"):
            async for _ in messages:
                pass

    @pytest.mark.asyncio
    async def test_subscribe_failure(self):
        pubsub = _pubsub()
        pubsub.subscribe.side_effect = RedisConnectionError("down")
        bus = RedisMessageBus(FAST, client=_client(pubsub))
        with pytest.raises(BusConnectionError):
            await bus.subscribe("terminal:commands")
        pubsub.aclose.assert_awaited()


class TestClose:
    @pytest.mark.asyncio
    async def test_close_releases_client_and_subscriptions(self):
        pubsub = _pubsub()
        client = _client(pubsub)
        bus = RedisMessageBus(FAST, client=client)
        await bus.subscribe("terminal:commands")

        await bus.close()
        await bus.close()

        client.aclose.assert_awaited_once()
        pubsub.aclose.assert_awaited()
