"""Unit tests for the influxdb-client adapters and the connection manager."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from cqrs_ddd_persistence_influxdb.client import (
    InfluxClientProvider,
    InfluxQueryExecutor,
    InfluxWriteChannel,
)
from cqrs_ddd_persistence_influxdb.connection import InfluxConnectionManager
from cqrs_ddd_persistence_influxdb.exceptions import InfluxConnectionError
from cqrs_ddd_persistence_influxdb.mapper import InfluxPoint
from cqrs_ddd_persistence_influxdb.ports import (
    IInfluxClientProvider,
    IQueryExecutor,
    IWriteChannel,
)


class _Records:
    """Async iterator of FluxRecord-like objects."""

    def __init__(self, values):
        self._items = [MagicMock(values=v) for v in values]

    def __aiter__(self):
        return self

    async def __anext__(self):
        if not self._items:
            raise StopAsyncIteration
        return self._items.pop(0)


def _client() -> MagicMock:
    client = MagicMock(spec=["query_api", "write_api", "close", "ping"])
    query_api = MagicMock()
    query_api.query_stream = AsyncMock(
        return_value=_Records([{"_time": "t1", "_value": 1}, {"_time": "t2"}])
    )
    write_api = MagicMock()
    write_api.write = AsyncMock(return_value=True)
    client.query_api.return_value = query_api
    client.write_api.return_value = write_api
    return client


class TestInfluxQueryExecutor:
    @pytest.mark.asyncio
    async def test_stream_yields_row_dicts(self) -> None:
        client = _client()
        executor = InfluxQueryExecutor(client.query_api(), "acme")
        rows = [row async for row in executor.stream("from(bucket: \"b\")")]
        assert rows == [{"_time": "t1", "_value": 1}, {"_time": "t2"}]
        client.query_api().query_stream.assert_awaited_once_with(
            'from(bucket: "b")', org="acme"
        )
        assert isinstance(executor, IQueryExecutor)


class TestInfluxWriteChannel:
    @pytest.mark.asyncio
    async def test_flush_sends_buffered_points(self) -> None:
        write_api = _client().write_api()
        channel = InfluxWriteChannel(write_api, "acme", "sensors", write_precision="s")
        channel.write([InfluxPoint("readings", {"d": "1"}, {"v": 1.0})])
        assert channel.pending == 1
        await channel.flush()
        kwargs = write_api.write.await_args.kwargs
        assert kwargs["bucket"] == "sensors"
        assert kwargs["org"] == "acme"
        assert kwargs["write_precision"] == "s"
        assert kwargs["record"][0].to_line_protocol() == "readings,d=1 v=1"
        assert channel.pending == 0
        assert isinstance(channel, IWriteChannel)

    @pytest.mark.asyncio
    async def test_flush_without_points_is_noop(self) -> None:
        write_api = _client().write_api()
        await InfluxWriteChannel(write_api, "acme", "sensors").flush()
        write_api.write.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_write_after_close_fails(self) -> None:
        channel = InfluxWriteChannel(MagicMock(), "acme", "sensors")
        channel.write([InfluxPoint("m", {}, {"v": 1.0})])
        await channel.close()
        assert channel.pending == 0
        with pytest.raises(InfluxConnectionError, match="closed"):
            channel.write([InfluxPoint("m", {}, {"v": 1.0})])


class TestInfluxClientProvider:
    def test_rejects_missing_client(self) -> None:
        with pytest.raises(InfluxConnectionError, match="client must be provided"):
            InfluxClientProvider(None)

    @pytest.mark.asyncio
    async def test_plain_client(self) -> None:
        client = _client()
        provider = InfluxClientProvider(client)
        assert isinstance(provider, IInfluxClientProvider)
        executor = await provider.query_executor("acme")
        assert isinstance(executor, InfluxQueryExecutor)
        channel = await provider.write_channel("acme", "sensors")
        assert isinstance(channel, InfluxWriteChannel)

    @pytest.mark.asyncio
    async def test_awaitable_is_resolved_once(self) -> None:
        client = _client()
        calls = 0

        async def make_client():
            nonlocal calls
            calls += 1
            return client

        provider = InfluxClientProvider(make_client())
        assert await provider.get_client() is client
        assert await provider.get_client() is client
        assert calls == 1

    @pytest.mark.asyncio
    async def test_connection_manager_is_connected(self) -> None:
        client = _client()
        manager = InfluxConnectionManager()
        with patch.object(manager, "connect", AsyncMock(return_value=client)):
            provider = InfluxClientProvider(manager)
            assert await provider.get_client() is client

    @pytest.mark.asyncio
    async def test_resolution_failure_is_connection_error(self) -> None:
        async def broken():
            raise OSError("refused")

        provider = InfluxClientProvider(broken())
        with pytest.raises(InfluxConnectionError, match="refused"):
            await provider.get_client()


class TestInfluxConnectionManager:
    def test_client_raises_before_connect(self) -> None:
        manager = InfluxConnectionManager(url="http://localhost:8086")
        with pytest.raises(InfluxConnectionError, match="Not connected"):
            _ = manager.client

    @pytest.mark.asyncio
    async def test_connect_is_idempotent_and_close_resets(self) -> None:
        fake = _client()
        fake.close = AsyncMock()
        with patch(
            "influxdb_client.client.influxdb_client_async.InfluxDBClientAsync",
            return_value=fake,
        ) as factory:
            manager = InfluxConnectionManager(token="t", org="acme", timeout_ms=500)
            assert await manager.connect() is fake
            assert await manager.connect() is fake
        factory.assert_called_once_with(
            url="http://localhost:8086", token="t", org="acme", timeout=500
        )
        assert manager.client is fake
        await manager.close()
        fake.close.assert_awaited_once()
        with pytest.raises(InfluxConnectionError):
            _ = manager.client
        await manager.close()

    @pytest.mark.asyncio
    async def test_health_check(self) -> None:
        manager = InfluxConnectionManager()
        assert await manager.health_check() is False
        fake = _client()
        fake.ping = AsyncMock(return_value=True)
        manager._client = fake
        assert await manager.health_check() is True
        fake.ping.side_effect = OSError("down")
        assert await manager.health_check() is False
