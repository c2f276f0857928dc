"""Adapters from the ``influxdb-client`` async API to the service ports."""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import TYPE_CHECKING, Any

from influxdb_client import WritePrecision

from .connection import InfluxConnectionManager
from .exceptions import InfluxConnectionError

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Sequence

    from .mapper import InfluxPoint

logger = logging.getLogger("cqrs_ddd.influxdb.client")


class InfluxQueryExecutor:
    """Stream rows of a Flux query as plain dicts."""

    def __init__(self, query_api: Any, org: str) -> None:
        self._query_api = query_api
        self._org = org

    async def stream(self, query: str) -> AsyncIterator[dict[str, Any]]:
        records = await self._query_api.query_stream(query, org=self._org)
        async for record in records:
            yield dict(record.values)


class InfluxWriteChannel:
    """Buffer points for one call and send them on :meth:`flush`."""

    def __init__(
        self,
        write_api: Any,
        org: str,
        bucket: str,
        *,
        write_precision: str = WritePrecision.NS,
    ) -> None:
        self._write_api = write_api
        self._org = org
        self._bucket = bucket
        self._write_precision = write_precision
        self._pending: list[InfluxPoint] = []
        self._closed = False

    @property
    def pending(self) -> int:
        return len(self._pending)

    def write(self, points: Sequence[InfluxPoint]) -> None:
        if self._closed:
            raise InfluxConnectionError("Write channel is closed")
        self._pending.extend(points)

    async def flush(self) -> None:
        if not self._pending:
            return
        records = [p.to_influx(self._write_precision) for p in self._pending]
        await self._write_api.write(
            bucket=self._bucket,
            org=self._org,
            record=records,
            write_precision=self._write_precision,
        )
        logger.debug(
            "Wrote %d point(s) to %s/%s", len(records), self._org, self._bucket
        )
        self._pending.clear()

    async def close(self) -> None:
        self._pending.clear()
        self._closed = True


class InfluxClientProvider:
    """Resolve the client lazily, once, and hand out executors and channels.

    *source* may be an ``InfluxDBClientAsync``, an
    :class:`InfluxConnectionManager`, or an awaitable resolving to a client.
    """

    def __init__(self, source: Any) -> None:
        if source is None:
            raise InfluxConnectionError("InfluxDB client must be provided")
        self._source = source
        self._client: Any = None
        self._lock = asyncio.Lock()

    async def get_client(self) -> Any:
        if self._client is None:
            async with self._lock:
                if self._client is None:
                    self._client = await self._resolve()
        return self._client

    async def _resolve(self) -> Any:
        source = self._source
        try:
            if isinstance(source, InfluxConnectionManager):
                return await source.connect()
            if inspect.isawaitable(source):
                return await source
        except InfluxConnectionError:
            raise
        except Exception as e:
            raise InfluxConnectionError(f"Could not resolve InfluxDB client: {e}") from e
        return source

    async def query_executor(self, org: str) -> InfluxQueryExecutor:
        client = await self.get_client()
        return InfluxQueryExecutor(client.query_api(), org)

    async def write_channel(
        self, org: str, bucket: str, *, write_precision: str = WritePrecision.NS
    ) -> InfluxWriteChannel:
        client = await self.get_client()
        return InfluxWriteChannel(
            client.write_api(), org, bucket, write_precision=write_precision
        )
