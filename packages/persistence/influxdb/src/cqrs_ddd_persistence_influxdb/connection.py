"""InfluxConnectionManager — async client lifecycle and health check."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from .exceptions import InfluxConnectionError

if TYPE_CHECKING:
    from influxdb_client.client.influxdb_client_async import InfluxDBClientAsync

logger = logging.getLogger("cqrs_ddd.influxdb.connection")


class InfluxConnectionManager:
    """Wrap ``InfluxDBClientAsync`` with lifecycle and health-check helpers."""

    def __init__(
        self,
        url: str = "http://localhost:8086",
        *,
        token: str | None = None,
        org: str | None = None,
        timeout_ms: int = 10_000,
        **kwargs: Any,
    ) -> None:
        self._url = url
        self._token = token
        self._org = org
        self._timeout_ms = timeout_ms
        self._kwargs = kwargs
        self._client: InfluxDBClientAsync | None = None

    async def connect(self) -> InfluxDBClientAsync:
        """Create and cache the async client. Idempotent.

        Must be awaited inside a running event loop: the client opens an
        aiohttp session on creation.
        """
        if self._client is not None:
            return self._client
        try:
            from influxdb_client.client.influxdb_client_async import (
                InfluxDBClientAsync,
            )
        except ImportError as e:
            raise InfluxConnectionError(
                "async support is required; install with influxdb-client[async]"
            ) from e
        try:
            self._client = InfluxDBClientAsync(
                url=self._url,
                token=self._token,
                org=self._org,
                timeout=self._timeout_ms,
                **self._kwargs,
            )
        except Exception as e:
            raise InfluxConnectionError(str(e)) from e
        logger.debug("Created InfluxDB client for %s", self._url)
        return self._client

    @property
    def client(self) -> InfluxDBClientAsync:
        """Return the client; raises if not connected."""
        if self._client is None:
            raise InfluxConnectionError("Not connected; call connect() first")
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None

    async def health_check(self) -> bool:
        """Ping the server; return True if reachable."""
        if self._client is None:
            return False
        try:
            return bool(await self._client.ping())
        except Exception:  # noqa: BLE001
            return False
