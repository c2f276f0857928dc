"""Test configuration for the InfluxDB persistence package."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import pytest

from cqrs_ddd_persistence_influxdb import InfluxServiceOptions, PaginationOptions

FIXED_NOW = datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc)


class FakeQueryExecutor:
    """Records every Flux query and answers data and count queries."""

    def __init__(self, provider: FakeProvider) -> None:
        self._provider = provider

    async def stream(self, query: str):
        self._provider.queries.append(query)
        if self._provider.query_error is not None:
            raise self._provider.query_error
        if query.rstrip().endswith("count()"):
            rows = self._provider.count_rows or [
                {"result": "_result", "table": 0, "_value": self._provider.total}
            ]
        else:
            rows = self._provider.rows
        for row in rows:
            yield row


class FakeWriteChannel:
    """Buffers points like the real channel; optionally fails on flush or close."""

    def __init__(
        self,
        flush_error: BaseException | None = None,
        close_error: BaseException | None = None,
    ) -> None:
        self.points: list[Any] = []
        self.flushed = False
        self.closed = False
        self._flush_error = flush_error
        self._close_error = close_error

    def write(self, points):
        self.points.extend(points)

    async def flush(self):
        if self._flush_error is not None:
            raise self._flush_error
        self.flushed = True

    async def close(self):
        self.closed = True
        if self._close_error is not None:
            raise self._close_error


class FakeProvider:
    """In-memory stand-in for the client provider."""

    def __init__(self) -> None:
        self.rows: list[dict[str, Any]] = []
        self.total = 0
        self.queries: list[str] = []
        self.query_error: BaseException | None = None
        self.count_rows: list[dict[str, Any]] = []
        self.flush_error: BaseException | None = None
        self.close_error: BaseException | None = None
        self.channel_error: BaseException | None = None
        self.channels: list[FakeWriteChannel] = []
        self.write_args: list[tuple[str, str, str]] = []

    async def query_executor(self, org: str) -> FakeQueryExecutor:
        return FakeQueryExecutor(self)

    async def write_channel(
        self, org: str, bucket: str, *, write_precision: str = "ns"
    ) -> FakeWriteChannel:
        self.write_args.append((org, bucket, write_precision))
        if self.channel_error is not None:
            raise self.channel_error
        channel = FakeWriteChannel(self.flush_error, self.close_error)
        self.channels.append(channel)
        return channel


@pytest.fixture
def options() -> InfluxServiceOptions:
    return InfluxServiceOptions(
        org="acme",
        bucket="sensors",
        measurement="readings",
        tag_fields=("device", "location"),
        field_fields=("temperature", "humidity"),
    )


@pytest.fixture
def paginated_options(options: InfluxServiceOptions) -> InfluxServiceOptions:
    return options.model_copy(
        update={"paginate": PaginationOptions(default=10, max=100)}
    )


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def fixed_clock():
    return lambda: FIXED_NOW


@pytest.fixture
def fixed_now() -> datetime:
    return FIXED_NOW
