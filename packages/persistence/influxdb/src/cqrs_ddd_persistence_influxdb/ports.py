"""Collaborator protocols consumed by :class:`~.service.InfluxDBService`."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Sequence

    from .mapper import InfluxPoint


@runtime_checkable
class IQueryExecutor(Protocol):
    """Run a complete Flux query and yield decoded rows lazily."""

    def stream(self, query: str) -> AsyncIterator[dict[str, Any]]: ...


@runtime_checkable
class IWriteChannel(Protocol):
    """Per-call write resource.

    ``write`` buffers points, ``flush`` sends them and must be awaited
    before the write counts as durable, ``close`` releases the channel.
    """

    def write(self, points: Sequence[InfluxPoint]) -> None: ...

    async def flush(self) -> None: ...

    async def close(self) -> None: ...


@runtime_checkable
class IInfluxClientProvider(Protocol):
    """Hands out query executors and write channels for an org/bucket."""

    async def query_executor(self, org: str) -> IQueryExecutor: ...

    async def write_channel(
        self, org: str, bucket: str, *, write_precision: str = "ns"
    ) -> IWriteChannel: ...
