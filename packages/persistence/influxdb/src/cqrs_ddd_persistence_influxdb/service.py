"""InfluxDBService — read/write service over one measurement of one bucket."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping, Sequence
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field

from .client import InfluxClientProvider
from .error_handler import translate_error
from .exceptions import (
    InfluxConfigurationError,
    InfluxDBAdapterError,
    InfluxNotFoundError,
    InfluxUnsupportedOperationError,
)
from .mapper import parse_timestamp, resolve_record, to_point, utc_now
from .options import PaginationOptions, TimeRange, load_options
from .ports import IInfluxClientProvider
from .query_builder import FluxQueryBuilder, get_limit, split_query
from .serialization import model_from_row, record_to_mapping, row_to_record

if TYPE_CHECKING:
    from .filters.ast import FilterNode
    from .mapper import Clock
    from .options import InfluxServiceOptions
    from .ports import IWriteChannel

logger = logging.getLogger("cqrs_ddd.influxdb.service")

Query = Mapping[str, Any]
TimeRangeInput = TimeRange | Mapping[str, Any] | None

UPDATE_UNSUPPORTED = (
    "InfluxDB does not support updating existing records. "
    "Use create to write new data points."
)
PATCH_UNSUPPORTED = (
    "InfluxDB does not support patching existing records. "
    "Use create to write new data points."
)
REMOVE_UNSUPPORTED = (
    "InfluxDB does not support deleting individual records. "
    "Use retention policies or drop measurements instead."
)
MULTI_CREATE_UNSUPPORTED = "Can not create multiple entries"

# Window used by get() when the id is a timestamp and no range is given.
_ID_WINDOW = timedelta(microseconds=1)


class Paginated(BaseModel):
    """Paginated read envelope."""

    model_config = ConfigDict(frozen=True)

    total: int = Field(ge=0)
    limit: int | None
    skip: int = Field(ge=0)
    data: list[Any]


class InfluxDBService:
    """Service over one measurement: get, find and create.

    InfluxDB is append-only here, so update, patch and remove always raise
    :class:`InfluxUnsupportedOperationError`.

    *client* is an ``InfluxDBClientAsync``, an
    :class:`~.connection.InfluxConnectionManager`, an awaitable resolving
    to a client, or anything implementing :class:`~.ports.IInfluxClientProvider`.
    Configuration comes from *options* or from keyword *settings*
    validated with :func:`~.options.load_options`.
    """

    def __init__(
        self,
        client: Any,
        *,
        options: InfluxServiceOptions | None = None,
        model_cls: type[BaseModel] | None = None,
        clock: Clock | None = None,
        **settings: Any,
    ) -> None:
        if client is None:
            raise InfluxConfigurationError("InfluxDB client must be provided")
        self._options = options if options is not None else load_options(**settings)
        self._model_cls = model_cls
        self._clock = clock or utc_now
        self._builder = FluxQueryBuilder(self._options)
        self._provider: IInfluxClientProvider = (
            client
            if isinstance(client, IInfluxClientProvider)
            else InfluxClientProvider(client)
        )

    @property
    def options(self) -> InfluxServiceOptions:
        return self._options

    @property
    def id(self) -> str:
        return self._options.id_field

    # -- query helpers ---------------------------------------------------------

    def _pagination(
        self, paginate: bool | PaginationOptions | Mapping[str, Any] | None
    ) -> PaginationOptions | None:
        if paginate is False:
            return None
        if paginate is None:
            return self._options.paginate
        if paginate is True:
            return self._options.paginate or PaginationOptions()
        if isinstance(paginate, PaginationOptions):
            return paginate
        return PaginationOptions.model_validate(paginate)

    def _limit(
        self, limit: int | None, pagination: PaginationOptions | None
    ) -> int | None:
        # the configured maximum applies even when a call turns pagination off
        return get_limit(limit, pagination or self._options.paginate)

    def build_query(
        self,
        query: Query | None = None,
        *,
        time_range: TimeRangeInput = None,
        paginate: bool | PaginationOptions | None = None,
    ) -> str:
        """Return the Flux data query that :meth:`find` would run."""
        filters, predicates = split_query(query)
        limit = self._limit(filters.limit, self._pagination(paginate))
        return self._builder.build_query(
            predicates,
            time_range=time_range,
            sort=filters.sort,
            skip=filters.skip,
            limit=limit,
            select=filters.select,
        ).render()

    def build_count_query(
        self,
        query: Query | FilterNode | None = None,
        *,
        time_range: TimeRangeInput = None,
    ) -> str:
        if isinstance(query, Mapping):
            _, query = split_query(query)
        return self._builder.build_count_query(query, time_range=time_range).render()

    async def query_raw(self, flux: str) -> list[dict[str, Any]]:
        """Run *flux* and return the decoded rows unchanged."""
        logger.debug("Running Flux query:\n%s", flux)
        try:
            executor = await self._provider.query_executor(self._options.org)
            return [row async for row in executor.stream(flux)]
        except InfluxDBAdapterError:
            raise
        except Exception as e:
            raise translate_error(e) from e

    async def _fetch(self, flux: str) -> list[Any]:
        rows = await self.query_raw(flux)
        if self._model_cls is not None:
            return [model_from_row(self._model_cls, row) for row in rows]
        return [row_to_record(row) for row in rows]

    async def count(
        self,
        query: Query | FilterNode | None = None,
        *,
        time_range: TimeRangeInput = None,
    ) -> int:
        """Number of rows matching *query*; paging directives are ignored."""
        rows = await self.query_raw(
            self.build_count_query(query, time_range=time_range)
        )
        return sum(int(row.get("_value") or 0) for row in rows)

    # -- operations ------------------------------------------------------------

    async def find(
        self,
        query: Query | None = None,
        *,
        time_range: TimeRangeInput = None,
        flux: str | None = None,
        paginate: bool | PaginationOptions | None = None,
    ) -> Paginated | list[Any]:
        """Read matching rows.

        Returns a list when pagination is disabled, a :class:`Paginated`
        envelope otherwise. *flux* replaces the generated data query.
        """
        filters, predicates = split_query(query)
        pagination = self._pagination(paginate)
        limit = self._limit(filters.limit, pagination)

        if limit != 0 and flux is None:
            flux = self._builder.build_query(
                predicates,
                time_range=time_range,
                sort=filters.sort,
                skip=filters.skip,
                limit=limit,
                select=filters.select,
            ).render()

        if pagination is None:
            if limit == 0 or flux is None:
                return []
            return await self._fetch(flux)

        if limit == 0 or flux is None:
            total = await self.count(predicates, time_range=time_range)
            data: list[Any] = []
        else:
            data, total = await asyncio.gather(
                self._fetch(flux),
                self.count(predicates, time_range=time_range),
            )
        return Paginated(total=total, limit=limit, skip=filters.skip, data=data)

    async def get(
        self,
        id: Any,
        query: Query | None = None,
        *,
        time_range: TimeRangeInput = None,
        flux: str | None = None,
    ) -> Any:
        """Return the first row whose id column equals *id*."""
        options = self._options
        if id is not None and options.id_field == options.time_field:
            if not isinstance(id, datetime):
                id = parse_timestamp(id, path=options.id_field)
            if time_range is None:
                time_range = TimeRange(start=id, stop=id + _ID_WINDOW)

        params = {**(query or {}), options.id_field: id, "$limit": 1}
        rows = await self.find(
            params, time_range=time_range, flux=flux, paginate=False
        )
        if not rows:
            raise InfluxNotFoundError(id)
        return rows[0]

    async def create(self, data: Any) -> Any:
        """Write one record or a list of records as points.

        Returns the written record(s) with the time field filled in.
        """
        is_batch = isinstance(data, Sequence) and not isinstance(data, (str, bytes))
        if is_batch and not self._options.allows_multi("create"):
            raise InfluxUnsupportedOperationError(
                MULTI_CREATE_UNSUPPORTED, method="create"
            )

        records = [record_to_mapping(r) for r in (data if is_batch else [data])]
        points = [to_point(self._options, r) for r in records]

        try:
            channel = await self._provider.write_channel(
                self._options.org,
                self._options.bucket,
                write_precision=self._options.write_precision,
            )
        except InfluxDBAdapterError:
            raise
        except Exception as e:
            raise translate_error(e) from e

        try:
            channel.write(points)
            await channel.flush()
        except BaseException as e:
            await self._close_channel(channel, after_error=True)
            if isinstance(e, InfluxDBAdapterError) or not isinstance(e, Exception):
                raise
            raise translate_error(e) from e
        await self._close_channel(channel)

        logger.debug(
            "Wrote %d point(s) to measurement %s",
            len(points),
            self._options.measurement,
        )
        now = self._clock()
        resolved = [resolve_record(self._options, r, clock=lambda: now) for r in records]
        return resolved if is_batch else resolved[0]

    async def _close_channel(
        self, channel: IWriteChannel, *, after_error: bool = False
    ) -> None:
        """Release *channel*; a failure here never hides an earlier write error."""
        try:
            await channel.close()
        except Exception as e:
            if after_error:
                logger.warning("Closing the write channel failed: %s", e)
                return
            if isinstance(e, InfluxDBAdapterError):
                raise
            raise translate_error(e) from e

    async def update(self, id: Any, data: Any, params: Any = None) -> Any:  # noqa: ARG002
        raise InfluxUnsupportedOperationError(UPDATE_UNSUPPORTED, method="update")

    async def patch(self, id: Any, data: Any, params: Any = None) -> Any:  # noqa: ARG002
        raise InfluxUnsupportedOperationError(PATCH_UNSUPPORTED, method="patch")

    async def remove(self, id: Any, params: Any = None) -> Any:  # noqa: ARG002
        raise InfluxUnsupportedOperationError(REMOVE_UNSUPPORTED, method="remove")
