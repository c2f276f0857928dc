"""Translate errors raised by the InfluxDB client into adapter errors."""

from __future__ import annotations

import logging

from influxdb_client.client.exceptions import InfluxDBError
from influxdb_client.rest import ApiException

from .exceptions import InfluxDBAdapterError, InfluxStoreError

logger = logging.getLogger("cqrs_ddd.influxdb.errors")


def _response_status(error: InfluxDBError) -> int | None:
    response = getattr(error, "response", None)
    status = getattr(response, "status", None)
    return status if isinstance(status, int) else None


def translate_error(error: BaseException) -> BaseException:
    """Return the adapter-level exception for *error*.

    Every collaborator error goes through here so callers see a single
    shape. Errors that already belong to the adapter hierarchy are
    returned unchanged.
    """
    if isinstance(error, InfluxDBAdapterError):
        return error

    if isinstance(error, ApiException):
        status = error.status if isinstance(error.status, int) else None
        wrapped = InfluxStoreError(
            error, name="InfluxDBError", code=status, status_code=status
        )
    elif isinstance(error, InfluxDBError):
        status = _response_status(error)
        wrapped = InfluxStoreError(
            error, name="InfluxDBError", code=status, status_code=status
        )
    else:
        name = type(error).__name__
        wrapped = InfluxStoreError(
            error, name=name, code=getattr(error, "code", None) or 500
        )

    logger.error(
        "InfluxDB operation failed (%s, status=%s): %s",
        wrapped.name,
        wrapped.status_code,
        error,
    )
    return wrapped
