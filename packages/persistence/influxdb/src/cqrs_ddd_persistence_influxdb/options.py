"""Immutable service configuration and per-call query options."""

from __future__ import annotations

from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic import ValidationError as PydanticValidationError

from .exceptions import InfluxConfigurationError

DEFAULT_TIME_FIELD = "_time"
MEASUREMENT_FIELD = "_measurement"


class UnknownKeyPolicy(str, Enum):
    """What the filter parser does with keys it does not recognise."""

    REJECT = "reject"
    IGNORE = "ignore"


class PaginationOptions(BaseModel):
    """Default and maximum page size for paginated reads."""

    model_config = ConfigDict(frozen=True)

    default: int | None = Field(default=None, ge=0)
    max: int | None = Field(default=None, ge=0)


class TimeRange(BaseModel):
    """Time window of a query.

    ``start``/``stop`` accept an absolute ``datetime``, a ``timedelta``
    relative to now, or a Flux time/duration string passed through as-is.
    """

    model_config = ConfigDict(frozen=True)

    start: datetime | timedelta | str | None = None
    stop: datetime | timedelta | str | None = None

    @property
    def is_open(self) -> bool:
        return not self.start and not self.stop


class InfluxServiceOptions(BaseModel):
    """Configuration shared read-only by every operation of a service.

    A tag/field allowlist overlap raises :class:`InfluxConfigurationError`
    however the model is built. Other invalid values raise pydantic's
    ``ValidationError`` here; :func:`load_options` wraps those too.
    """

    model_config = ConfigDict(frozen=True)

    org: str = Field(min_length=1)
    bucket: str = Field(min_length=1)
    measurement: str = Field(min_length=1)
    tag_fields: tuple[str, ...] = ()
    field_fields: tuple[str, ...] = ()
    time_field: str = Field(default=DEFAULT_TIME_FIELD, min_length=1)
    id_field: str = Field(default=DEFAULT_TIME_FIELD, min_length=1)
    paginate: PaginationOptions | None = None
    multi: bool | frozenset[str] = False
    unknown_keys: UnknownKeyPolicy = UnknownKeyPolicy.REJECT
    write_precision: Literal["s", "ms", "us", "ns"] = "ns"

    @model_validator(mode="after")
    def _check_field_classes(self) -> InfluxServiceOptions:
        overlap = sorted(set(self.tag_fields) & set(self.field_fields))
        if overlap:
            # not a ValueError, so pydantic lets it through unwrapped
            raise InfluxConfigurationError(
                f"Fields configured as both tag and field: {', '.join(overlap)}"
            )
        return self

    def allows_multi(self, method: str) -> bool:
        """Return True if *method* may operate on several records at once."""
        if isinstance(self.multi, bool):
            return self.multi
        return method in self.multi


_REQUIRED = (
    ("org", "InfluxDB organization must be provided"),
    ("bucket", "InfluxDB bucket must be provided"),
    ("measurement", "InfluxDB measurement must be provided"),
)


def load_options(**settings: Any) -> InfluxServiceOptions:
    """Validate raw settings into :class:`InfluxServiceOptions`.

    Raises :class:`InfluxConfigurationError` on the first missing
    required setting, or with every pydantic error otherwise.
    """
    for key, message in _REQUIRED:
        if not settings.get(key):
            raise InfluxConfigurationError(message)
    try:
        return InfluxServiceOptions(**settings)
    except PydanticValidationError as exc:
        errors = []
        for error in exc.errors():
            loc = ".".join(str(p) for p in error.get("loc", ())) or "__root__"
            errors.append(f"{loc}: {error.get('msg', 'validation error')}")
        raise InfluxConfigurationError(
            "Invalid InfluxDB service options: " + "; ".join(errors)
        ) from exc
