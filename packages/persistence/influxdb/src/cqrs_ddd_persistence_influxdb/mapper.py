"""Record -> InfluxDB point mapping."""

from __future__ import annotations

import math
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any

from influxdb_client import Point
from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from .exceptions import InfluxQueryError
from .filters.values import format_time
from .options import MEASUREMENT_FIELD

if TYPE_CHECKING:
    from .options import InfluxServiceOptions

FieldValue = float | bool | str
Clock = Callable[[], datetime]

_TIMESTAMP: TypeAdapter[datetime] = TypeAdapter(datetime)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class FieldKind(str, Enum):
    TAG = "tag"
    FIELD = "field"
    EXCLUDED = "excluded"


@dataclass(frozen=True)
class InfluxPoint:
    """One point as it will be written: measurement, tags, typed fields, time."""

    measurement: str
    tags: dict[str, str] = field(default_factory=dict)
    fields: dict[str, FieldValue] = field(default_factory=dict)
    time: datetime | None = None

    def to_influx(self, write_precision: str = "ns") -> Point:
        point = Point(self.measurement)
        for key, tag in self.tags.items():
            point.tag(key, tag)
        for key, value in self.fields.items():
            point.field(key, value)
        if self.time is not None:
            point.time(self.time, write_precision=write_precision)
        return point


def classify_field(options: InfluxServiceOptions, key: str) -> FieldKind:
    """Decide whether *key* of a record becomes a tag, a field or nothing."""
    if key in (options.time_field, MEASUREMENT_FIELD):
        return FieldKind.EXCLUDED
    if key in options.tag_fields:
        return FieldKind.TAG
    if key in options.field_fields:
        return FieldKind.FIELD
    # not allowlisted anywhere: still written, as a typed field
    return FieldKind.FIELD


def coerce_field_value(key: str, value: Any) -> FieldValue:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float, Decimal)):
        number = float(value)
        if not math.isfinite(number):
            raise InfluxQueryError(
                f"Cannot write non-finite value {value!r} for field '{key}'", path=key
            )
        return number
    return str(value)


def parse_timestamp(value: Any, *, path: str = "_time") -> datetime:
    """Parse a datetime, ISO-8601 string or epoch number to an aware datetime."""
    try:
        parsed = _TIMESTAMP.validate_python(value)
    except PydanticValidationError as exc:
        raise InfluxQueryError(f"Invalid timestamp {value!r}", path=path) from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def to_point(options: InfluxServiceOptions, record: Mapping[str, Any]) -> InfluxPoint:
    """Map one input record to the point that represents it."""
    if not isinstance(record, Mapping):
        raise InfluxQueryError(
            f"Expected a mapping to write, got {type(record).__name__}"
        )
    tags: dict[str, str] = {}
    fields: dict[str, FieldValue] = {}
    for key, value in record.items():
        if value is None:
            continue
        kind = classify_field(options, key)
        if kind is FieldKind.TAG:
            tags[key] = str(value)
        elif kind is FieldKind.FIELD:
            fields[key] = coerce_field_value(key, value)

    if not fields:
        raise InfluxQueryError(
            "Record has no field values to write; InfluxDB points need at least one"
        )

    raw_time = record.get(options.time_field)
    timestamp = (
        parse_timestamp(raw_time, path=options.time_field)
        if raw_time not in (None, "")
        else None
    )
    return InfluxPoint(options.measurement, tags, fields, timestamp)


def resolve_record(
    options: InfluxServiceOptions,
    record: Mapping[str, Any],
    clock: Clock = utc_now,
) -> dict[str, Any]:
    """Return the record as written, with its timestamp filled in.

    InfluxDB does not echo inserted rows, so this is the response payload
    of a write.
    """
    resolved = dict(record)
    if resolved.get(options.time_field) in (None, ""):
        resolved[options.time_field] = format_time(clock())
    return resolved
