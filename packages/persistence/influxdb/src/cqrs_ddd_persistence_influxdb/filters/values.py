"""Python value -> Flux literal formatting.

Every literal that ends up in a generated query goes through
:func:`format_value`, so escaping lives in exactly one place.
"""

from __future__ import annotations

import math
import re
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import Any

from ..exceptions import InfluxQueryError

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def format_string(value: str) -> str:
    """Quote *value* as a Flux string literal."""
    escaped = (
        value.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("${", "\\${")
        .replace("\n", "\\n")
    )
    return f'"{escaped}"'


def format_time(value: datetime | date) -> str:
    """Render an RFC3339 time literal in UTC (naive values are taken as UTC)."""
    if not isinstance(value, datetime):
        value = datetime.combine(value, time.min)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    text = value.astimezone(timezone.utc).isoformat()
    return text.replace("+00:00", "Z")


def format_duration(value: timedelta) -> str:
    """Render a timedelta as a Flux duration relative to now (``-90s``).

    Sub-second offsets use the coarsest exact unit (``-500ms``, ``-1500us``).
    """
    micros = abs(value) // timedelta(microseconds=1)
    if micros == 0:
        return "0s"
    sign = "-" if value > timedelta(0) else ""
    if micros % 1_000_000 == 0:
        return f"{sign}{micros // 1_000_000}s"
    if micros % 1_000 == 0:
        return f"{sign}{micros // 1_000}ms"
    return f"{sign}{micros}us"


def _format_number(value: int | float | Decimal) -> str:
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float) and not math.isfinite(value):
        raise InfluxQueryError(f"Cannot use non-finite number {value!r} in a query")
    if isinstance(value, Decimal):
        if not value.is_finite():
            raise InfluxQueryError(f"Cannot use non-finite number {value!r} in a query")
        return format(value, "f")
    text = repr(value)
    if "e" in text or "E" in text:
        # Flux float literals have no exponent form
        text = format(Decimal(text), "f")
        if "." not in text:
            text += ".0"
    return text


def format_value(value: Any) -> str:
    """Render *value* as a Flux literal."""
    if isinstance(value, str):
        return format_string(value)
    # bool before numbers: bool is an int subclass
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float, Decimal)):
        return _format_number(value)
    if isinstance(value, (datetime, date)):
        return format_time(value)
    return format_string(str(value))


def format_array(values: Any) -> str:
    return "[" + ", ".join(format_value(v) for v in values) + "]"


def field_ref(field: str) -> str:
    """Reference a column of the current row: ``r.name`` or ``r["odd name"]``."""
    if _IDENTIFIER.match(field):
        return f"r.{field}"
    return f"r[{format_string(field)}]"


def column_list(fields: Any) -> str:
    return "[" + ", ".join(format_string(str(f)) for f in fields) + "]"
