"""Flux row <-> record conversion, with optional pydantic models."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from .exceptions import InfluxQueryError

TModel = TypeVar("TModel", bound=BaseModel)

# Flux annotation columns present on every row; not part of the data.
ANNOTATION_COLUMNS: frozenset[str] = frozenset({"result", "table"})


def row_to_record(row: Mapping[str, Any]) -> dict[str, Any]:
    """Drop Flux annotation columns from a decoded row."""
    return {k: v for k, v in row.items() if k not in ANNOTATION_COLUMNS}


def model_from_row(cls: type[TModel], row: Mapping[str, Any]) -> TModel:
    """Validate a decoded row into *cls*."""
    try:
        return cls.model_validate(row_to_record(row))
    except PydanticValidationError as e:
        raise InfluxQueryError(
            f"Row does not match {cls.__name__}: {e.error_count()} error(s)"
        ) from e


def record_to_mapping(data: Any) -> Mapping[str, Any]:
    """Accept a mapping or a pydantic model as a record to write."""
    if isinstance(data, BaseModel):
        return data.model_dump(exclude_none=True)
    return data
