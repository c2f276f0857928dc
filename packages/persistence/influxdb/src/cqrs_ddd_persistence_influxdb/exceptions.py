"""InfluxDB persistence exceptions.

All exceptions inherit from ``InfluxDBAdapterError`` and provide
``to_dict()`` for API-friendly error responses.
"""

from __future__ import annotations

from difflib import get_close_matches
from typing import Any


class InfluxDBAdapterError(Exception):
    """Base for all InfluxDB adapter errors."""

    status_code: int = 500

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.__class__.__name__,
            "message": str(self),
            "status_code": self.status_code,
        }


class InfluxConfigurationError(InfluxDBAdapterError):
    """Raised at construction time when required setup is missing or invalid."""


class InfluxConnectionError(InfluxDBAdapterError):
    """Raised when the InfluxDB client cannot be created or resolved."""


class InfluxUnsupportedOperationError(InfluxDBAdapterError):
    """Raised for operations an append-only store cannot perform."""

    status_code = 405

    def __init__(self, message: str, method: str | None = None) -> None:
        self.method = method
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": "METHOD_NOT_ALLOWED",
            "message": str(self),
            "method": self.method,
            "status_code": self.status_code,
        }


class InfluxNotFoundError(InfluxDBAdapterError):
    """Raised when a single-record read matches no rows."""

    status_code = 404

    def __init__(self, record_id: object) -> None:
        self.record_id = record_id
        super().__init__(f"No record found for id '{record_id}'")

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": "NOT_FOUND",
            "message": str(self),
            "id": self.record_id,
            "status_code": self.status_code,
        }


class InfluxQueryError(InfluxDBAdapterError):
    """Raised when a filter, sort or record cannot be translated."""

    status_code = 400

    def __init__(self, message: str, path: str | None = None) -> None:
        self.message = message
        self.path = path
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": "VALIDATION_ERROR",
            "message": self.message,
            "path": self.path,
            "status_code": self.status_code,
        }


class InfluxOperatorNotFoundError(InfluxQueryError):
    """
    Unknown filter operator.

    Provides fuzzy-matched suggestions for likely intended operators.
    """

    def __init__(
        self, operator: str, valid_operators: list[str], path: str | None = None
    ) -> None:
        self.operator = operator
        self.valid_operators = valid_operators
        self.suggestions = get_close_matches(operator, valid_operators, n=3, cutoff=0.6)

        message = f"Unknown operator: '{operator}'."
        if self.suggestions:
            message += f" Did you mean: {', '.join(self.suggestions)}?"
        message += f" Valid operators: {', '.join(sorted(valid_operators))}"
        super().__init__(message, path=path)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": "OPERATOR_NOT_FOUND",
            "operator": self.operator,
            "path": self.path,
            "suggestions": self.suggestions,
            "valid_operators": sorted(self.valid_operators),
            "status_code": self.status_code,
        }


class InfluxStoreError(InfluxDBAdapterError):
    """General store error wrapping whatever the InfluxDB client raised."""

    def __init__(
        self,
        original: BaseException,
        *,
        name: str = "InfluxDBError",
        code: int | str | None = None,
        status_code: int | None = None,
    ) -> None:
        self.original = original
        self.name = name
        self.code = code
        if status_code is not None:
            self.status_code = status_code
        super().__init__(str(original) or original.__class__.__name__)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": "STORE_ERROR",
            "name": self.name,
            "message": str(self),
            "code": self.code,
            "status_code": self.status_code,
        }


__all__: list[str] = [
    "InfluxConfigurationError",
    "InfluxConnectionError",
    "InfluxDBAdapterError",
    "InfluxNotFoundError",
    "InfluxOperatorNotFoundError",
    "InfluxQueryError",
    "InfluxStoreError",
    "InfluxUnsupportedOperationError",
]
