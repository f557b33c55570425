# core/errors.py
from __future__ import annotations
from typing import Any


class EngineError(Exception):
    pass


class InvalidSchemaError(EngineError):
    pass


class DescriptorValidationError(EngineError):
    """Raised before any statement is built: unknown field, unknown model, bad input shape."""


class NotFoundError(EngineError):
    pass


class CountOverflowError(EngineError, OverflowError):
    pass


class ExecuteError(EngineError):
    """
    Carries the failing statement and the driver error.
    Only ever handed to the error hook; callers get TransportFailure instead.
    """

    def __init__(self, original_error: BaseException, query: Any) -> None:
        self.original_error = original_error
        self.query = query
        message = str(original_error) if isinstance(original_error, Exception) else "unknown error"
        super().__init__(message)


class TransportFailure(EngineError):
    def __init__(self, message: str = "Internal server error.") -> None:
        super().__init__(message)
