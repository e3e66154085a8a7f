"""
errors.py — engine error taxonomy and the standard error envelope.

  ValidationError     bad caller input (negative amounts, unknown category, malformed payload)
  ConfigurationError  missing or invalid rules for the requested financial year / regime

Neither is retried: the engine is a pure function, so a retry belongs to whatever
transport calls it. to_error_response() renders either one into the
{"error": {"code", "message", "details"}} envelope with an HTTP-equivalent status.
"""
from __future__ import annotations

from typing import Any, Optional


class EngineError(Exception):
    """Base class for every error raised by the tax engine."""

    code = "ENGINE_ERROR"
    status_code = 500

    def __init__(self, message: str, details: Optional[list[dict[str, Any]]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details: list[dict[str, Any]] = details or []


class ValidationError(EngineError):
    """Caller supplied input the engine refuses to compute on."""

    code = "VALIDATION_ERROR"
    status_code = 422


class ConfigurationError(EngineError):
    """Rules for the requested financial year, regime or section are missing or invalid."""

    code = "CONFIGURATION_ERROR"
    status_code = 500


def to_error_response(exc: EngineError):
    """
    Build (status_code, ErrorResponse) for an engine error.

    Mirrors the {error: {code, message, details}} envelope used for every failure,
    so a transport layer can serialise it without knowing the error type.
    """
    from itr_engine.intake.schemas import ErrorBody, ErrorDetail, ErrorResponse

    details = [
        ErrorDetail(field=d.get("field"), issue=str(d.get("issue", "")))
        for d in exc.details
    ]
    body = ErrorResponse(
        error=ErrorBody(code=exc.code, message=exc.message, details=details)
    )
    return exc.status_code, body


__all__ = [
    "EngineError",
    "ValidationError",
    "ConfigurationError",
    "to_error_response",
]
