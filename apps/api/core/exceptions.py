"""
Custom exception classes and error handling.

HTTP-facing errors share a consistent structure (status + error_code).
Domain errors raised by the scoring pipeline live at the bottom.
"""
from fastapi import HTTPException, status
from typing import Optional, Dict, Any


class APIException(HTTPException):
    """Base API exception with consistent structure."""

    def __init__(
        self,
        status_code: int,
        detail: str,
        error_code: Optional[str] = None,
        headers: Optional[Dict[str, Any]] = None
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.error_code = error_code


class NotFoundError(APIException):
    """Resource not found."""

    def __init__(self, resource: str, identifier: str):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{resource} not found: {identifier}",
            error_code="NOT_FOUND"
        )


class ValidationError(APIException):
    """Validation error."""

    def __init__(self, detail: str, field: Optional[str] = None):
        error_code = f"VALIDATION_ERROR_{field.upper()}" if field else "VALIDATION_ERROR"
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=detail,
            error_code=error_code
        )


# ---------------------------------------------------------------------------
# Scoring pipeline errors
# ---------------------------------------------------------------------------

class UnknownSportError(ValueError):
    """Sport tag has no registered variant."""

    def __init__(self, sport: str):
        super().__init__(f"Unknown sport: {sport}")
        self.sport = sport


class MissingPromptConfigurationError(LookupError):
    """No usable guideline text for a sport. Terminal for the (slot, sport) pair."""


class ScoringResponseError(ValueError):
    """Model output could not be parsed or failed validation. Retryable."""
