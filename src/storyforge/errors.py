"""
Storyforge - Core Error Types

Exception hierarchy for the compression and credit accounting engine.
Every exception raised by the package derives from StoryforgeError and carries
an HTTP-style status code for the route handlers that surface it.

Charges never raise on overdraft; they clamp. InsufficientCreditsError comes
only from pre-call affordability checks.
"""

from enum import Enum
from typing import Any

from pydantic import ValidationError as PydanticValidationError


class ErrorCode(str, Enum):
    """Machine-readable codes for error responses."""

    INVALID_INPUT = "INVALID_INPUT"
    INSUFFICIENT_CREDITS = "INSUFFICIENT_CREDITS"
    PROVIDER_ERROR = "PROVIDER_ERROR"
    PROVIDER_TIMEOUT = "PROVIDER_TIMEOUT"
    CACHE_FAILURE = "CACHE_FAILURE"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class StoryforgeError(Exception):
    """Base exception for all Storyforge errors."""

    status_code = 500

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": type(self).__name__,
            "message": self.message,
            "details": self.details,
        }


class ConfigurationError(StoryforgeError):
    """Configuration values are missing or fail validation."""


class ValidationError(StoryforgeError):
    """Caller input is malformed or violates a story invariant."""

    status_code = 400

    @classmethod
    def from_pydantic(cls, error: PydanticValidationError, subject: str) -> "ValidationError":
        """Wrap a pydantic error, keeping one entry per failing field."""
        field_errors = [
            {
                "field": " -> ".join(str(part) for part in item["loc"]),
                "message": item["msg"],
                "type": item["type"],
            }
            for item in error.errors()
        ]
        return cls(f"Invalid {subject}", details={"validation_errors": field_errors})


class InsufficientCreditsError(StoryforgeError):
    """The balance cannot cover the estimated credits of a generation call."""

    status_code = 402

    def __init__(self, balance: int, credits_required: int, details: dict[str, Any] | None = None):
        super().__init__(
            f"Insufficient credits: {credits_required} required, {balance} available",
            {**(details or {}), "balance": balance, "credits_required": credits_required},
        )
        self.balance = balance
        self.credits_required = credits_required


class CacheError(StoryforgeError):
    """A generation cache backend refused or failed an operation."""


class ProviderError(StoryforgeError):
    """The language-model provider call failed."""

    status_code = 502


class ProviderTimeoutError(ProviderError):
    """The language-model provider did not answer in time."""

    def __init__(self, provider: str, timeout: float):
        super().__init__(
            f"Provider {provider} timed out after {timeout}s",
            {"provider": provider, "timeout": timeout},
        )


# Most specific classes first
_ERROR_CODES: list[tuple[type[Exception], ErrorCode]] = [
    (ProviderTimeoutError, ErrorCode.PROVIDER_TIMEOUT),
    (ProviderError, ErrorCode.PROVIDER_ERROR),
    (ValidationError, ErrorCode.INVALID_INPUT),
    (InsufficientCreditsError, ErrorCode.INSUFFICIENT_CREDITS),
    (CacheError, ErrorCode.CACHE_FAILURE),
    (ConfigurationError, ErrorCode.CONFIGURATION_ERROR),
]


def extract_error_code(error: Exception) -> ErrorCode:
    """ErrorCode for an exception; anything unrecognized is an internal error."""
    for error_type, code in _ERROR_CODES:
        if isinstance(error, error_type):
            return code
    return ErrorCode.INTERNAL_ERROR


def make_error_response(error: Exception) -> dict[str, Any]:
    """
    Build the response body for a failed request.

    Example:
        >>> make_error_response(InsufficientCreditsError(balance=3, credits_required=24))
        {
            "success": False,
            "error_code": "INSUFFICIENT_CREDITS",
            "status_code": 402,
            "message": "Insufficient credits: 24 required, 3 available",
            "details": {"balance": 3, "credits_required": 24}
        }

    Errors from outside the package are reported without their message.
    """
    if isinstance(error, StoryforgeError):
        return {
            "success": False,
            "error_code": extract_error_code(error).value,
            "status_code": error.status_code,
            "message": error.message,
            "details": error.details,
        }
    return {
        "success": False,
        "error_code": ErrorCode.INTERNAL_ERROR.value,
        "status_code": 500,
        "message": "Internal error",
        "details": {},
    }
