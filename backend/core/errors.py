"""
Typed failures for the image generation pipeline.

The HTTP layer turns responses into one of these classes and the retry loop
dispatches on the class, never on the message text.
"""
from enum import Enum
from typing import Any, Optional


QUOTA_MARKERS = ("quota", "resource_exhausted", "rate limit", "rate-limit")


class ErrorKind(str, Enum):
    CONFIGURATION = "configuration"
    VALIDATION = "validation"
    AUTHORIZATION = "authorization"
    RATE_LIMIT = "rate_limit"
    TIMEOUT = "timeout"
    TRANSPORT = "transport"
    UPSTREAM = "upstream"
    EMPTY_RESPONSE = "empty_response"
    REFUSAL = "refusal"


class GenerationError(Exception):
    """Base class for every failure a generation call can end with."""

    kind: ErrorKind = ErrorKind.UPSTREAM
    retryable: bool = False

    def __init__(self, message: str = "", details: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.details = details
        self.status_code = status_code

    def combined_message(self) -> str:
        """Message and details joined, as shown for diagnostics."""
        parts = [p for p in (self.message, self.details) if p]
        return " ".join(parts)

    @property
    def mentions_quota(self) -> bool:
        text = self.combined_message().lower()
        return any(marker in text for marker in QUOTA_MARKERS)


class ConfigurationError(GenerationError):
    kind = ErrorKind.CONFIGURATION


class ValidationError(GenerationError):
    kind = ErrorKind.VALIDATION


class AuthorizationError(GenerationError):
    kind = ErrorKind.AUTHORIZATION


class RateLimitError(GenerationError):
    kind = ErrorKind.RATE_LIMIT
    retryable = True


class GenerationTimeoutError(GenerationError):
    kind = ErrorKind.TIMEOUT
    retryable = True


class TransportError(GenerationError):
    kind = ErrorKind.TRANSPORT
    retryable = True


class UpstreamError(GenerationError):
    kind = ErrorKind.UPSTREAM

    @property
    def is_quota_exhausted(self) -> bool:
        return self.status_code == 429 or self.mentions_quota


class EmptyResponseError(GenerationError):
    kind = ErrorKind.EMPTY_RESPONSE


class RefusalError(GenerationError):
    kind = ErrorKind.REFUSAL


class GenerationFailed(Exception):
    """Raised to UI callers; carries only the user-displayable message."""

    def __init__(self, message: str, kind: Optional[ErrorKind] = None):
        super().__init__(message)
        self.message = message
        self.kind = kind


def error_from_response(status_code: int, body: Any) -> GenerationError:
    """
    Build the typed error for a non-success proxy response.

    Args:
        status_code: HTTP status returned by the proxy
        body: Parsed JSON body, or None when the body was not JSON

    Returns:
        The GenerationError subclass matching the status code
    """
    message = None
    details = None
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict):
            # Provider-shaped error object passed straight through
            message = error.get("message")
            details = error.get("status")
        elif error:
            message = str(error)
        if body.get("details"):
            details = str(body["details"])

    if not message and not details:
        message = f"Request failed with status {status_code}"

    if status_code == 429:
        return RateLimitError(message, details, status_code)
    if status_code in (400, 413, 422):
        return ValidationError(message, details, status_code)
    if status_code in (401, 403):
        return AuthorizationError(message, details, status_code)
    if status_code == 500 and message and "configuration" in message.lower():
        return ConfigurationError(message, details, status_code)
    return UpstreamError(message, details, status_code)
