"""Exceptions shared by the API and the learner client."""
from typing import Any, Dict, Optional


class WordGardenError(Exception):
    """Base error carrying the HTTP status and JSON body it maps to."""

    status_code: int = 500

    def __init__(self, message: str, detail: Any = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.detail = detail
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.message}
        if self.detail is not None:
            body["detail"] = self.detail
        return body


class ConfigurationError(WordGardenError):
    """A required secret or credential is missing on the server."""
    status_code = 500


class InvalidRequestError(WordGardenError):
    """Malformed request body or out-of-range field."""
    status_code = 400


class AuthorizationError(WordGardenError):
    """Admin secret did not match."""
    status_code = 401

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message)


class RateLimitError(WordGardenError):
    """Client exceeded a rate limit; retry after the given seconds."""
    status_code = 429

    def __init__(self, retry_after: int, message: str = "Rate limited"):
        super().__init__(message)
        self.retry_after = retry_after


class UpstreamError(WordGardenError):
    """The backing store or the generation API failed."""
    status_code = 502


class ModelOutputError(UpstreamError):
    """The generation model returned something that is not a JSON array."""

    def __init__(self, message: str, raw: str):
        super().__init__(message)
        self.raw = raw

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.message, "raw": self.raw}


class SessionStateError(Exception):
    """Illegal transition requested from a session state machine."""


class ApiError(Exception):
    """Non-2xx response received by the learner-side API client."""

    def __init__(self, message: str, status_code: int = 0):
        super().__init__(message)
        self.status_code = status_code
