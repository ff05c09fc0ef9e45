"""
Custom exceptions for 3Commas client.

Remote error bodies are carried verbatim on APIError.response.
"""

from typing import Optional, Any


class ThreeCommasError(Exception):
    """Base exception for all 3Commas errors."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class APIError(ThreeCommasError):
    """Request was rejected by the platform (non-2xx response)."""

    def __init__(self, message: str, status_code: Optional[int] = None,
                 response: Any = None):
        super().__init__(message, {"status_code": status_code, "response": response})
        self.status_code = status_code
        self.response = response


class AuthenticationError(APIError):
    """Platform rejected the API key or signature."""
    pass


class RateLimitError(APIError):
    """Rate limit exceeded."""

    def __init__(self, message: str, status_code: Optional[int] = 429,
                 response: Any = None, retry_after: Optional[float] = None):
        super().__init__(message, status_code=status_code, response=response)
        self.details["retry_after"] = retry_after
        self.retry_after = retry_after


class TransportError(ThreeCommasError):
    """No response was received (connection failure, DNS, TLS...)."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message, {"cause": repr(cause) if cause else None})
        self.cause = cause


class TimeoutError(TransportError):
    """Request timed out."""
    pass


class ValidationError(ThreeCommasError):
    """Input or response validation failed."""
    pass
