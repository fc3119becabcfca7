"""Error taxonomy for ChatKit.

Frame- and shape-level problems are handled inside the stream engine and
never reach the host. The errors here are the ones that do: transport and
auth failures from a vendor API, malformed patches, and capabilities an
adapter does not provide.
"""

from typing import Any, Optional


class ChatKitError(Exception):
    """Base error class for all ChatKit errors.

    Attributes:
        message: Human-readable error message
        error_code: Categorized error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        error_code: str = "chatkit_error",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for host error reporting."""
        return {
            "message": self.message,
            "error_code": self.error_code,
            "details": self.details,
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.error_code}: {self.message})"


class ChatApiError(ChatKitError):
    """A vendor API call failed.

    ``status`` is the HTTP status code, or 0 when the request never got a
    response (connection refused, timeout, ...).
    """

    def __init__(
        self,
        message: str,
        status: int = 0,
        body: Any = None,
        provider: str = "",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, error_code=self._code_for(status), details=details)
        self.status = status
        self.body = body
        self.provider = provider

    @property
    def is_retryable(self) -> bool:
        return self.status == 0 or self.status == 429 or self.status >= 500

    @staticmethod
    def _code_for(status: int) -> str:
        if status == 0:
            return "connection_error"
        if status in (401, 403):
            return "authentication_error"
        if status == 404:
            return "not_found"
        if status == 429:
            return "rate_limit"
        if status >= 500:
            return "server_error"
        return "request_error"

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data.update({"status": self.status, "provider": self.provider, "is_retryable": self.is_retryable})
        return data


class PatchError(ChatKitError):
    """A patch could not be parsed or applied to the message tree."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message, error_code="invalid_patch", details=details)


class UnsupportedOperationError(ChatKitError):
    """The selected adapter does not offer this capability."""

    def __init__(self, operation: str, provider: str) -> None:
        super().__init__(f"{provider} does not support {operation}", error_code="unsupported_operation", details={"operation": operation, "provider": provider})
        self.operation = operation
        self.provider = provider
