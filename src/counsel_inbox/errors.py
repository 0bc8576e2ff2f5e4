"""
Network, validation and authorization errors.
"""

from typing import Any, Optional


class InboxError(Exception):
    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[dict[str, Any]] = None,
        status: Optional[int] = None,
    ):
        super().__init__(message)
        self.code = code
        self.details = details
        self.status = status

    @property
    def retryable(self) -> bool:
        return False


class NetworkError(InboxError):
    """Transport failure or server-side error. The user may retry."""

    def __init__(self, message: str, status: Optional[int] = None, details: Optional[dict[str, Any]] = None):
        super().__init__("network_error", message, details, status)

    @property
    def retryable(self) -> bool:
        return True


class ValidationError(InboxError):
    def __init__(self, message: str, code: str = "validation_error",
                 status: Optional[int] = None, details: Optional[dict[str, Any]] = None):
        super().__init__(code, message, details, status)


class AuthError(InboxError):
    def __init__(self, message: str, code: str = "auth_error", status: Optional[int] = None):
        super().__init__(code, message, status=status)


class FetchCancelledError(InboxError):
    def __init__(self, message: str = "Fetch superseded by a newer request"):
        super().__init__("cancelled", message)


class UnsupportedRoleError(InboxError):
    def __init__(self, role: str):
        super().__init__("unsupported_role", f"No inbox is available for role {role!r}", {"role": role})
