"""Domain error types.

Each error carries the HTTP status it maps to; the global handlers in
``fitpeak.middleware.error_handler`` render them as ``{"error": message}``.
"""

from __future__ import annotations


class DomainError(Exception):
    """Base domain error."""

    status_code = 400

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class AuthenticationRequired(DomainError):
    """Caller is not logged in."""

    status_code = 401

    def __init__(self, message: str = "ログインしてください") -> None:
        super().__init__(message)


class PermissionDenied(DomainError):
    """Caller is logged in but may not act on the resource."""

    status_code = 403

    def __init__(self, message: str = "この操作を行う権限がありません") -> None:
        super().__init__(message)


class InvalidArgument(DomainError):
    """Rejected before any write (self-targeting, bad enum value, empty input)."""

    status_code = 400


class NotFoundError(DomainError):
    """Resource not found."""

    status_code = 404


class ConflictError(DomainError):
    """The backend refused a write; the message is the backend's own."""

    status_code = 409


class EmailDeliveryError(DomainError):
    """The email provider rejected or failed a send."""

    status_code = 500

    def __init__(self, message: str = "Failed to send email") -> None:
        super().__init__(message)


class ConfigurationError(DomainError):
    """A required server-side secret is missing."""

    status_code = 503

    def __init__(self, message: str = "Server configuration error") -> None:
        super().__init__(message)
