from typing import Optional


class AppException(Exception):
    """Base application exception."""

    pass


class NotFoundError(AppException):
    """Resource not found exception."""

    pass


class ValidationError(AppException):
    """Validation error exception."""

    pass


class ConflictError(AppException):
    """Concurrent update detected via a version mismatch."""

    pass


class ExternalProviderError(AppException):
    """A call to an external provider (payments) failed."""

    pass


class WebhookSignatureError(AppException):
    """Inbound webhook failed signature verification."""

    pass


class QuotaExceededError(AppException):
    """
    Usage quota reached for a resource kind.

    Carries the structured fields callers need to render an upgrade prompt.
    """

    def __init__(
        self,
        kind: str,
        current_usage: int,
        limit: int,
        needs_upgrade: bool,
        message: Optional[str] = None,
    ):
        self.kind = kind
        self.current_usage = current_usage
        self.limit = limit
        self.needs_upgrade = needs_upgrade
        self.message = message or f"{kind.capitalize()} limit reached"
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {
            "detail": self.message,
            "kind": self.kind,
            "current_usage": self.current_usage,
            "limit": self.limit,
            "needs_upgrade": self.needs_upgrade,
        }
