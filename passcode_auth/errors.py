from __future__ import annotations


class AuthError(Exception):
    kind = "auth_error"
    default_message = "Authentication failed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationFailed(AuthError, ValueError):
    """Malformed identity, reported per field."""

    kind = "validation_failed"
    default_message = "Invalid request"

    def __init__(self, errors: dict[str, list[str]]) -> None:
        self.errors = errors
        summary = "; ".join(
            f"{field} {message}" for field, messages in errors.items() for message in messages
        )
        super().__init__(summary or None)


class RateLimited(AuthError):
    kind = "rate_limited"
    default_message = "Too many requests"

    def __init__(self, countdown: float, message: str | None = None) -> None:
        self.countdown = countdown
        super().__init__(message)

    @property
    def retry_after(self) -> int:
        # whole seconds, never zero so clients always back off
        return max(1, int(-(-self.countdown // 1)))


class InvalidCode(AuthError):
    kind = "invalid_code"
    default_message = "Invalid code"


class CodeExpired(AuthError):
    kind = "code_expired"
    default_message = "Code expired"


class AccessDenied(AuthError):
    kind = "access_denied"
    default_message = "Access denied"


class Unauthorized(AuthError):
    kind = "unauthorized"
    default_message = "Not authenticated"


class DeliveryFailed(AuthError, RuntimeError):
    kind = "delivery_failed"
    default_message = "Failed to deliver the code"


class StorageFailure(AuthError, RuntimeError):
    kind = "storage_failure"
    default_message = "Storage is unavailable"
