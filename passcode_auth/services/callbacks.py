from __future__ import annotations

from enum import Enum
import logging
from typing import Any, Protocol

from passcode_auth.config import settings
from passcode_auth.security import anonymise

LOGGER = logging.getLogger(__name__)


class LoginDecision(str, Enum):
    ALLOW = "allow"
    DENY = "deny"


class ErrorKind(str, Enum):
    TOO_MANY_LOGIN_ATTEMPTS = "too_many_login_attempts"
    UNAUTHORIZED = "unauthorized"
    ACCESS_DENIED = "access_denied"


class AuthCallbacks(Protocol):
    """Hooks the application plugs into AuthService."""

    def deliver_code(self, identity: str, code: str) -> None:
        """Send code to identity out of band. Raise to abort the request."""

    def decide_login(self, identity: str) -> LoginDecision:
        """Allow or deny a login whose code checked out."""

    def translate(self, kind: ErrorKind, **context: Any) -> str:
        """Render a user-facing message for kind."""


MESSAGES = {
    ErrorKind.TOO_MANY_LOGIN_ATTEMPTS: (
        "Too many login attempts. Please try again in {countdown} second(s)."
    ),
    ErrorKind.UNAUTHORIZED: "You must log in to access this page.",
    ErrorKind.ACCESS_DENIED: "Access denied.",
}


class DefaultCallbacks:
    """Logs codes instead of mailing them and lets everyone in."""

    def __init__(self, debug: bool | None = None) -> None:
        self.debug = settings.otp_debug if debug is None else debug

    def deliver_code(self, identity: str, code: str) -> None:
        if self.debug:
            LOGGER.warning("One-time password for %s is %s", identity, code)
        else:
            LOGGER.info(
                "No delivery configured; dropped code for %s", anonymise(identity)
            )

    def decide_login(self, identity: str) -> LoginDecision:
        return LoginDecision.ALLOW

    def translate(self, kind: ErrorKind, **context: Any) -> str:
        template = MESSAGES[ErrorKind(kind)]
        countdown = context.get("countdown")
        if countdown is not None:
            context["countdown"] = max(1, int(-(-countdown // 1)))
        return template.format(**context)
