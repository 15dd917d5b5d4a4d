"""
Login orchestration.

Ties the OTP ledger, the session ledger and the two rate-limit buckets
together. Nothing here talks HTTP: callers get plain results or
AuthError subclasses and map them onto their own session/cookie store.

A login runs: rate check -> code verification -> access policy ->
session creation. Denied or failed attempts never create a session.
"""
from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Callable, Optional

from passcode_auth.config import Settings, settings
from passcode_auth.errors import AccessDenied, DeliveryFailed, RateLimited, Unauthorized
from passcode_auth.models.schema.otp import OtpEntry
from passcode_auth.models.schema.session import SessionEntry
from passcode_auth.security import anonymise, live_connection_id
from passcode_auth.services.callbacks import (
    AuthCallbacks,
    DefaultCallbacks,
    ErrorKind,
    LoginDecision,
)
from passcode_auth.services.otp import (
    OtpLedger,
    normalize_identity,
    otp_ledger,
    validate_identity,
)
from passcode_auth.services.rate_limiter import TokenBucket
from passcode_auth.services.sessions import SessionLedger, session_ledger
from passcode_auth.services.tokens import (
    TokenError,
    create_remember_token,
    decode_remember_token,
)

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class IssuedCode:
    identity: str
    code: str
    record: OtpEntry
    expires_in_seconds: int


@dataclass(frozen=True)
class LoginResult:
    session: SessionEntry
    token: str
    live_connection_id: str
    # callers must drop every piece of pre-existing session state first
    reset_session: bool = True
    remember_token: Optional[str] = None
    remember_max_age: Optional[int] = None


@dataclass(frozen=True)
class SessionLookup:
    session: SessionEntry
    token: str
    live_connection_id: str
    restored_from_remember_me: bool = False


@dataclass(frozen=True)
class LogoutResult:
    live_connection_id: Optional[str]
    reset_session: bool = True
    clear_remember_me: bool = True


def build_buckets(config: Settings) -> tuple[TokenBucket, TokenBucket]:
    issuance = config.otp_issuance_rate
    attempts = config.login_attempt_rate
    return (
        TokenBucket(
            "otp_issuance",
            issuance.capacity,
            issuance.window_seconds,
            enabled=config.rate_limiting_enabled,
        ),
        TokenBucket(
            "login_attempts",
            attempts.capacity,
            attempts.window_seconds,
            enabled=config.rate_limiting_enabled,
        ),
    )


class AuthService:
    def __init__(
        self,
        otp: OtpLedger,
        sessions: SessionLedger,
        issuance_bucket: TokenBucket,
        login_bucket: TokenBucket,
        callbacks: AuthCallbacks,
        config: Settings = settings,
        disconnect_notifier: Callable[[str], None] | None = None,
    ) -> None:
        self.otp = otp
        self.sessions = sessions
        self.issuance_bucket = issuance_bucket
        self.login_bucket = login_bucket
        self.callbacks = callbacks
        self.config = config
        self.disconnect_notifier = disconnect_notifier

    def request_code(self, identity: str) -> IssuedCode:
        """
        Issue a one-time password for identity and hand it to deliver_code.

        Raises:
            ValidationFailed: malformed email, nothing consumed
            RateLimited: issuance bucket empty, no code generated
            DeliveryFailed: the delivery callback failed
        """
        email = validate_identity(identity)
        try:
            self.issuance_bucket.take(email)
        except RateLimited:
            LOGGER.warning("Code request rate limited for %s", anonymise(email))
            raise

        code, record = self.otp.issue(email)
        try:
            self.callbacks.deliver_code(email, code)
        except DeliveryFailed:
            raise
        except Exception as exc:
            LOGGER.error("Code delivery failed for %s", anonymise(email), exc_info=exc)
            raise DeliveryFailed(str(exc) or None) from exc

        return IssuedCode(
            identity=email,
            code=code,
            record=record,
            expires_in_seconds=self.otp.expiration_seconds,
        )

    def submit_code(self, identity: str, code: str) -> LoginResult:
        """
        Exchange a one-time password for a session.

        Raises:
            RateLimited: login bucket empty, message already translated
            InvalidCode / CodeExpired: verification failed
            AccessDenied: the access policy said no
        """
        email = normalize_identity(identity or "")
        try:
            self.login_bucket.take(email)
        except RateLimited as exc:
            LOGGER.warning("Login attempts rate limited for %s", anonymise(email))
            message = self.callbacks.translate(
                ErrorKind.TOO_MANY_LOGIN_ATTEMPTS, countdown=exc.countdown
            )
            raise RateLimited(exc.countdown, message) from exc

        self.otp.verify(email, code)

        decision = LoginDecision(self.callbacks.decide_login(email))
        if decision is LoginDecision.DENY:
            LOGGER.info("Login denied by policy for %s", anonymise(email))
            raise AccessDenied(self.callbacks.translate(ErrorKind.ACCESS_DENIED))

        session = self.sessions.create(email)
        remember_token = None
        remember_max_age = None
        if self.config.remember_me_enabled:
            remember_token = create_remember_token(
                session.token,
                validity_days=self.config.session_validity_days,
                secret=self.config.secret_key,
                algorithm=self.config.jwt_algorithm,
            )
            remember_max_age = self.config.session_validity_seconds

        return LoginResult(
            session=session,
            token=session.token,
            live_connection_id=live_connection_id(session.token),
            remember_token=remember_token,
            remember_max_age=remember_max_age,
        )

    def current_session(
        self,
        session_token: str | None,
        remember_token: str | None = None,
    ) -> SessionLookup | None:
        """Resolve the caller's session, re-reading the store every time."""
        if session_token:
            session = self.sessions.find_by_token(session_token)
            if session is None:
                return None
            return SessionLookup(
                session=session,
                token=session_token,
                live_connection_id=live_connection_id(session_token),
            )

        if not self.config.remember_me_enabled:
            return None
        token = self._resolve_remember_token(remember_token)
        if token is None:
            return None
        session = self.sessions.find_by_token(token)
        if session is None:
            return None
        return SessionLookup(
            session=session,
            token=token,
            live_connection_id=live_connection_id(token),
            restored_from_remember_me=True,
        )

    def require_session(
        self,
        session_token: str | None,
        remember_token: str | None = None,
    ) -> SessionLookup:
        lookup = self.current_session(session_token, remember_token)
        if lookup is None:
            raise Unauthorized(self.callbacks.translate(ErrorKind.UNAUTHORIZED))
        return lookup

    def log_out(
        self,
        session_token: str | None,
        remember_token: str | None = None,
    ) -> LogoutResult:
        """
        Revoke the caller's session and ask live connections to drop.

        A client holding only the remember-me cookie still owns a server-side
        session, so the signed token is resolved and revoked as well.
        """
        token = session_token or self._resolve_remember_token(remember_token)
        if not token:
            return LogoutResult(live_connection_id=None)

        self.sessions.delete_by_token(token)
        connection_id = live_connection_id(token)
        if self.disconnect_notifier is not None:
            self.disconnect_notifier(connection_id)
        return LogoutResult(live_connection_id=connection_id)

    def revoke_identity(self, identity: str) -> int:
        """Terminate every session of identity, e.g. after an email change."""
        return self.sessions.delete_all_by_identity(normalize_identity(identity))

    def _resolve_remember_token(self, remember_token: str | None) -> str | None:
        if not remember_token:
            return None
        try:
            return decode_remember_token(
                remember_token,
                secret=self.config.secret_key,
                algorithm=self.config.jwt_algorithm,
            )
        except TokenError as exc:
            LOGGER.info("Ignoring remember-me token: %s", exc)
            return None


def _log_disconnect(connection_id: str) -> None:
    LOGGER.info("Disconnect requested for %s", connection_id)


issuance_bucket, login_bucket = build_buckets(settings)

auth_service = AuthService(
    otp=otp_ledger,
    sessions=session_ledger,
    issuance_bucket=issuance_bucket,
    login_bucket=login_bucket,
    callbacks=DefaultCallbacks(),
    disconnect_notifier=_log_disconnect,
)
