from datetime import datetime, timedelta, timezone

import jwt

from passcode_auth.config import settings


class TokenError(ValueError):
    pass


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def create_remember_token(
    session_token: str,
    validity_days: int | None = None,
    secret: str | None = None,
    algorithm: str | None = None,
) -> str:
    """Sign a session token for the long-lived remember-me cookie."""
    secret = secret or settings.secret_key
    if not secret:
        raise TokenError("Secret key is not configured")
    if validity_days is None:
        validity_days = settings.session_validity_days
    now = _utcnow()
    expires_at = now + timedelta(days=validity_days)
    payload = {
        "sid": session_token,
        "type": "remember_me",
        "iat": int(now.timestamp()),
        "exp": int(expires_at.timestamp()),
    }
    return jwt.encode(payload, secret, algorithm=algorithm or settings.jwt_algorithm)


def decode_remember_token(
    token: str,
    secret: str | None = None,
    algorithm: str | None = None,
) -> str:
    payload = _decode_token(
        token,
        "remember_me",
        secret or settings.secret_key,
        algorithm or settings.jwt_algorithm,
    )
    session_token = payload.get("sid")
    if not session_token:
        raise TokenError("Remember-me token is missing session token")
    return session_token


def _decode_token(token: str, expected_type: str, secret: str, algorithm: str) -> dict:
    if not token:
        raise TokenError("Token is missing")
    try:
        payload = jwt.decode(token, secret, algorithms=[algorithm])
    except jwt.ExpiredSignatureError as exc:
        raise TokenError("Token has expired") from exc
    except jwt.InvalidTokenError as exc:
        raise TokenError("Invalid token") from exc
    if payload.get("type") != expected_type:
        raise TokenError("Invalid token type")
    return payload
