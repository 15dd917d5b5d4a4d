"""
Hashing helpers shared by the ledgers.

One-time passwords are stored as bcrypt hashes only. Session tokens are
random and opaque; anything handed to real-time channels or logs is a
one-way digest of them.
"""
import base64
import hashlib
import secrets

from passlib.context import CryptContext

from passcode_auth.config import settings

LIVE_CONNECTION_PREFIX = "passcode_auth_sessions:"


def build_pwd_context(rounds: int | None = None) -> CryptContext:
    return CryptContext(
        schemes=["bcrypt"],
        deprecated="auto",
        bcrypt__rounds=rounds or settings.otp_hash_rounds,
    )


pwd_context = build_pwd_context()


def generate_session_token() -> str:
    # 32 bytes of entropy, url-safe so it can travel in cookies and headers
    return secrets.token_urlsafe(32)


def live_connection_id(token: str) -> str:
    """Identifier for real-time connections opened with this session token.

    Derived from the token on demand, so rotating or revoking the token
    also retires the identifier. The digest does not reveal the token.
    """
    digest = hashlib.sha256(f"live-connection:{token}".encode("utf-8")).digest()
    encoded = base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")
    return f"{LIVE_CONNECTION_PREFIX}{encoded}"


def anonymise(identity: str) -> str:
    return hashlib.sha256(identity.encode("utf-8")).hexdigest()[:12]
