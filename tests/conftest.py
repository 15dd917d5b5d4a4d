import os

# cheap bcrypt and no .env surprises for every import below
os.environ["OTP_HASH_ROUNDS"] = "4"
os.environ.setdefault("DATABASE_URL", "sqlite://")

from dataclasses import replace
from datetime import datetime, timezone

import pytest
from sqlalchemy import select

from passcode_auth.config import settings
from passcode_auth.database import configure_engine, drop_db, init_db, session_scope
from passcode_auth.models.schema.otp import OtpEntry
from passcode_auth.models.schema.session import SessionEntry
from passcode_auth.security import build_pwd_context
from passcode_auth.services.auth import AuthService
from passcode_auth.services.callbacks import DefaultCallbacks, LoginDecision
from passcode_auth.services.otp import OtpLedger
from passcode_auth.services.rate_limiter import TokenBucket
from passcode_auth.services.sessions import SessionLedger


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingCallbacks:
    """Collects delivered codes and applies a fixed login decision."""

    def __init__(self, decision=LoginDecision.ALLOW, fail_with=None):
        self.decision = decision
        self.fail_with = fail_with
        self.delivered = []
        self.decided = []
        self.translated = []
        self._messages = DefaultCallbacks(debug=False)

    def deliver_code(self, identity, code):
        if self.fail_with is not None:
            raise self.fail_with
        self.delivered.append((identity, code))

    def decide_login(self, identity):
        self.decided.append(identity)
        return self.decision

    def translate(self, kind, **context):
        self.translated.append((kind, context))
        return self._messages.translate(kind, **context)

    @property
    def last_code(self):
        return self.delivered[-1][1]


@pytest.fixture(autouse=True)
def database(tmp_path):
    configure_engine(f"sqlite:///{tmp_path / 'auth.db'}")
    init_db()
    yield
    drop_db()


@pytest.fixture
def pwd_context():
    return build_pwd_context(rounds=4)


@pytest.fixture
def otp_ledger(pwd_context):
    return OtpLedger(code_length=6, expiration_minutes=10, context=pwd_context)


@pytest.fixture
def session_ledger():
    return SessionLedger(validity_days=60)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def callbacks():
    return RecordingCallbacks()


@pytest.fixture
def config():
    return replace(
        settings,
        secret_key="test-secret-key-with-enough-entropy-0123456789",
        remember_me_enabled=True,
        session_validity_days=60,
        rate_limiting_enabled=True,
    )


@pytest.fixture
def disconnects():
    return []


@pytest.fixture
def service(otp_ledger, session_ledger, callbacks, config, clock, disconnects):
    return AuthService(
        otp=otp_ledger,
        sessions=session_ledger,
        issuance_bucket=TokenBucket("otp_issuance", 1, 60, clock=clock),
        login_bucket=TokenBucket("login_attempts", 10, 600, clock=clock),
        callbacks=callbacks,
        config=config,
        disconnect_notifier=disconnects.append,
    )


def insert_otp(context, identity, code, created_at=None):
    created_at = created_at or datetime.now(timezone.utc)
    with session_scope() as session:
        entry = OtpEntry(
            identity=identity,
            hashed_secret=context.hash(code),
            created_at=created_at,
        )
        session.add(entry)
        session.flush()
    return entry


def all_otps():
    with session_scope() as session:
        return session.execute(select(OtpEntry).order_by(OtpEntry.id)).scalars().all()


def all_sessions():
    with session_scope() as session:
        return session.execute(select(SessionEntry)).scalars().all()
