from datetime import datetime, timedelta, timezone
import logging
import re
import secrets

from passlib.context import CryptContext
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError

from passcode_auth.config import settings
from passcode_auth.database import session_scope
from passcode_auth.errors import CodeExpired, InvalidCode, StorageFailure, ValidationFailed
from passcode_auth.models.db_operation import _as_utc
from passcode_auth.models.schema.otp import OtpEntry
from passcode_auth.security import anonymise, pwd_context

LOGGER = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+$")
EMAIL_MAX_LENGTH = 160
ISSUE_ATTEMPTS = 2


def normalize_identity(identity: str) -> str:
    return identity.strip().lower()


def validate_identity(identity: str | None) -> str:
    cleaned = normalize_identity(identity or "")
    errors: list[str] = []
    if not cleaned:
        errors.append("can't be blank")
    else:
        if not EMAIL_PATTERN.match(cleaned):
            errors.append("has invalid format")
        if len(cleaned) > EMAIL_MAX_LENGTH:
            errors.append(f"should be at most {EMAIL_MAX_LENGTH} character(s)")
    if errors:
        raise ValidationFailed({"email": errors})
    return cleaned


class OtpLedger:
    def __init__(
        self,
        code_length: int,
        expiration_minutes: int,
        context: CryptContext | None = None,
    ) -> None:
        if code_length < 1:
            raise ValueError("code_length must be positive")
        self._code_length = code_length
        self._expiration_minutes = expiration_minutes
        self.pwd_context = context or pwd_context

    @property
    def expiration_seconds(self) -> int:
        return self._expiration_minutes * 60

    def issue(self, identity: str) -> tuple[str, OtpEntry]:
        """
        Replace any live code for identity with a fresh one.

        Returns the plaintext code, which is never stored, together with the
        new record. Raises ValidationFailed before touching the store.
        """
        email = validate_identity(identity)
        code = self.generate_code()
        hashed = self.pwd_context.hash(code)
        now = datetime.now(timezone.utc)

        for attempt in range(1, ISSUE_ATTEMPTS + 1):
            try:
                entry = self._replace(email, hashed, now)
                break
            except StorageFailure as exc:
                # a concurrent issue for the same identity won the insert
                if attempt == ISSUE_ATTEMPTS or not isinstance(exc.__cause__, IntegrityError):
                    raise
                LOGGER.info("Retrying code issue for %s after a conflict", anonymise(email))

        LOGGER.info("Issued one-time password for %s", anonymise(email))
        return code, entry

    def _replace(self, email: str, hashed: str, now: datetime) -> OtpEntry:
        with session_scope() as session:
            session.execute(
                select(OtpEntry.id).where(OtpEntry.identity == email).with_for_update()
            )
            session.execute(delete(OtpEntry).where(OtpEntry.identity == email))
            session.execute(delete(OtpEntry).where(OtpEntry.created_at <= self._cutoff(now)))
            entry = OtpEntry(identity=email, hashed_secret=hashed, created_at=now)
            session.add(entry)
            session.flush()
        return entry

    def verify(self, identity: str, code: str) -> OtpEntry:
        """
        Consume the live code for identity.

        Raises InvalidCode when there is no record or the code does not
        match, CodeExpired when the record is older than the expiration
        window. The record is deleted only on success.
        """
        email = normalize_identity(identity or "")
        now = datetime.now(timezone.utc)

        with session_scope() as session:
            entry = session.execute(
                select(OtpEntry).where(OtpEntry.identity == email).with_for_update()
            ).scalar_one_or_none()
            if entry is None:
                # burn the same bcrypt time as a real comparison
                self.pwd_context.dummy_verify()
                raise InvalidCode()
            if self._is_expired(entry, now):
                raise CodeExpired()
            if not self.pwd_context.verify(code or "", entry.hashed_secret):
                raise InvalidCode()
            session.delete(entry)

        return entry

    def purge_expired(self) -> int:
        now = datetime.now(timezone.utc)
        with session_scope() as session:
            result = session.execute(
                delete(OtpEntry).where(OtpEntry.created_at <= self._cutoff(now))
            )
            return result.rowcount

    def generate_code(self) -> str:
        value = secrets.randbelow(10**self._code_length)
        return str(value).zfill(self._code_length)

    def _is_expired(self, entry: OtpEntry, now: datetime) -> bool:
        # whole minutes, so a code is still good during its last partial minute
        age_minutes = int((now - _as_utc(entry.created_at)).total_seconds() // 60)
        return age_minutes > self._expiration_minutes

    def _cutoff(self, now: datetime) -> datetime:
        # rows at or before this instant can no longer verify
        return now - timedelta(minutes=self._expiration_minutes + 1)


otp_ledger = OtpLedger(settings.otp_code_length, settings.otp_expiration_minutes)
