from datetime import datetime, timedelta, timezone
import logging

from passcode_auth.config import settings
from passcode_auth.models.db_operation import (
    _add_record,
    _as_utc,
    _delete_records,
    _select_one_or_none,
)
from passcode_auth.models.schema.session import SessionEntry
from passcode_auth.security import anonymise, generate_session_token

LOGGER = logging.getLogger(__name__)


class SessionLedger:
    def __init__(self, validity_days: int) -> None:
        self._validity = timedelta(days=validity_days)

    def create(self, identity: str) -> SessionEntry:
        now = datetime.now(timezone.utc)
        self.purge_expired(now)
        entry = _add_record(
            "session",
            token=generate_session_token(),
            identity=identity,
            created_at=now,
        )
        LOGGER.info("Created session for %s", anonymise(identity))
        return entry

    def find_by_token(self, token: str | None) -> SessionEntry | None:
        """Return the live session for token; expired rows read as absent."""
        if not token:
            return None
        entry = _select_one_or_none("session", token=token)
        if entry is None:
            return None
        if datetime.now(timezone.utc) - _as_utc(entry.created_at) > self._validity:
            return None
        return entry

    def delete_by_token(self, token: str) -> None:
        _delete_records("session", token=token)

    def delete_all_by_identity(self, identity: str) -> int:
        deleted = _delete_records("session", identity=identity)
        LOGGER.info("Revoked %d session(s) for %s", deleted, anonymise(identity))
        return deleted

    def purge_expired(self, now: datetime | None = None) -> int:
        now = now or datetime.now(timezone.utc)
        return _delete_records("session", created_at=("<", now - self._validity))


session_ledger = SessionLedger(settings.session_validity_days)
