from sqlalchemy import Column, DateTime, String

from passcode_auth.database import Base


class SessionEntry(Base):
    __tablename__ = "session_records"

    token = Column(String(128), primary_key=True)
    identity = Column(String(160), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, index=True)
