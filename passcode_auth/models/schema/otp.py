from sqlalchemy import Column, DateTime, Index, Integer, String, UniqueConstraint

from passcode_auth.database import Base


class OtpEntry(Base):
    __tablename__ = "otp_records"

    id = Column(Integer, primary_key=True)
    identity = Column(String(160), nullable=False)
    hashed_secret = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        UniqueConstraint("identity", name="uq_otp_records_identity"),
        Index("ix_otp_records_created_at", "created_at"),
    )
