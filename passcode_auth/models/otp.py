from sqlalchemy import Column, DateTime, Index, Integer, String

from passcode_auth.database import Base


class OtpEntry(Base):
    __tablename__ = "otp_codes"

    id = Column(Integer, primary_key=True)
    identifier = Column(String(255), nullable=False)
    purpose = Column(String(32), nullable=False)
    code = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    consumed_at = Column(DateTime(timezone=True), nullable=True)
    superseded_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_otp_identifier_purpose", "identifier", "purpose"),
        Index("ix_otp_expires_at", "expires_at"),
    )
