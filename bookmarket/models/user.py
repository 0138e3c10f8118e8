from __future__ import annotations

import enum

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Enum, Index
from sqlalchemy.orm import relationship

from .base import Base, utcnow


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    name = Column(String(120), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password_hash = Column(String(128), nullable=False)
    phone = Column(String(32), nullable=True)

    is_email_verified = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    def to_public(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "is_email_verified": self.is_email_verified,
        }


class VerificationKind(str, enum.Enum):
    EMAIL = "email_verification"
    PASSWORD_RESET = "password_reset"


class UserVerification(Base):
    __tablename__ = "user_verifications"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    code_hash = Column(String(128), nullable=False)
    kind = Column(Enum(VerificationKind), nullable=False)
    expires_at = Column(DateTime, nullable=False)

    # set when the code is verified or superseded by a newer one
    is_used = Column(Boolean, default=False, nullable=False)
    verified_at = Column(DateTime, nullable=True)
    # a verified reset code can change the password exactly once
    redeemed = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    user = relationship("User")

    __table_args__ = (
        Index("ix_user_verifications_user_kind", "user_id", "kind", "is_used"),
    )
