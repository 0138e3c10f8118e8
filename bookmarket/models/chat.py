from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, ForeignKey, Index, UniqueConstraint
)

from .base import Base, utcnow


class ChatMessage(Base):
    __tablename__ = "chat_messages"

    id = Column(Integer, primary_key=True)
    sender_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    receiver_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    body = Column(String(5000), nullable=False)
    sent_at = Column(DateTime, default=utcnow, nullable=False)

    is_read = Column(Boolean, default=False, nullable=False)
    read_at = Column(DateTime, nullable=True)

    # soft delete, independent per side
    deleted_by_sender = Column(Boolean, default=False, nullable=False)
    deleted_by_sender_at = Column(DateTime, nullable=True)
    deleted_by_receiver = Column(Boolean, default=False, nullable=False)
    deleted_by_receiver_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index("ix_chat_messages_pair", "sender_id", "receiver_id"),
        Index("ix_chat_messages_sent_at", "sent_at"),
        Index("ix_chat_messages_receiver_unread", "receiver_id", "is_read"),
    )

    def to_dict(self, me: int | None = None) -> dict:
        return {
            "id": self.id,
            "sender_id": self.sender_id,
            "receiver_id": self.receiver_id,
            "text": self.body,
            "sent_at": self.sent_at.isoformat() if self.sent_at else None,
            "is_read": self.is_read,
            "read_at": self.read_at.isoformat() if self.read_at else None,
            "is_mine": (me is not None and self.sender_id == me),
        }


class UserBlock(Base):
    __tablename__ = "user_blocks"

    id = Column(Integer, primary_key=True)
    blocker_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    blocked_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    reason = Column(String(500), nullable=True)
    blocked_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("blocker_id", "blocked_id", name="uq_user_blocks_pair"),
    )
