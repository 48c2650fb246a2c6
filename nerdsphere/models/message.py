"""
Message database model.
"""
import uuid

from sqlalchemy import Column, String, DateTime, Text, Index

from nerdsphere.core.clock import utcnow
from nerdsphere.core.database import Base


def _new_message_id() -> str:
    return str(uuid.uuid4())


class Message(Base):
    """One posted chat line. Rows are inserted once and only ever deleted."""

    __tablename__ = "messages"

    id = Column(String(36), primary_key=True, default=_new_message_id)

    # Sanitized text, at most 500 characters
    content = Column(Text, nullable=False)

    # Naive UTC, assigned at insert time
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)

    # Rate-limit key; not an identity. Clients send it unbounded
    user_fingerprint = Column(Text, nullable=False, index=True)

    # Most-recent-message-per-fingerprint lookup
    __table_args__ = (
        Index("ix_messages_fingerprint_created_at", "user_fingerprint", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Message(id={self.id}, fingerprint={self.user_fingerprint})>"
