"""
DisasterHub Backend — Notification SQLAlchemy Model
=====================================================

What:  ORM model representing the `notifications` table: one message for one
       recipient.
Who:   Written by the notification fan-out; read and mutated (read flag,
       deletion) by its recipient through NotificationService.

Index on (recipient_id, created_at):
    Serves the inbox query (own notifications, newest first, capped).
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Index, String, Uuid, false, text
from sqlalchemy.orm import Mapped, mapped_column

from disasterhub.database import Base
from disasterhub.models.enums import Priority


class Notification(Base):
    """A fan-out message targeted at exactly one recipient."""

    __tablename__ = "notifications"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    title: Mapped[str] = mapped_column(String(100), nullable=False)

    message: Mapped[str] = mapped_column(String(500), nullable=False)

    type: Mapped[str] = mapped_column(String(20), nullable=False)

    is_read: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=false(),
    )

    priority: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        default=Priority.MEDIUM.value,
        server_default=text("'medium'"),
    )

    action_url: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # "metadata" is reserved on declarative classes
    extra: Mapped[Optional[Dict[str, Any]]] = mapped_column("metadata", JSON, nullable=True)

    recipient_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )

    related_disaster_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("disasters.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
    )

    __table_args__ = (
        Index("idx_notifications_recipient_created_at", "recipient_id", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<Notification(id={self.id}, recipient={self.recipient_id}, "
            f"type='{self.type}', is_read={self.is_read})>"
        )
