"""
DisasterHub Backend — Disaster SQLAlchemy Model
=================================================

What:  ORM model representing the `disasters` table: one incident report.
Who:   Used by DisasterService for the record lifecycle and listings.

Table Design:
    - location is flattened into address/latitude/longitude columns; the
      API exposes it nested as {address, coordinates: {lat, lng}}
    - notes: JSON list of {text, author, timestamp}, append-only
    - images: JSON list of image URLs (served from /api/files/...)
    - reported_by_id: required; the reporting user
    - assigned_to_id: optional; the volunteer who accepted the report

Indexes:
    - (status, created_at): the volunteer pool query and the default
      newest-first ordering
    - reported_by_id / assigned_to_id: the per-role visibility clauses
    - (latitude, longitude): the bounding-box "nearby" query
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import (
    JSON,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Uuid,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from disasterhub.database import Base
from disasterhub.models.enums import DisasterStatus
from disasterhub.models.user import User


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Disaster(Base):
    """
    A single incident report.

    Lifecycle:
        1. Created by a reporter (status = 'pending')
        2. Status moves pending → accepted | declined | resolved, or
           accepted → resolved; declined and resolved are terminal
        3. Details edited by the reporter or an admin
        4. Deleted by an admin only (notifications cascade)
    """

    __tablename__ = "disasters"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    title: Mapped[str] = mapped_column(String(100), nullable=False)

    description: Mapped[str] = mapped_column(String(1000), nullable=False)

    type: Mapped[str] = mapped_column(String(20), nullable=False)

    severity: Mapped[str] = mapped_column(String(20), nullable=False)

    address: Mapped[str] = mapped_column(String(255), nullable=False)

    latitude: Mapped[float] = mapped_column(Float, nullable=False)

    longitude: Mapped[float] = mapped_column(Float, nullable=False)

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=DisasterStatus.PENDING.value,
        server_default=text("'pending'"),
    )

    notes: Mapped[List[Dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)

    images: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)

    estimated_casualties: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    estimated_damage: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    emergency_contacts: Mapped[Optional[List[Dict[str, Any]]]] = mapped_column(JSON, nullable=True)

    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    reported_by_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    assigned_to_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    # selectin: async sessions cannot lazy-load, so both people are loaded
    # together with the record
    reported_by: Mapped[User] = relationship(
        User,
        foreign_keys=[reported_by_id],
        lazy="selectin",
    )

    assigned_to: Mapped[Optional[User]] = relationship(
        User,
        foreign_keys=[assigned_to_id],
        lazy="selectin",
    )

    __table_args__ = (
        Index("idx_disasters_status_created_at", "status", "created_at"),
        Index("idx_disasters_lat_lng", "latitude", "longitude"),
    )

    def __repr__(self) -> str:
        return f"<Disaster(id={self.id}, status='{self.status}', title='{self.title}')>"
