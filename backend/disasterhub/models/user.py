"""
DisasterHub Backend — User SQLAlchemy Model
=============================================

What:  ORM model representing the `users` table.
Who:   Used by AuthService for registration/profile/admin operations, by the
       identity resolver on every authenticated request, and by the
       notification fan-out to compute recipient sets.

Table Design:
    - UUID primary key, generated in Python (portable across PostgreSQL/SQLite)
    - email: unique, stored lower-cased
    - password_hash: bcrypt hash; never part of any response schema
    - role: user | volunteer | admin
    - skills: JSON list of tags, only meaningful for volunteers
    - is_active: soft-deactivation flag set by admins
    - last_login: touched on explicit login only

Index on (role, is_active):
    Serves the fan-out query "every active volunteer and admin".
"""

import uuid
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import JSON, Boolean, DateTime, Index, String, Uuid, text, true
from sqlalchemy.orm import Mapped, mapped_column

from disasterhub.database import Base
from disasterhub.models.enums import Role


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    """
    A registered account.

    Lifecycle:
        1. Created at registration (role user/volunteer) or by the startup
           admin bootstrap (role admin)
        2. Mutated by profile updates or admin edits
        3. Deactivated (is_active=False) or hard-deleted by an admin;
           admin accounts cannot be deleted
    """

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    name: Mapped[str] = mapped_column(String(50), nullable=False)

    email: Mapped[str] = mapped_column(String(100), nullable=False, unique=True, index=True)

    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)

    role: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=Role.USER.value,
        server_default=text("'user'"),
    )

    location: Mapped[str] = mapped_column(String(255), nullable=False, default="")

    phone: Mapped[str] = mapped_column(String(50), nullable=False, default="")

    skills: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        server_default=true(),
    )

    last_login: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    profile_image: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

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

    __table_args__ = (
        Index("idx_users_role_active", "role", "is_active"),
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email='{self.email}', role='{self.role}')>"
