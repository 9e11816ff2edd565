"""
DisasterHub Backend — Account Service
=======================================

What:  Registration, login, profile and password management, and the
       admin's account management (list, edit, delete), plus the startup
       bootstrap of the configured admin account.
Who:   Called by the /api/auth route handlers and by main.lifespan.

Password hashing is CPU-bound (bcrypt), so it runs in the threadpool to
keep the event loop responsive.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from disasterhub.config import settings
from disasterhub.exceptions import (
    AccountDisabledError,
    ConflictError,
    DatabaseError,
    DisasterHubError,
    NotFoundError,
    UnauthenticatedError,
    ValidationError,
)
from disasterhub.models.enums import Role
from disasterhub.models.user import User
from disasterhub.schemas.user import (
    AdminUserUpdate,
    LoginRequest,
    PasswordChange,
    ProfileUpdate,
    RegisterRequest,
)
from disasterhub.security import create_access_token, hash_password, verify_password

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid email or password"


class AuthService:
    """
    Account operations.

    Every method receives the request session; writes are flushed here and
    committed by the session dependency when the request succeeds.
    """

    async def _find_by_email(self, db: AsyncSession, email: str) -> Optional[User]:
        result = await db.execute(select(User).where(User.email == email))
        return result.scalar_one_or_none()

    async def _get(self, db: AsyncSession, user_id: uuid.UUID) -> User:
        user = await db.get(User, user_id)
        if user is None:
            raise NotFoundError(resource="user", resource_id=str(user_id))
        return user

    def issue_token(self, user: User) -> str:
        return create_access_token(user.id, user.role)

    # ── Self-service ──────────────────────────────────────────────────────

    async def register(self, db: AsyncSession, data: RegisterRequest) -> User:
        """
        Create a user or volunteer account.

        Raises:
            ConflictError: the email is already registered (no row is
                written, the existing row is untouched)
        """
        if await self._find_by_email(db, data.email) is not None:
            raise ConflictError(
                message="User with this email already exists",
                context={"field": "email"},
            )

        user = User(
            name=data.name,
            email=data.email,
            password_hash=await run_in_threadpool(hash_password, data.password),
            role=data.role.value,
            location=data.location or "",
            phone=data.phone or "",
            skills=list(data.skills or []) if data.role is Role.VOLUNTEER else [],
        )
        try:
            db.add(user)
            await db.flush()
        except IntegrityError:
            # Lost a race against a concurrent registration of the same email
            await db.rollback()
            raise ConflictError(
                message="User with this email already exists",
                context={"field": "email"},
            )

        logger.info("Registered %s account %s", user.role, user.id)
        return user

    async def login(self, db: AsyncSession, data: LoginRequest) -> User:
        """
        Check credentials and stamp last_login.

        Raises:
            UnauthenticatedError: unknown email or wrong password (same message)
            AccountDisabledError: credentials valid but the account is deactivated
        """
        user = await self._find_by_email(db, data.email)
        if user is None or not await run_in_threadpool(verify_password, data.password, user.password_hash):
            logger.info("Failed login attempt")
            raise UnauthenticatedError(message=INVALID_CREDENTIALS)
        if not user.is_active:
            raise AccountDisabledError()

        user.last_login = datetime.now(timezone.utc)
        await db.flush()
        logger.info("User %s logged in", user.id)
        return user

    async def update_profile(self, db: AsyncSession, user: User, data: ProfileUpdate) -> User:
        """Apply the provided fields; skills are only kept for volunteers."""
        changes = data.model_dump(exclude_unset=True)
        if changes.get("name") is not None:
            user.name = changes["name"]
        if "location" in changes:
            user.location = changes["location"] or ""
        if "phone" in changes:
            user.phone = changes["phone"] or ""
        if "skills" in changes and user.role == Role.VOLUNTEER.value:
            user.skills = list(changes["skills"] or [])

        await db.flush()
        await db.refresh(user)
        return user

    async def change_password(self, db: AsyncSession, user: User, data: PasswordChange) -> None:
        """
        Raises:
            ValidationError: the current password does not match
        """
        if not await run_in_threadpool(verify_password, data.current_password, user.password_hash):
            raise ValidationError(message="Current password is incorrect", field="currentPassword")

        user.password_hash = await run_in_threadpool(hash_password, data.new_password)
        await db.flush()
        logger.info("Password changed for user %s", user.id)

    # ── Administration ────────────────────────────────────────────────────

    async def list_users(self, db: AsyncSession) -> List[User]:
        """Every non-admin account, oldest first."""
        try:
            result = await db.execute(
                select(User)
                .where(User.role != Role.ADMIN.value)
                .order_by(User.created_at, User.email)
            )
            return list(result.scalars().all())
        except Exception as e:
            logger.error("Database error listing users: %s", str(e), exc_info=True)
            raise DatabaseError(context={"error_type": type(e).__name__})

    async def update_user(
        self,
        db: AsyncSession,
        admin: User,
        user_id: uuid.UUID,
        data: AdminUserUpdate,
    ) -> User:
        """
        Admin edit of another account.

        Admin accounts can be renamed but never deactivated or demoted.
        """
        user = await self._get(db, user_id)
        changes = data.model_dump(exclude_unset=True)

        if user.role == Role.ADMIN.value:
            if changes.get("is_active") is False or (
                changes.get("role") is not None and changes["role"] != Role.ADMIN
            ):
                raise ValidationError(message="Admin accounts cannot be deactivated or demoted")

        if changes.get("name") is not None:
            user.name = changes["name"]
        if "location" in changes:
            user.location = changes["location"] or ""
        if "phone" in changes:
            user.phone = changes["phone"] or ""
        if changes.get("role") is not None:
            user.role = changes["role"].value
        if changes.get("is_active") is not None:
            user.is_active = changes["is_active"]
        if "skills" in changes:
            user.skills = list(changes["skills"] or [])
        if user.role != Role.VOLUNTEER.value:
            user.skills = []

        await db.flush()
        await db.refresh(user)
        logger.info("User %s updated by admin %s: %s", user.id, admin.id, sorted(changes))
        return user

    async def delete_user(self, db: AsyncSession, admin: User, user_id: uuid.UUID) -> None:
        """
        Hard-delete an account. Its reported disasters and its notifications
        go with it; disasters assigned to it become unassigned.

        Raises:
            NotFoundError: no such user
            ValidationError: the target is an admin account
        """
        user = await self._get(db, user_id)
        if user.role == Role.ADMIN.value:
            raise ValidationError(message="Cannot delete admin user")

        try:
            await db.delete(user)
            await db.flush()
        except DisasterHubError:
            raise
        except Exception as e:
            logger.error("Database error deleting user %s: %s", user_id, str(e), exc_info=True)
            raise DatabaseError(context={"user_id": str(user_id)})

        logger.info("User %s deleted by admin %s", user_id, admin.id)

    # ── Startup ───────────────────────────────────────────────────────────

    async def ensure_bootstrap_admin(self, db: AsyncSession) -> Optional[User]:
        """
        Create the admin account from ADMIN_EMAIL / ADMIN_PASSWORD if it does
        not exist yet. Returns the created user, or None when nothing was done.
        """
        if not (settings.admin_email and settings.admin_password):
            return None

        email = settings.admin_email.strip().lower()
        if await self._find_by_email(db, email) is not None:
            logger.debug("Bootstrap admin %s already exists", email)
            return None

        admin = User(
            name=settings.admin_name,
            email=email,
            password_hash=await run_in_threadpool(hash_password, settings.admin_password),
            role=Role.ADMIN.value,
        )
        db.add(admin)
        await db.commit()
        logger.info("Bootstrap admin account created: %s", email)
        return admin


# ── Singleton Instance ────────────────────────────────────────────────────
auth_service = AuthService()
