"""
DisasterHub Backend — Account Routes
======================================

What:  /api/auth — registration, login, the caller's own profile and
       password, and admin account management.
How:   Thin handlers: parse the body, delegate to AuthService, wrap the
       result in its response envelope.

Route Inventory:
    POST   /auth/register          public        → {token, user} (201)
    POST   /auth/login             public        → {token, user}
    GET    /auth/me                any role      → {user}
    PUT    /auth/profile           any role      → {user}
    PUT    /auth/change-password   any role      → {message}
    GET    /auth/users             admin         → {count, users}
    PUT    /auth/users/{id}        admin         → {user}
    DELETE /auth/users/{id}        admin         → {message}
"""

import logging
import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from disasterhub.database import get_db_session
from disasterhub.dependencies import get_current_user, require_role
from disasterhub.models.enums import Role
from disasterhub.models.user import User
from disasterhub.schemas.common import ErrorResponse, MessageResponse
from disasterhub.schemas.user import (
    AdminUserUpdate,
    AuthResponse,
    LoginRequest,
    PasswordChange,
    ProfileUpdate,
    RegisterRequest,
    UserEnvelope,
    UserListResponse,
    UserResponse,
)
from disasterhub.services.auth_service import auth_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])

_AUTH_ERRORS = {
    401: {"description": "Missing, invalid or expired token", "model": ErrorResponse},
}
_ADMIN_ERRORS = {
    **_AUTH_ERRORS,
    403: {"description": "Caller is not an admin", "model": ErrorResponse},
}


def _auth_response(user: User) -> AuthResponse:
    return AuthResponse(
        token=auth_service.issue_token(user),
        user=UserResponse.model_validate(user),
    )


@router.post(
    "/register",
    status_code=201,
    response_model=AuthResponse,
    responses={400: {"description": "Invalid fields or email already registered", "model": ErrorResponse}},
    summary="Register a user or volunteer account",
)
async def register(
    data: RegisterRequest,
    db: AsyncSession = Depends(get_db_session),
) -> AuthResponse:
    user = await auth_service.register(db, data)
    return _auth_response(user)


@router.post(
    "/login",
    response_model=AuthResponse,
    responses={401: {"description": "Invalid credentials or deactivated account", "model": ErrorResponse}},
    summary="Exchange email and password for a bearer token",
)
async def login(
    data: LoginRequest,
    db: AsyncSession = Depends(get_db_session),
) -> AuthResponse:
    user = await auth_service.login(db, data)
    return _auth_response(user)


@router.get("/me", response_model=UserEnvelope, responses=_AUTH_ERRORS, summary="Current user")
async def me(current_user: User = Depends(get_current_user)) -> UserEnvelope:
    return UserEnvelope(user=UserResponse.model_validate(current_user))


@router.put("/profile", response_model=UserEnvelope, responses=_AUTH_ERRORS, summary="Update own profile")
async def update_profile(
    data: ProfileUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> UserEnvelope:
    user = await auth_service.update_profile(db, current_user, data)
    return UserEnvelope(user=UserResponse.model_validate(user))


@router.put(
    "/change-password",
    response_model=MessageResponse,
    responses={**_AUTH_ERRORS, 400: {"description": "Current password is incorrect", "model": ErrorResponse}},
    summary="Change own password",
)
async def change_password(
    data: PasswordChange,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    await auth_service.change_password(db, current_user, data)
    return MessageResponse(message="Password updated successfully")


# ══════════════════════════════════════════════════════════════════════════
# Admin
# ══════════════════════════════════════════════════════════════════════════


@router.get("/users", response_model=UserListResponse, responses=_ADMIN_ERRORS, summary="List non-admin accounts")
async def list_users(
    admin: User = Depends(require_role(Role.ADMIN)),
    db: AsyncSession = Depends(get_db_session),
) -> UserListResponse:
    users = await auth_service.list_users(db)
    return UserListResponse(
        count=len(users),
        users=[UserResponse.model_validate(u) for u in users],
    )


@router.put(
    "/users/{user_id}",
    response_model=UserEnvelope,
    responses={**_ADMIN_ERRORS, 404: {"description": "User not found", "model": ErrorResponse}},
    summary="Edit or deactivate an account",
)
async def update_user(
    user_id: uuid.UUID,
    data: AdminUserUpdate,
    admin: User = Depends(require_role(Role.ADMIN)),
    db: AsyncSession = Depends(get_db_session),
) -> UserEnvelope:
    user = await auth_service.update_user(db, admin, user_id, data)
    return UserEnvelope(user=UserResponse.model_validate(user))


@router.delete(
    "/users/{user_id}",
    response_model=MessageResponse,
    responses={
        **_ADMIN_ERRORS,
        400: {"description": "Target is an admin account", "model": ErrorResponse},
        404: {"description": "User not found", "model": ErrorResponse},
    },
    summary="Delete an account",
)
async def delete_user(
    user_id: uuid.UUID,
    admin: User = Depends(require_role(Role.ADMIN)),
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    await auth_service.delete_user(db, admin, user_id)
    return MessageResponse(message="User deleted successfully")
