"""
DisasterHub Backend — Identity & Role Resolver
================================================

What:  FastAPI dependencies that turn an `Authorization: Bearer <token>`
       header into the current User, and gate routes by role.
How:   `get_current_user` decodes the token, loads the user, and rejects
       disabled accounts. `require_role(*roles)` builds a dependency that
       additionally checks the caller's role.

Failure modes:
    missing/invalid/expired token, unknown user → UnauthenticatedError (401)
    is_active == False                          → AccountDisabledError (401)
    role not in the allowed set                 → ForbiddenError (403)

No side effects: last_login is only touched by the login operation.
"""

import uuid
from typing import Callable, Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from disasterhub.database import get_db_session
from disasterhub.exceptions import AccountDisabledError, ForbiddenError, UnauthenticatedError
from disasterhub.models.enums import Role
from disasterhub.models.user import User
from disasterhub.security import decode_access_token

# auto_error=False: a missing header must produce our 401 body, not FastAPI's 403
bearer_scheme = HTTPBearer(auto_error=False)


async def resolve_user(db: AsyncSession, token: Optional[str]) -> User:
    """
    Resolve a raw bearer token to an active User.

    Shared by the HTTP dependency below and the realtime WebSocket endpoint,
    which receives its token as a query parameter.
    """
    if not token:
        raise UnauthenticatedError(message="Not authorized, no token")

    user_id: uuid.UUID = decode_access_token(token)
    user = await db.get(User, user_id)
    if user is None:
        raise UnauthenticatedError(message="Not authorized, user not found")
    if not user.is_active:
        raise AccountDisabledError()
    return user


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db_session),
) -> User:
    token = credentials.credentials if credentials else None
    return await resolve_user(db, token)


def require_role(*roles: Role) -> Callable:
    """
    Build a dependency that only admits callers holding one of `roles`.

    Example:
        @router.delete("/{disaster_id}")
        async def delete(..., user: User = Depends(require_role(Role.ADMIN))):
    """
    allowed = {role.value for role in roles}

    async def _authorize(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in allowed:
            raise ForbiddenError(
                message=f"User role '{current_user.role}' is not authorized to access this route",
                context={"required": sorted(allowed)},
            )
        return current_user

    return _authorize
