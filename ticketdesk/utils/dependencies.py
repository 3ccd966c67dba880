"""
FastAPI dependencies for authentication and authorization.
"""

from typing import Optional
from uuid import UUID

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..models.user import User, UserRole
from ..utils.auth import verify_token
from ..utils.exceptions import ForbiddenError, UnauthorizedError


# HTTP Bearer token scheme; missing credentials are reported by get_current_user
security = HTTPBearer(auto_error=False)


async def _user_from_credentials(
    credentials: Optional[HTTPAuthorizationCredentials],
    db: AsyncSession
) -> Optional[User]:
    if credentials is None:
        return None

    token_data = verify_token(credentials.credentials)
    if token_data is None or token_data.user_id is None:
        raise UnauthorizedError("Could not validate credentials")

    try:
        user_id = UUID(token_data.user_id)
    except ValueError:
        raise UnauthorizedError("Could not validate credentials")

    user = await db.get(User, user_id)
    if user is None:
        raise UnauthorizedError("Could not validate credentials")

    if not user.is_active:
        raise UnauthorizedError("Inactive user")

    return user


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db)
) -> User:
    """
    Get the current authenticated user from JWT token.

    Raises:
        UnauthorizedError: If the token is missing, invalid or the user is blocked
    """
    user = await _user_from_credentials(credentials, db)
    if user is None:
        raise UnauthorizedError("Authentication required")
    return user


async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db)
) -> Optional[User]:
    """
    Get the current user when a token is supplied, else None.

    A supplied but invalid token is still rejected.
    """
    return await _user_from_credentials(credentials, db)


def require_role(*roles: UserRole):
    """
    Dependency factory requiring the current user to hold one of ``roles``.

    Returns:
        Dependency resolving to the authorized user
    """
    async def role_checker(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in roles:
            required = ", ".join(role.value for role in roles)
            raise ForbiddenError(
                f"Access denied. Required roles: {required}",
                required_permission=required
            )
        return current_user

    return role_checker


require_attendee = require_role(UserRole.ATTENDEE)
