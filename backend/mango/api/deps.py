"""API dependencies - authentication and authorization"""

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from typing import Optional

from mango.core.database import get_db
from mango.core.security import decode_access_token
from mango.core.exceptions import AuthenticationError, AuthorizationError
from mango.models.user import Role, User
from mango.services.user_service import user_service

# HTTP Bearer token scheme
security = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db)
) -> User:
    """
    Get current authenticated user from JWT token

    Args:
        credentials: HTTP Bearer credentials
        db: Database session

    Returns:
        Current user

    Raises:
        AuthenticationError: If token is invalid or user not found
    """
    if credentials is None:
        raise AuthenticationError("Not authenticated")

    payload = decode_access_token(credentials.credentials)
    if not payload:
        raise AuthenticationError("Invalid or expired token")

    user_id: Optional[str] = payload.get("sub")
    if not user_id:
        raise AuthenticationError("Invalid token payload")

    user = user_service.get_user_by_id(db, user_id)
    if not user:
        raise AuthenticationError("User not found")

    if not user.is_active:
        raise AuthenticationError("User account is disabled")

    return user


async def get_current_admin_user(
    current_user: User = Depends(get_current_user)
) -> User:
    """
    Get current admin user (authorization check)

    Raises:
        AuthorizationError: If user is not Admin or SuperAdmin
    """
    if current_user.role not in Role.ADMINISTRATIVE:
        raise AuthorizationError("Admin access required")
    return current_user


def ensure_owner_or_admin(current_user: User, user_id: str) -> None:
    """
    Allow access to a user's data only for that user or an administrator

    Raises:
        AuthorizationError: If the caller is neither the owner nor an admin
    """
    if current_user.id != user_id and current_user.role not in Role.ADMINISTRATIVE:
        raise AuthorizationError("Not allowed to access another user's rewards")
