"""Authentication routes"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import Optional

from mango.core.database import get_db
from mango.schemas.user import (
    AuthResponse,
    LoginRequest,
    LogoutRequest,
    RefreshTokenRequest,
    RegisterRequest,
    UserResponse,
)
from mango.services.user_service import user_service
from mango.services.token_service import token_service
from mango.api.deps import get_current_user
from mango.models.user import User

router = APIRouter()


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register(
    request: RegisterRequest,
    db: Session = Depends(get_db)
):
    """
    Register a customer and return their first session

    Returns:
        Access and refresh tokens with user info
    """
    return user_service.register(db, request)


@router.post("/login", response_model=AuthResponse, status_code=status.HTTP_200_OK)
def login(
    credentials: LoginRequest,
    db: Session = Depends(get_db)
):
    """
    Login endpoint - authenticate user and return a new session

    Args:
        credentials: Email and password
        db: Database session

    Returns:
        Access and refresh tokens with user info
    """
    return user_service.login(db, credentials)


@router.post("/refresh", response_model=AuthResponse)
def refresh_token(
    req: RefreshTokenRequest,
    db: Session = Depends(get_db),
):
    """Exchange a refresh token for a new access/refresh pair"""
    return token_service.rotate_refresh_token(db, req.refresh_token)


@router.post("/logout", status_code=status.HTTP_200_OK)
def logout(
    body: Optional[LogoutRequest] = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Logout endpoint - revoke the given refresh token

    The access token stays valid until it expires.
    """
    revoked = False
    if body and body.refresh_token:
        revoked = token_service.revoke_refresh_token(db, body.refresh_token, user_id=current_user.id)

    return {
        "success": True,
        "message": "Logged out successfully",
        "refresh_token_revoked": revoked
    }


@router.get("/me", response_model=UserResponse)
def get_current_user_info(
    current_user: User = Depends(get_current_user)
):
    """Get current user information"""
    return UserResponse.model_validate(current_user)
