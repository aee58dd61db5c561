"""Custom exception classes for the application"""

from typing import Optional, Dict, Any


class BaseAPIException(Exception):
    """Base exception for all API errors"""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


# Authentication Errors
class AuthenticationError(BaseAPIException):
    """Base authentication error"""
    def __init__(self, message: str = "Authentication failed"):
        super().__init__(message, status_code=401)


class InvalidCredentialsError(AuthenticationError):
    """Unknown email, wrong password or inactive account"""
    def __init__(self):
        super().__init__("Invalid credentials")


class InvalidRefreshTokenError(AuthenticationError):
    """Refresh token is unknown, used, revoked or expired"""
    def __init__(self, message: str = "Invalid refresh token"):
        super().__init__(message)


# Authorization Errors
class AuthorizationError(BaseAPIException):
    """Insufficient permissions"""
    def __init__(self, message: str = "Insufficient permissions"):
        super().__init__(message, status_code=403)


# Resource Errors
class ResourceNotFoundError(BaseAPIException):
    """Resource not found"""
    def __init__(self, resource: str):
        super().__init__(f"{resource} not found", status_code=404)


class ResourceAlreadyExistsError(BaseAPIException):
    """Resource already exists"""
    def __init__(self, resource: str):
        super().__init__(f"{resource} already exists", status_code=409)


class DuplicateEmailError(ResourceAlreadyExistsError):
    """Email already registered"""
    def __init__(self):
        super().__init__("Email")


# Business Logic Errors
class BusinessLogicError(BaseAPIException):
    """Business logic error"""
    def __init__(self, message: str):
        super().__init__(message, status_code=400)


class NotEligibleError(BusinessLogicError):
    """Redemption refused: no balance tracked or not enough points"""
    def __init__(self):
        super().__init__("Insufficient points or user not found")
