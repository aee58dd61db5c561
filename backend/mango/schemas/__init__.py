"""Pydantic schemas for API validation"""

from mango.schemas.user import (
    RegisterRequest,
    LoginRequest,
    RefreshTokenRequest,
    LogoutRequest,
    UserResponse,
    AuthResponse,
)
from mango.schemas.reward import (
    EarnPointsRequest,
    RedeemPointsRequest,
    CreateRewardRequest,
    RewardTransactionResponse,
    UserRewardResponse,
    RewardResponse,
    LedgerReconciliation,
)

__all__ = [
    "RegisterRequest", "LoginRequest", "RefreshTokenRequest", "LogoutRequest",
    "UserResponse", "AuthResponse",
    "EarnPointsRequest", "RedeemPointsRequest", "CreateRewardRequest",
    "RewardTransactionResponse", "UserRewardResponse", "RewardResponse",
    "LedgerReconciliation",
]
