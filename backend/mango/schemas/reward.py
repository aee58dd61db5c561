"""Reward ledger and catalog schemas"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, computed_field

from mango.models.reward import TransactionType


class EarnPointsRequest(BaseModel):
    user_id: str = Field(..., min_length=1, max_length=64)
    points: int = Field(..., gt=0)
    description: str = ""
    order_id: Optional[str] = Field(None, max_length=64)


class RedeemPointsRequest(BaseModel):
    user_id: str = Field(..., min_length=1, max_length=64)
    points: int = Field(..., gt=0)
    description: str = ""
    reward_id: Optional[str] = Field(None, max_length=36)


class CreateRewardRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: str = ""
    points_required: int = Field(..., ge=0)
    image_url: Optional[str] = Field(None, max_length=512)
    max_available: int = Field(0, ge=0)


class RewardTransactionResponse(BaseModel):
    id: int
    user_id: str
    type: TransactionType
    points: int
    description: str
    order_id: Optional[str]
    reward_id: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


class UserRewardResponse(BaseModel):
    """Balance snapshot with history, most recent entry first"""
    id: int
    user_id: str
    total_points: int
    available_points: int
    lifetime_points: int
    created_at: datetime
    updated_at: Optional[datetime]
    transactions: List[RewardTransactionResponse] = []

    class Config:
        from_attributes = True


class RewardResponse(BaseModel):
    id: str
    name: str
    description: str
    points_required: int
    image_url: Optional[str]
    max_available: int
    redeemed_count: int
    is_active: bool
    created_at: datetime
    updated_at: Optional[datetime]

    class Config:
        from_attributes = True


class LedgerReconciliation(BaseModel):
    """Stored counters next to the values derived from the transaction log"""
    user_id: str
    stored_total: int
    stored_available: int
    stored_lifetime: int
    derived_available: int
    derived_earned: int

    @computed_field
    @property
    def in_sync(self) -> bool:
        return (
            self.stored_available == self.derived_available
            and self.stored_total == self.derived_earned
            and self.stored_lifetime == self.derived_earned
        )
