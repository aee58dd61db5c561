"""Reward ledger and catalog models."""

import enum
import uuid

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Index, Text, Enum
from sqlalchemy.orm import relationship

from mango.core.clock import utc_now
from mango.core.database import Base


class TransactionType(str, enum.Enum):
    """Kind of ledger entry"""
    EARNED = "Earned"
    REDEEMED = "Redeemed"
    EXPIRED = "Expired"
    ADJUSTED = "Adjusted"


class UserReward(Base):
    """Denormalized per-user point balance"""

    __tablename__ = "user_rewards"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), unique=True, nullable=False, index=True)
    total_points = Column(Integer, default=0, nullable=False)
    available_points = Column(Integer, default=0, nullable=False)
    lifetime_points = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=True)

    transactions = relationship(
        "RewardTransaction",
        back_populates="user_reward",
        order_by="RewardTransaction.id.desc()",
    )

    def __repr__(self):
        return (
            f"<UserReward(user_id='{self.user_id}', total={self.total_points}, "
            f"available={self.available_points}, lifetime={self.lifetime_points})>"
        )


class RewardTransaction(Base):
    """Immutable ledger entry."""

    __tablename__ = "reward_transactions"

    id = Column(Integer, primary_key=True, index=True)
    user_reward_id = Column(Integer, ForeignKey("user_rewards.id"), nullable=False)
    user_id = Column(String(64), nullable=False)
    type = Column(Enum(TransactionType, name="reward_transaction_type"), nullable=False)
    points = Column(Integer, nullable=False)
    description = Column(Text, nullable=False, default="")
    order_id = Column(String(64), nullable=True)
    reward_id = Column(String(36), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)

    user_reward = relationship("UserReward", back_populates="transactions")

    __table_args__ = (
        Index("idx_reward_transactions_user_reward", "user_reward_id", "id"),
    )


class Reward(Base):
    """Catalog item that points can be spent on.

    ``max_available`` and ``redeemed_count`` are stored but not maintained by
    the redeem flow.
    """

    __tablename__ = "rewards"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=False, default="")
    points_required = Column(Integer, nullable=False)
    image_url = Column(String(512), nullable=True)
    max_available = Column(Integer, default=0, nullable=False)
    redeemed_count = Column(Integer, default=0, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=True)
