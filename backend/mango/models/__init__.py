"""Database models"""

from mango.models.user import User, Role
from mango.models.security import RefreshToken
from mango.models.reward import Reward, RewardTransaction, TransactionType, UserReward

__all__ = ["User", "Role", "RefreshToken", "Reward", "RewardTransaction", "TransactionType", "UserReward"]
