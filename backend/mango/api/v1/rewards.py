"""Reward ledger and catalog routes"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import List
import logging

from mango.core.database import get_db
from mango.core.exceptions import NotEligibleError, ResourceNotFoundError
from mango.schemas.reward import (
    CreateRewardRequest,
    EarnPointsRequest,
    LedgerReconciliation,
    RedeemPointsRequest,
    RewardResponse,
    UserRewardResponse,
)
from mango.services.reward_service import reward_service
from mango.api.deps import get_current_user, get_current_admin_user, ensure_owner_or_admin
from mango.models.user import User

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/user/{user_id}", response_model=UserRewardResponse)
def get_user_reward(
    user_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Balance and history for a user"""
    ensure_owner_or_admin(current_user, user_id)
    snapshot = reward_service.get_user_reward(db, user_id)
    if snapshot is None:
        raise ResourceNotFoundError("User reward")
    return snapshot


@router.get("/user/{user_id}/reconcile", response_model=LedgerReconciliation)
def reconcile_user_reward(
    user_id: str,
    current_user: User = Depends(get_current_admin_user),
    db: Session = Depends(get_db)
):
    """Compare stored counters with the transaction log (admin only)"""
    report = reward_service.reconcile(db, user_id)
    if report is None:
        raise ResourceNotFoundError("User reward")
    return report


@router.post("/earn", response_model=UserRewardResponse)
def earn_points(
    request: EarnPointsRequest,
    current_user: User = Depends(get_current_admin_user),
    db: Session = Depends(get_db)
):
    """
    Credit points to a user (admin only)

    Args:
        request: User, amount, reason and optional order reference

    Returns:
        Updated balance snapshot
    """
    logger.info("EarnPoints called for user: %s, points: %s", request.user_id, request.points)
    return reward_service.earn_points(
        db,
        request.user_id,
        request.points,
        request.description,
        request.order_id,
    )


@router.post("/redeem", response_model=UserRewardResponse)
def redeem_points(
    request: RedeemPointsRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Debit points from a user

    Raises:
        AuthorizationError: caller is neither the owner nor an admin
        NotEligibleError: no balance tracked or not enough available points
    """
    ensure_owner_or_admin(current_user, request.user_id)
    logger.info("RedeemPoints called for user: %s, points: %s", request.user_id, request.points)
    snapshot = reward_service.redeem_points(
        db,
        request.user_id,
        request.points,
        request.description,
        request.reward_id,
    )
    if snapshot is None:
        raise NotEligibleError()
    return snapshot


@router.get("/", response_model=List[RewardResponse])
def list_rewards(db: Session = Depends(get_db)):
    """Reward catalog"""
    return reward_service.list_rewards(db)


@router.get("/{reward_id}", response_model=RewardResponse)
def get_reward(reward_id: str, db: Session = Depends(get_db)):
    reward = reward_service.get_reward(db, reward_id)
    if reward is None:
        raise ResourceNotFoundError("Reward")
    return reward


@router.post("/", response_model=RewardResponse, status_code=status.HTTP_201_CREATED)
def create_reward(
    request: CreateRewardRequest,
    current_user: User = Depends(get_current_admin_user),
    db: Session = Depends(get_db)
):
    """Add a catalog item (admin only)"""
    return reward_service.create_reward(db, request)


@router.delete("/{reward_id}", status_code=status.HTTP_200_OK)
def delete_reward(
    reward_id: str,
    current_user: User = Depends(get_current_admin_user),
    db: Session = Depends(get_db)
):
    """Remove a catalog item (admin only)"""
    if not reward_service.delete_reward(db, reward_id):
        raise ResourceNotFoundError("Reward")

    return {
        "success": True,
        "message": f"Reward {reward_id} deleted successfully"
    }
