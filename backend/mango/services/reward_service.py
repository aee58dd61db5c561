"""Reward ledger - point balances, transaction history and reward catalog."""

from __future__ import annotations

from typing import List, Optional
import logging

from prometheus_client import Counter
from sqlalchemy import case, func
from sqlalchemy.orm import Session

from mango.core.clock import Clock, utc_now
from mango.models.reward import Reward, RewardTransaction, TransactionType, UserReward
from mango.schemas.reward import (
    CreateRewardRequest,
    LedgerReconciliation,
    RewardTransactionResponse,
    UserRewardResponse,
)

logger = logging.getLogger(__name__)

POINTS_EARNED = Counter("mango_reward_points_earned_total", "Points credited to user balances")
POINTS_REDEEMED = Counter("mango_reward_points_redeemed_total", "Points debited from user balances")
REDEMPTIONS_REFUSED = Counter(
    "mango_reward_redemptions_refused_total",
    "Redemptions refused for missing balance or insufficient points",
)


class RewardService:
    """
    Ledger operations over ``UserReward`` and ``RewardTransaction``.

    The counters on ``UserReward`` are denormalized: every mutation updates
    them in the same transaction that appends the ledger entry. ``reconcile``
    recomputes them from the log for drift checks.
    """

    def __init__(self, clock: Clock = utc_now):
        self._clock = clock

    @staticmethod
    def _find_balance(db: Session, user_id: str, lock: bool = False) -> Optional[UserReward]:
        query = db.query(UserReward).filter(UserReward.user_id == user_id)
        if lock:
            query = query.with_for_update()
        return query.first()

    @staticmethod
    def list_transactions(db: Session, user_reward_id: int) -> List[RewardTransaction]:
        """Ledger entries for one balance, most recent first"""
        return (
            db.query(RewardTransaction)
            .filter(RewardTransaction.user_reward_id == user_reward_id)
            .order_by(RewardTransaction.created_at.desc(), RewardTransaction.id.desc())
            .all()
        )

    def _snapshot(self, db: Session, balance: UserReward) -> UserRewardResponse:
        return UserRewardResponse(
            id=balance.id,
            user_id=balance.user_id,
            total_points=balance.total_points,
            available_points=balance.available_points,
            lifetime_points=balance.lifetime_points,
            created_at=balance.created_at,
            updated_at=balance.updated_at,
            transactions=[
                RewardTransactionResponse.model_validate(entry)
                for entry in self.list_transactions(db, balance.id)
            ],
        )

    def get_user_reward(self, db: Session, user_id: str) -> Optional[UserRewardResponse]:
        balance = self._find_balance(db, user_id)
        if balance is None:
            return None
        return self._snapshot(db, balance)

    def earn_points(
        self,
        db: Session,
        user_id: str,
        points: int,
        description: str = "",
        order_id: Optional[str] = None,
    ) -> UserRewardResponse:
        """
        Credit points, opening the balance on first use

        The amount is not range-checked here; request validation rejects
        non-positive values before they reach the ledger.

        Args:
            db: Database session
            user_id: Opaque user identifier
            points: Amount to credit
            description: Free-text reason
            order_id: Originating order, if any

        Returns:
            Updated balance snapshot
        """
        now = self._clock()
        balance = self._find_balance(db, user_id, lock=True)

        if balance is None:
            balance = UserReward(
                user_id=user_id,
                total_points=points,
                available_points=points,
                lifetime_points=points,
                created_at=now,
            )
            db.add(balance)
            db.flush()
        else:
            balance.total_points += points
            balance.available_points += points
            balance.lifetime_points += points
            balance.updated_at = now

        db.add(RewardTransaction(
            user_reward_id=balance.id,
            user_id=user_id,
            type=TransactionType.EARNED,
            points=points,
            description=description,
            order_id=order_id,
            created_at=now,
        ))
        db.commit()

        POINTS_EARNED.inc(max(points, 0))
        logger.info("Credited %s points to user %s (order=%s)", points, user_id, order_id)
        return self._snapshot(db, balance)

    def redeem_points(
        self,
        db: Session,
        user_id: str,
        points: int,
        description: str = "",
        reward_id: Optional[str] = None,
    ) -> Optional[UserRewardResponse]:
        """
        Debit available points

        Returns None when the user has no balance or not enough available
        points; nothing is written in that case. Total and lifetime points are
        never reduced. ``reward_id`` is recorded on the ledger entry only.
        """
        balance = self._find_balance(db, user_id)
        if balance is None or balance.available_points < points:
            REDEMPTIONS_REFUSED.inc()
            logger.info("Redemption of %s points refused for user %s", points, user_id)
            return None

        now = self._clock()
        updated = (
            db.query(UserReward)
            .filter(UserReward.id == balance.id, UserReward.available_points >= points)
            .update(
                {
                    UserReward.available_points: UserReward.available_points - points,
                    UserReward.updated_at: now,
                },
                synchronize_session=False,
            )
        )
        if updated != 1:
            db.rollback()
            REDEMPTIONS_REFUSED.inc()
            logger.info("Redemption of %s points lost a race for user %s", points, user_id)
            return None

        db.add(RewardTransaction(
            user_reward_id=balance.id,
            user_id=user_id,
            type=TransactionType.REDEEMED,
            points=-points,
            description=description,
            reward_id=reward_id,
            created_at=now,
        ))
        db.commit()
        db.refresh(balance)

        POINTS_REDEEMED.inc(max(points, 0))
        logger.info("Debited %s points from user %s (reward=%s)", points, user_id, reward_id)
        return self._snapshot(db, balance)

    def reconcile(self, db: Session, user_id: str) -> Optional[LedgerReconciliation]:
        """Compare the stored counters with sums over the transaction log"""
        balance = self._find_balance(db, user_id)
        if balance is None:
            return None

        net, earned = (
            db.query(
                func.coalesce(func.sum(RewardTransaction.points), 0),
                func.coalesce(
                    func.sum(
                        case(
                            (RewardTransaction.type == TransactionType.EARNED, RewardTransaction.points),
                            else_=0,
                        )
                    ),
                    0,
                ),
            )
            .filter(RewardTransaction.user_reward_id == balance.id)
            .one()
        )
        report = LedgerReconciliation(
            user_id=user_id,
            stored_total=balance.total_points,
            stored_available=balance.available_points,
            stored_lifetime=balance.lifetime_points,
            derived_available=int(net),
            derived_earned=int(earned),
        )
        if not report.in_sync:
            logger.warning("Ledger drift detected for user %s: %s", user_id, report.model_dump())
        return report

    # Catalog

    @staticmethod
    def list_rewards(db: Session) -> List[Reward]:
        """Active catalog items, newest first"""
        return (
            db.query(Reward)
            .filter(Reward.is_active == True)  # noqa: E712
            .order_by(Reward.created_at.desc())
            .all()
        )

    @staticmethod
    def get_reward(db: Session, reward_id: str) -> Optional[Reward]:
        return db.query(Reward).filter(Reward.id == reward_id).first()

    def create_reward(self, db: Session, request: CreateRewardRequest) -> Reward:
        reward = Reward(
            name=request.name,
            description=request.description,
            points_required=request.points_required,
            image_url=request.image_url,
            max_available=request.max_available,
            redeemed_count=0,
            is_active=True,
            created_at=self._clock(),
        )
        db.add(reward)
        db.commit()
        db.refresh(reward)

        logger.info("Created reward %s (%s)", reward.name, reward.id)
        return reward

    def delete_reward(self, db: Session, reward_id: str) -> bool:
        reward = self.get_reward(db, reward_id)
        if reward is None:
            return False

        db.delete(reward)
        db.commit()

        logger.info("Deleted reward %s", reward_id)
        return True


reward_service = RewardService()
