import pytest

from mango.models.reward import Reward, RewardTransaction, TransactionType, UserReward
from mango.schemas.reward import CreateRewardRequest
from mango.services.reward_service import RewardService


@pytest.fixture
def ledger(clock):
    return RewardService(clock=clock)


def _balance(snapshot):
    return snapshot.total_points, snapshot.available_points, snapshot.lifetime_points


def test_first_earn_opens_the_balance(ledger, db):
    assert ledger.get_user_reward(db, "u1") is None

    snapshot = ledger.earn_points(db, "u1", 100, "signup bonus", None)

    assert _balance(snapshot) == (100, 100, 100)
    assert snapshot.user_id == "u1"
    assert snapshot.updated_at is None
    assert len(snapshot.transactions) == 1
    entry = snapshot.transactions[0]
    assert entry.type == TransactionType.EARNED
    assert entry.points == 100
    assert entry.description == "signup bonus"
    assert entry.order_id is None


def test_earnings_accumulate(ledger, db, clock):
    ledger.earn_points(db, "u1", 30, "order", "order-1")
    clock.advance(minutes=5)
    snapshot = ledger.earn_points(db, "u1", 45, "order", "order-2")

    assert _balance(snapshot) == (75, 75, 75)
    assert snapshot.updated_at is not None
    assert db.query(UserReward).count() == 1
    assert [t.order_id for t in snapshot.transactions] == ["order-2", "order-1"]


def test_redeem_more_than_available_is_not_eligible(ledger, db):
    ledger.earn_points(db, "u1", 100, "signup bonus", None)

    assert ledger.redeem_points(db, "u1", 150, "too much", None) is None

    snapshot = ledger.get_user_reward(db, "u1")
    assert _balance(snapshot) == (100, 100, 100)
    assert len(snapshot.transactions) == 1


def test_redeem_without_balance_is_not_eligible(ledger, db):
    assert ledger.redeem_points(db, "ghost", 1, "", None) is None
    assert db.query(UserReward).count() == 0
    assert db.query(RewardTransaction).count() == 0


def test_signup_redeem_scenario(ledger, db):
    ledger.earn_points(db, "u1", 100, "signup bonus", None)
    assert ledger.redeem_points(db, "u1", 150, "headphones", None) is None

    snapshot = ledger.redeem_points(db, "u1", 40, "coffee", None)

    assert _balance(snapshot) == (100, 60, 100)
    assert len(snapshot.transactions) == 2
    latest = snapshot.transactions[0]
    assert latest.type == TransactionType.REDEEMED
    assert latest.points == -40
    assert latest.description == "coffee"


def test_redeem_exact_balance_reaches_zero(ledger, db):
    ledger.earn_points(db, "u1", 25, "", None)
    snapshot = ledger.redeem_points(db, "u1", 25, "", None)
    assert _balance(snapshot) == (25, 0, 25)
    assert ledger.redeem_points(db, "u1", 1, "", None) is None


def test_redeem_records_reward_reference_only(ledger, db):
    reward = ledger.create_reward(
        db, CreateRewardRequest(name="Mug", points_required=10, max_available=5)
    )
    ledger.earn_points(db, "u1", 50, "", None)

    snapshot = ledger.redeem_points(db, "u1", 10, "mug", reward.id)

    assert snapshot.transactions[0].reward_id == reward.id
    db.refresh(reward)
    assert reward.redeemed_count == 0
    assert reward.max_available == 5


def test_history_is_most_recent_first(ledger, db, clock):
    ledger.earn_points(db, "u1", 10, "first", None)
    clock.advance(seconds=1)
    ledger.earn_points(db, "u1", 20, "second", None)
    clock.advance(seconds=1)
    snapshot = ledger.redeem_points(db, "u1", 5, "third", None)

    assert [t.description for t in snapshot.transactions] == ["third", "second", "first"]


def test_history_order_breaks_ties_by_insertion(ledger, db):
    ledger.earn_points(db, "u1", 1, "a", None)
    ledger.earn_points(db, "u1", 2, "b", None)
    snapshot = ledger.earn_points(db, "u1", 3, "c", None)
    assert [t.description for t in snapshot.transactions] == ["c", "b", "a"]


def test_earn_does_not_range_check_amount(ledger, db):
    snapshot = ledger.earn_points(db, "u1", -5, "correction", None)
    assert _balance(snapshot) == (-5, -5, -5)


def test_reconcile_matches_log(ledger, db):
    ledger.earn_points(db, "u1", 100, "", None)
    ledger.redeem_points(db, "u1", 40, "", None)

    report = ledger.reconcile(db, "u1")

    assert report.derived_available == 60
    assert report.derived_earned == 100
    assert report.in_sync is True
    assert ledger.reconcile(db, "ghost") is None


def test_reconcile_reports_drift(ledger, db):
    ledger.earn_points(db, "u1", 100, "", None)
    balance = db.query(UserReward).filter(UserReward.user_id == "u1").one()
    balance.available_points = 500
    db.commit()

    report = ledger.reconcile(db, "u1")
    assert report.in_sync is False
    assert report.stored_available == 500
    assert report.derived_available == 100


def test_concurrent_redemptions_never_overdraw(ledger, file_session_factory):
    setup = file_session_factory()
    try:
        ledger.earn_points(setup, "u1", 100, "", None)
    finally:
        setup.close()

    first = file_session_factory()
    second = file_session_factory()
    try:
        assert first.connection().connection is not second.connection().connection

        # second request read the balance before the first one wrote
        assert ledger._find_balance(second, "u1").available_points == 100

        assert ledger.redeem_points(first, "u1", 80, "", None) is not None
        assert ledger.redeem_points(second, "u1", 50, "", None) is None
    finally:
        first.close()
        second.close()

    check = file_session_factory()
    try:
        snapshot = ledger.get_user_reward(check, "u1")
        assert snapshot.available_points == 20
        assert len(snapshot.transactions) == 2
    finally:
        check.close()


def test_reward_catalog_crud(ledger, db):
    created = ledger.create_reward(
        db,
        CreateRewardRequest(
            name="Free shipping",
            description="One free delivery",
            points_required=200,
            image_url="https://cdn.example.com/ship.png",
            max_available=100,
        ),
    )

    assert created.id
    assert created.is_active is True
    assert created.redeemed_count == 0
    assert ledger.get_reward(db, created.id).name == "Free shipping"
    assert [r.id for r in ledger.list_rewards(db)] == [created.id]

    assert ledger.delete_reward(db, created.id) is True
    assert ledger.get_reward(db, created.id) is None
    assert ledger.delete_reward(db, created.id) is False
    assert db.query(Reward).count() == 0


def test_inactive_rewards_are_hidden_from_the_catalog(ledger, db):
    listed = ledger.create_reward(db, CreateRewardRequest(name="Mug", points_required=300))
    retired = Reward(name="Old", description="", points_required=10, is_active=False)
    db.add(retired)
    db.commit()

    assert [r.id for r in ledger.list_rewards(db)] == [listed.id]
    assert ledger.get_reward(db, retired.id).name == "Old"
