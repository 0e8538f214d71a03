# foodrescue/redemption.py
import logging

from sqlalchemy.orm import Session

from . import ledger, models
from .errors import InsufficientBalance, NotFound, ValidationError
from .factors import POINTS_ENTRY

logger = logging.getLogger(__name__)

# reward id that stands for "all of my points"
ALL_POINTS = 0


def reward_cost(reward: models.Reward) -> int:
    return reward.cost if reward.cost else reward.points


def catalog(db: Session):
    return (
        db.query(models.Reward)
        .filter(models.Reward.is_available.is_(True), models.Reward.account_user_id.is_(None))
        .order_by(models.Reward.id)
        .all()
    )


def list_available(db: Session, user_id):
    """The synthetic "Your Points" entry followed by every redeemable catalog row.

    Returns a list of (reward, cost); the first reward is an unsaved row with id 0.
    """
    points = ledger.balance(db, user_id)
    now = models.utcnow()
    own = models.Reward(
        id=ALL_POINTS, user_id=user_id, points=points, cost=points, level=1,
        is_available=True, created_at=now, updated_at=now, **POINTS_ENTRY
    )
    return [(own, points)] + [(r, reward_cost(r)) for r in catalog(db)]


def redeem(db: Session, user_id, reward_id) -> models.Reward:
    """Spend points on a catalog reward, or cash in the whole balance with id 0.

    Returns the user's account row after the debit.
    """
    try:
        if reward_id == ALL_POINTS:
            amount = ledger.balance(db, user_id)
            if amount <= 0:
                raise InsufficientBalance(f"user {user_id} has no points to redeem")
            ledger.debit(db, user_id, amount, f"redeemed all points: {amount}")
        else:
            reward = db.get(models.Reward, reward_id)
            if reward is None or reward.is_account or not reward.is_available:
                raise NotFound(f"reward {reward_id} is not available")
            cost = reward_cost(reward)
            if not cost or cost <= 0:
                raise ValidationError(f"reward {reward_id} has no cost")
            ledger.debit(db, user_id, cost, f"redeemed: {reward.name}")
        account = ledger.get_or_create_account(db, user_id)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(account)
    logger.info("user %s redeemed reward %s, %s points left", user_id, reward_id, account.points)
    return account


def create_catalog_reward(db: Session, user_id, name, cost, description=None,
                          collection_info="Redeemable reward") -> models.Reward:
    if not name or not str(name).strip():
        raise ValidationError("reward name is required")
    if isinstance(cost, bool) or not isinstance(cost, int) or cost <= 0:
        raise ValidationError("reward cost must be a positive integer")
    reward = models.Reward(
        user_id=user_id, name=str(name).strip(), collection_info=collection_info,
        points=cost, cost=cost, level=1, is_available=True, description=description,
    )
    db.add(reward); db.commit(); db.refresh(reward)
    logger.info("catalog reward %s (%s points) added", reward.id, cost)
    return reward
