# foodrescue/ledger.py
"""Point ledger.

The transactions table is the only source of truth for a balance. Each user
also has one "account" row in the rewards table whose ``points`` column is a
cache of that balance; it is written in the same database transaction as every
ledger append and can be rebuilt with :func:`refresh_account`.

None of these functions commit: they stage their writes in the caller's
session so that a report or a collection and its points land together.
"""
import logging

from sqlalchemy import case, func, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from . import models
from .errors import InsufficientBalance, ValidationError
from .factors import DEFAULT_ACCOUNT

logger = logging.getLogger(__name__)

EARNING_TYPES = (models.EARNED_REPORT, models.EARNED_COLLECT)


def _check_amount(amount):
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise ValidationError(f"amount must be a positive integer, got {amount!r}")


def _account_query(db: Session, user_id):
    return db.query(models.Reward).filter(models.Reward.account_user_id == user_id)


def _insert_account(db: Session, user_id):
    values = dict(DEFAULT_ACCOUNT, user_id=user_id, account_user_id=user_id)
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        stmt = postgresql.insert(models.Reward).values(**values)
    elif dialect == "sqlite":
        stmt = sqlite.insert(models.Reward).values(**values)
    else:
        db.add(models.Reward(**values))
        db.flush()
        return
    # the unique account_user_id makes concurrent creates collapse into one row
    db.execute(stmt.on_conflict_do_nothing(index_elements=["account_user_id"]))


def get_or_create_account(db: Session, user_id) -> models.Reward:
    acct = _account_query(db, user_id).first()
    if acct is None:
        _insert_account(db, user_id)
        acct = _account_query(db, user_id).one()
        logger.info("opened points account for user %s", user_id)
    return acct


def _signed_total(db: Session, user_id) -> int:
    signed = case(
        (models.Transaction.type == models.REDEEMED, -models.Transaction.amount),
        else_=models.Transaction.amount,
    )
    total = (
        db.query(func.coalesce(func.sum(signed), 0))
        .filter(models.Transaction.user_id == user_id)
        .scalar()
    )
    return int(total or 0)


def balance(db: Session, user_id) -> int:
    return max(0, _signed_total(db, user_id))


def _bump_account(db: Session, acct, delta, floor=None):
    stmt = (
        update(models.Reward)
        .where(models.Reward.id == acct.id)
        .values(points=models.Reward.points + delta, updated_at=models.utcnow())
        .execution_options(synchronize_session=False)
    )
    if floor is not None:
        stmt = stmt.where(models.Reward.points >= floor)
    count = db.execute(stmt).rowcount
    db.expire(acct, ["points", "updated_at"])
    return count


def credit(db: Session, user_id, amount, type_, description) -> models.Transaction:
    if type_ not in EARNING_TYPES:
        raise ValidationError(f"{type_!r} is not an earning transaction type")
    _check_amount(amount)
    acct = get_or_create_account(db, user_id)
    tx = models.Transaction(user_id=user_id, type=type_, amount=amount, description=description)
    db.add(tx)
    _bump_account(db, acct, amount)
    db.flush()
    logger.info("credit user=%s amount=%s type=%s", user_id, amount, type_)
    return tx


def debit(db: Session, user_id, amount, description) -> models.Transaction:
    _check_amount(amount)
    acct = get_or_create_account(db, user_id)
    available = balance(db, user_id)
    if amount > available:
        raise InsufficientBalance(f"user {user_id} has {available} points, needs {amount}")
    # conditional decrement: a concurrent redemption that got there first makes this a no-op
    if _bump_account(db, acct, -amount, floor=amount) != 1:
        raise InsufficientBalance(f"balance of user {user_id} changed during redemption")
    tx = models.Transaction(user_id=user_id, type=models.REDEEMED, amount=amount, description=description)
    db.add(tx)
    db.flush()
    logger.info("debit user=%s amount=%s", user_id, amount)
    return tx


def refresh_account(db: Session, user_id) -> models.Reward:
    acct = get_or_create_account(db, user_id)
    points = balance(db, user_id)
    if acct.points != points:
        acct.points = points
        acct.updated_at = models.utcnow()
        db.flush()
    return acct


def recent_transactions(db: Session, user_id, limit=10):
    return (
        db.query(models.Transaction)
        .filter(models.Transaction.user_id == user_id)
        .order_by(models.Transaction.date.desc(), models.Transaction.id.desc())
        .limit(limit)
        .all()
    )


def leaderboard(db: Session):
    rows = (
        db.query(models.Reward, models.User.name)
        .outerjoin(models.User, models.User.id == models.Reward.user_id)
        .filter(models.Reward.account_user_id.isnot(None))
        .order_by(models.Reward.points.desc(), models.Reward.id)
        .all()
    )
    return [(acct, name or "Unknown") for acct, name in rows]
