# foodrescue/reports.py
import logging
import math
from datetime import timedelta

from sqlalchemy.orm import Session

from . import crud, ledger, models
from .errors import NotFound, ValidationError
from .factors import MAX_EXPIRY_HOURS, REPORT_POINTS
from .utils import dumps_or_none, loads_or_raw

logger = logging.getLogger(__name__)


def _expiry_from(verification_result, created_at):
    if isinstance(verification_result, str):
        verification_result = loads_or_raw(verification_result)
    if not isinstance(verification_result, dict):
        return None
    try:
        hours = float(verification_result.get("expiryHours"))
    except (TypeError, ValueError):
        return None
    if not math.isfinite(hours) or hours <= 0 or hours > MAX_EXPIRY_HOURS:
        return None
    try:
        return created_at + timedelta(hours=hours)
    except (ValueError, OverflowError):
        return None


def create_report(db: Session, user_id, location, food_type, quantity,
                  image_url=None, metadata=None, verification_result=None) -> models.Report:
    """Insert a pending report, award the reporter and notify them.

    The three writes share one database transaction.
    """
    for field, value in (("location", location), ("food type", food_type), ("quantity", quantity)):
        if value is None or not str(value).strip():
            raise ValidationError(f"{field} is required")
    crud.get_user(db, user_id)

    now = models.utcnow()
    report = models.Report(
        user_id=user_id,
        location=str(location).strip(),
        food_type=str(food_type).strip(),
        quantity=str(quantity).strip(),
        image_url=image_url,
        verification_result=dumps_or_none(verification_result),
        metadata_json=dumps_or_none(metadata),
        expiry_time=_expiry_from(verification_result, now),
        status=models.PENDING,
        created_at=now,
    )
    try:
        db.add(report)
        db.flush()
        ledger.credit(db, user_id, REPORT_POINTS, models.EARNED_REPORT,
                      "Points earned for reporting waste")
        crud.add_notification(db, user_id,
                              f"You've earned {REPORT_POINTS} points for reporting waste!", "reward")
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(report)
    logger.info("report %s created by user %s (%s, %s)", report.id, user_id, report.food_type, report.quantity)
    return report


def get_report(db: Session, report_id) -> models.Report:
    report = db.get(models.Report, report_id)
    if report is None:
        raise NotFound(f"report {report_id} does not exist")
    return report


def list_recent(db: Session, limit=10):
    return (
        db.query(models.Report)
        .order_by(models.Report.created_at.desc(), models.Report.id.desc())
        .limit(limit)
        .all()
    )


def list_by_user(db: Session, user_id):
    return db.query(models.Report).filter(models.Report.user_id == user_id).all()
