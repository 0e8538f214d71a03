# foodrescue/tasks.py
"""Collection tasks.

Every report is a task. Its status only moves forward:
pending -> in_progress (claim) -> verified (complete, by the claiming collector).
Both transitions are conditional UPDATEs, so two collectors racing for the
same task cannot both win.
"""
import logging
import random

from sqlalchemy import update
from sqlalchemy.orm import Session

from . import crud, ledger, models
from .errors import AlreadyClaimed, Forbidden, InvalidState, NotFound
from .factors import COLLECT_POINTS_MAX, COLLECT_POINTS_MIN, DEFAULT_COLLECTION_CHECK
from .utils import dumps_or_none

logger = logging.getLogger(__name__)


def list_tasks(db: Session, limit=20):
    return db.query(models.Report).order_by(models.Report.id).limit(limit).all()


def _transition(db: Session, task_id, from_status, values, *conditions):
    stmt = (
        update(models.Report)
        .where(models.Report.id == task_id, models.Report.status == from_status, *conditions)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    return db.execute(stmt).rowcount == 1


def _load(db: Session, task_id):
    report = db.get(models.Report, task_id, populate_existing=True)
    if report is None:
        raise NotFound(f"task {task_id} does not exist")
    return report


def claim(db: Session, task_id, collector_id) -> models.Report:
    try:
        ok = _transition(db, task_id, models.PENDING,
                         {"status": models.IN_PROGRESS, "collector_id": collector_id})
        if not ok:
            report = _load(db, task_id)
            raise AlreadyClaimed(f"task {task_id} is {report.status} (collector {report.collector_id})")
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info("task %s claimed by collector %s", task_id, collector_id)
    return _load(db, task_id)


def complete(db: Session, task_id, collector_id, verification_result=None, rng=None):
    """Close a claimed task and pay the collector.

    Returns (report, points, collected_waste).
    """
    rng = rng or random
    try:
        ok = _transition(db, task_id, models.IN_PROGRESS, {"status": models.VERIFIED},
                         models.Report.collector_id == collector_id)
        if not ok:
            report = _load(db, task_id)
            if report.status != models.IN_PROGRESS:
                raise InvalidState(f"task {task_id} is {report.status}, expected in_progress")
            raise Forbidden(f"task {task_id} is claimed by collector {report.collector_id}, not {collector_id}")

        points = rng.randint(COLLECT_POINTS_MIN, COLLECT_POINTS_MAX)
        ledger.credit(db, collector_id, points, models.EARNED_COLLECT,
                      "Points earned for collecting waste")
        collected = models.CollectedWaste(
            report_id=task_id,
            collector_id=collector_id,
            status=models.VERIFIED,
            verification_result=dumps_or_none(
                verification_result if verification_result is not None else DEFAULT_COLLECTION_CHECK
            ),
        )
        db.add(collected)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(collected)
    logger.info("task %s verified by collector %s, awarded %s points", task_id, collector_id, points)
    return _load(db, task_id), points, collected


def list_collections(db: Session, collector_id):
    return crud.collections_by_collector(db, collector_id)
