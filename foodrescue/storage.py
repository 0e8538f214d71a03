# foodrescue/storage.py
"""Whole-document JSON snapshots of the record store.

The live data sits in the SQL database. This module reads and writes the
single-file layout (six named collections, camelCase records) so existing
``data.json`` files can be imported and the database can be exported.
"""
import json, logging, os, tempfile
from datetime import datetime
from pathlib import Path
from threading import Lock

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from . import config, ledger, models
from .errors import StoreUnavailable
from .utils import dumps_or_none, loads_or_raw

logger = logging.getLogger(__name__)

DEFAULT_PATH = config.DATA_DIR / "data.json"
COLLECTIONS = ("users", "reports", "rewards", "notifications", "transactions", "collectedWastes")
lock = Lock()


def empty_dataset():
    return {name: [] for name in COLLECTIONS}


def load(path=None):
    p = Path(path or DEFAULT_PATH)
    if not p.exists():
        return empty_dataset()
    try:
        with p.open("r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        raise StoreUnavailable(f"cannot read {p}: {e}")
    if not isinstance(data, dict):
        raise StoreUnavailable(f"{p} does not hold a dataset object")
    dataset = empty_dataset()
    for name in COLLECTIONS:
        rows = data.get(name) or []
        if not isinstance(rows, list):
            raise StoreUnavailable(f"{p}: collection {name} is not a list")
        dataset[name] = rows
    return dataset


def save(dataset, path=None):
    p = Path(path or DEFAULT_PATH)
    with lock:
        try:
            p.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=p.parent, prefix=p.name, suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(dataset, f, ensure_ascii=False, indent=2)
            os.replace(tmp, p)
        except OSError as e:
            raise StoreUnavailable(f"cannot write {p}: {e}")
    return True


# ---- row <-> record mapping ----

def _iso(dt):
    return dt.isoformat() + "Z" if dt else None


def _dt(value):
    if not value:
        return None
    return datetime.fromisoformat(str(value).replace("Z", "+00:00")).replace(tzinfo=None)


def _drop_none(d):
    return {k: v for k, v in d.items() if v is not None}


def user_record(u):
    return {"id": u.id, "email": u.email, "name": u.name, "createdAt": _iso(u.created_at)}


def report_record(r):
    return _drop_none({
        "id": r.id, "userId": r.user_id, "location": r.location,
        "foodType": r.food_type, "quantity": r.quantity, "imageUrl": r.image_url,
        "verificationResult": loads_or_raw(r.verification_result),
        "metadata": loads_or_raw(r.metadata_json),
        "expiryTime": _iso(r.expiry_time), "status": r.status,
        "createdAt": _iso(r.created_at), "collectorId": r.collector_id,
    })


def reward_record(r):
    return _drop_none({
        "id": r.id, "userId": r.user_id, "name": r.name, "collectionInfo": r.collection_info,
        "points": r.points, "level": r.level, "isAvailable": r.is_available,
        "createdAt": _iso(r.created_at), "updatedAt": _iso(r.updated_at),
        "description": r.description, "cost": r.cost,
        "isAccount": r.is_account,
    })


def transaction_record(t):
    return {"id": t.id, "userId": t.user_id, "type": t.type, "amount": t.amount,
            "description": t.description, "date": _iso(t.date)}


def notification_record(n):
    return {"id": n.id, "userId": n.user_id, "message": n.message, "type": n.type,
            "isRead": n.is_read, "createdAt": _iso(n.created_at)}


def collected_waste_record(c):
    return _drop_none({
        "id": c.id, "reportId": c.report_id, "collectorId": c.collector_id,
        "collectionDate": _iso(c.collection_date), "status": c.status, "notes": c.notes,
        "verificationResult": loads_or_raw(c.verification_result),
    })


def export_dataset(db: Session):
    def rows(model):
        return db.query(model).order_by(model.id).all()
    return {
        "users": [user_record(u) for u in rows(models.User)],
        "reports": [report_record(r) for r in rows(models.Report)],
        "rewards": [reward_record(r) for r in rows(models.Reward)],
        "notifications": [notification_record(n) for n in rows(models.Notification)],
        "transactions": [transaction_record(t) for t in rows(models.Transaction)],
        "collectedWastes": [collected_waste_record(c) for c in rows(models.CollectedWaste)],
    }


def import_dataset(db: Session, dataset):
    """Copy a document into the database, keeping record ids.

    Reports written by older clients use ``wasteType``/``amount``; both spellings
    are accepted. The first reward row per user becomes their points account
    unless a row is flagged ``isAccount``, and every account cache is rebuilt
    from the imported transactions.

    Raises StoreUnavailable when a record is incomplete, unparseable or clashes
    with rows already in the database; nothing is imported in that case.
    """
    counts = {}
    try:
        for u in dataset.get("users", []):
            db.add(models.User(id=u["id"], email=u["email"], name=u.get("name") or "Anonymous User",
                               created_at=_dt(u.get("createdAt")) or models.utcnow()))
        counts["users"] = len(dataset.get("users", []))
        db.flush()

        for r in dataset.get("reports", []):
            db.add(models.Report(
                id=r["id"], user_id=r["userId"], location=r.get("location") or "",
                food_type=r.get("foodType") or r.get("wasteType") or "",
                quantity=str(r.get("quantity") or r.get("amount") or ""),
                image_url=r.get("imageUrl"),
                verification_result=dumps_or_none(r.get("verificationResult")),
                metadata_json=dumps_or_none(r.get("metadata")),
                expiry_time=_dt(r.get("expiryTime")),
                status=r.get("status") or models.PENDING,
                created_at=_dt(r.get("createdAt")) or models.utcnow(),
                collector_id=r.get("collectorId"),
            ))
        counts["reports"] = len(dataset.get("reports", []))

        flagged = {w["userId"] for w in dataset.get("rewards", []) if w.get("isAccount")}
        accounts = set()
        for w in dataset.get("rewards", []):
            uid = w["userId"]
            is_account = uid not in accounts and (bool(w.get("isAccount")) if uid in flagged else True)
            if is_account:
                accounts.add(uid)
            db.add(models.Reward(
                id=w["id"], user_id=uid, account_user_id=uid if is_account else None,
                name=w.get("name") or "Reward", collection_info=w.get("collectionInfo") or "",
                points=int(w.get("points") or 0), level=int(w.get("level") or 1),
                is_available=bool(w.get("isAvailable", True)),
                created_at=_dt(w.get("createdAt")) or models.utcnow(),
                updated_at=_dt(w.get("updatedAt")) or models.utcnow(),
                description=w.get("description"), cost=w.get("cost"),
            ))
        counts["rewards"] = len(dataset.get("rewards", []))

        for n in dataset.get("notifications", []):
            db.add(models.Notification(
                id=n["id"], user_id=n["userId"], message=n.get("message") or "",
                type=n.get("type") or "info", is_read=bool(n.get("isRead")),
                created_at=_dt(n.get("createdAt")) or models.utcnow(),
            ))
        counts["notifications"] = len(dataset.get("notifications", []))

        skipped = 0
        for t in dataset.get("transactions", []):
            if int(t.get("amount") or 0) <= 0:
                # older redeem-all entries were logged with amount 0
                skipped += 1
                continue
            db.add(models.Transaction(
                id=t["id"], user_id=t["userId"], type=t["type"], amount=int(t["amount"]),
                description=t.get("description") or "", date=_dt(t.get("date")) or models.utcnow(),
            ))
        counts["transactions"] = len(dataset.get("transactions", [])) - skipped
        if skipped:
            logger.warning("skipped %s transactions with a non-positive amount", skipped)
        db.flush()

        for c in dataset.get("collectedWastes", []):
            db.add(models.CollectedWaste(
                id=c["id"], report_id=c["reportId"], collector_id=c["collectorId"],
                collection_date=_dt(c.get("collectionDate")) or models.utcnow(),
                status=c.get("status"), notes=c.get("notes"),
                verification_result=dumps_or_none(c.get("verificationResult")),
            ))
        counts["collectedWastes"] = len(dataset.get("collectedWastes", []))
        db.flush()

        for uid in {t["userId"] for t in dataset.get("transactions", [])} | accounts:
            ledger.refresh_account(db, uid)
        db.commit()
    except (KeyError, TypeError, ValueError, IntegrityError) as e:
        db.rollback()
        raise StoreUnavailable(f"dataset cannot be imported: {e!r}")
    except Exception:
        db.rollback()
        raise
    _reset_sequences(db)
    logger.info("imported dataset: %s", counts)
    return counts


def _reset_sequences(db: Session):
    # explicit ids bypass postgres sequences; move them past the imported rows
    if db.get_bind().dialect.name != "postgresql":
        return
    for table in ("users", "reports", "rewards", "notifications", "transactions", "collected_wastes"):
        db.execute(text(
            f"SELECT setval(pg_get_serial_sequence('{table}', 'id'), "
            f"COALESCE((SELECT MAX(id) FROM {table}), 0) + 1, false)"
        ))
    db.commit()
