# foodrescue/main.py
import logging
from typing import Optional

from fastapi import FastAPI, Depends, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from . import config, crud, gemini_client, ledger, maps_client, models, redemption, reports, schemas, storage, tasks, utils
from .database import Base, SessionLocal, engine, get_db
from .errors import FoodRescueError, NotFound, StoreUnavailable, ValidationError, VerificationRejected

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Food Rescue API")
app.add_middleware(CORSMiddleware, allow_origins=config.CORS_ORIGINS, allow_methods=["*"], allow_headers=["*"])


@app.on_event("startup")
def on_startup():
    Base.metadata.create_all(bind=engine)
    if config.SEED_DATA_PATH:
        db = SessionLocal()
        try:
            if db.query(models.User).first() is None:
                storage.import_dataset(db, storage.load(config.SEED_DATA_PATH))
        except StoreUnavailable as e:
            logger.error("seed data not imported: %s", e.detail)
        finally:
            db.close()


@app.exception_handler(FoodRescueError)
async def domain_error(request: Request, exc: FoodRescueError):
    log = logger.error if exc.status_code >= 500 else logger.warning
    log("%s %s -> %s: %s", request.method, request.url.path, exc.kind, exc.detail)
    return JSONResponse(status_code=exc.status_code, content={"success": False, "error": exc.public_message})


@app.exception_handler(RequestValidationError)
async def request_error(request: Request, exc: RequestValidationError):
    logger.warning("%s %s -> invalid body: %s", request.method, request.url.path, exc.errors())
    return JSONResponse(status_code=400, content={"success": False, "error": ValidationError.public_message})


# Collaborators, overridable in tests
def get_verifier():
    return gemini_client.verify_food


def get_locator():
    return maps_client.lookup_address


def task_record(r):
    out = storage.report_record(r)
    out["date"] = r.created_at.date().isoformat()
    return out


# -----------------
# Bootstrap & users
# -----------------
@app.get("/init")
def init_default_user(db: Session = Depends(get_db)):
    user, created = crud.get_or_create_user(db, config.DEFAULT_EMAIL, config.DEFAULT_NAME)
    message = "Default user created successfully" if created else "Default user already exists"
    return {"success": True, "message": message, "user": storage.user_record(user)}


@app.post("/users")
def sign_in(payload: schemas.UserIn, db: Session = Depends(get_db)):
    user, created = crud.get_or_create_user(db, payload.email, payload.name)
    return {"success": True, "created": created, "user": storage.user_record(user)}


@app.get("/users/by-email")
def user_by_email(email: str, db: Session = Depends(get_db)):
    user = crud.get_user_by_email(db, email)
    if user is None:
        raise NotFound(f"no user with email {email}")
    return storage.user_record(user)


# -----------------
# Location & verification
# -----------------
@app.get("/location")
def location(lat: Optional[float] = None, lng: Optional[float] = None, locate=Depends(get_locator)):
    if lat is None or lng is None:
        raise ValidationError("Latitude and longitude are required")
    return {"success": True, "address": locate(lat, lng)}


@app.post("/verify-food")
def verify_food(payload: schemas.VerifyIn, verify=Depends(get_verifier)):
    return {"success": True, "data": verify(payload.image)}


# -----------------
# Reports
# -----------------
@app.post("/report")
def submit_report(payload: schemas.ReportIn, db: Session = Depends(get_db), verify=Depends(get_verifier)):
    # the model call happens before any database work so no transaction is held open across it
    food = utils.extract_json_object(verify(payload.image))
    if not food.get("foodType"):
        raise VerificationRejected("verification did not identify any food")

    user_id = payload.user_id
    if not user_id:
        user, _ = crud.get_or_create_user(db, config.DEFAULT_EMAIL, config.DEFAULT_NAME)
        user_id = user.id

    report = reports.create_report(
        db, user_id,
        location=payload.location or config.DEFAULT_LOCATION,
        food_type=food.get("foodType"),
        quantity=food.get("quantity") or "unknown",
        image_url=payload.image,
        metadata=payload.metadata,
        verification_result=food,
    )
    return {"success": True, "report": storage.report_record(report)}


@app.get("/reports/recent")
def recent_reports(limit: int = 10, db: Session = Depends(get_db)):
    return [storage.report_record(r) for r in reports.list_recent(db, limit)]


@app.get("/reports/{report_id}")
def get_report(report_id: int, db: Session = Depends(get_db)):
    return storage.report_record(reports.get_report(db, report_id))


@app.get("/users/{user_id}/reports")
def user_reports(user_id: int, db: Session = Depends(get_db)):
    return [storage.report_record(r) for r in reports.list_by_user(db, user_id)]


# -----------------
# Collection tasks
# -----------------
@app.get("/tasks")
def list_tasks(limit: int = 20, db: Session = Depends(get_db)):
    return [task_record(r) for r in tasks.list_tasks(db, limit)]


@app.post("/tasks/{task_id}/claim")
def claim_task(task_id: int, payload: schemas.ClaimIn, db: Session = Depends(get_db)):
    report = tasks.claim(db, task_id, payload.collector_id)
    return {"success": True, "task": task_record(report)}


@app.post("/tasks/{task_id}/complete")
def complete_task(task_id: int, payload: schemas.CompleteIn, db: Session = Depends(get_db)):
    report, points, collected = tasks.complete(db, task_id, payload.collector_id, payload.verification_result)
    return {
        "success": True,
        "task": task_record(report),
        "pointsEarned": points,
        "collectedWaste": storage.collected_waste_record(collected),
    }


@app.get("/collectors/{collector_id}/collections")
def collections(collector_id: int, db: Session = Depends(get_db)):
    return [storage.collected_waste_record(c) for c in tasks.list_collections(db, collector_id)]


# -----------------
# Points & rewards
# -----------------
@app.get("/users/{user_id}/balance")
def user_balance(user_id: int, db: Session = Depends(get_db)):
    return {"userId": user_id, "balance": ledger.balance(db, user_id)}


@app.get("/users/{user_id}/transactions")
def user_transactions(user_id: int, limit: int = 10, db: Session = Depends(get_db)):
    out = []
    for t in ledger.recent_transactions(db, user_id, limit):
        rec = storage.transaction_record(t)
        rec["date"] = t.date.date().isoformat()
        out.append(rec)
    return out


@app.get("/users/{user_id}/rewards/available")
def available_rewards(user_id: int, db: Session = Depends(get_db)):
    out = []
    for reward, cost in redemption.list_available(db, user_id):
        rec = storage.reward_record(reward)
        rec["cost"] = cost
        out.append(rec)
    return out


@app.post("/users/{user_id}/rewards/redeem")
def redeem_reward(user_id: int, payload: schemas.RedeemIn, db: Session = Depends(get_db)):
    account = redemption.redeem(db, user_id, payload.reward_id)
    return {"success": True, "account": storage.reward_record(account), "balance": ledger.balance(db, user_id)}


@app.post("/rewards")
def add_reward(payload: schemas.RewardIn, db: Session = Depends(get_db)):
    reward = redemption.create_catalog_reward(
        db, payload.user_id, payload.name, payload.cost,
        description=payload.description, collection_info=payload.collection_info,
    )
    return {"success": True, "reward": storage.reward_record(reward)}


@app.get("/leaderboard")
def leaderboard(db: Session = Depends(get_db)):
    out = []
    for acct, name in ledger.leaderboard(db):
        rec = storage.reward_record(acct)
        rec["userName"] = name
        out.append(rec)
    return out


# -----------------
# Notifications
# -----------------
@app.get("/users/{user_id}/notifications")
def unread_notifications(user_id: int, db: Session = Depends(get_db)):
    return [storage.notification_record(n) for n in crud.unread_notifications(db, user_id)]


@app.post("/notifications/{notification_id}/read")
def read_notification(notification_id: int, db: Session = Depends(get_db)):
    return storage.notification_record(crud.mark_notification_read(db, notification_id))


# -----------------
# Snapshots of the whole store in the data.json layout
# -----------------
@app.get("/export")
def export_snapshot(db: Session = Depends(get_db)):
    return storage.export_dataset(db)


@app.post("/export")
def save_snapshot(db: Session = Depends(get_db)):
    dataset = storage.export_dataset(db)
    storage.save(dataset)
    return {"success": True, "counts": {name: len(rows) for name, rows in dataset.items()}}


# -----------------
# Impact figures for the landing page
# -----------------
@app.get("/impact")
def impact(db: Session = Depends(get_db)):
    summary = utils.impact_summary(
        reports.list_recent(db, 100),
        tasks.list_tasks(db, 100),
        [acct for acct, _ in ledger.leaderboard(db)],
    )
    return {
        "wasteCollected": summary["food_collected"],
        "reportsSubmitted": summary["reports_submitted"],
        "tokensEarned": summary["tokens_earned"],
        "co2Offset": summary["co2_offset"],
    }
