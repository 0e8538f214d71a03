# foodrescue/crud.py
import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from . import models
from .errors import NotFound, ValidationError

logger = logging.getLogger(__name__)


# Users
def get_user(db: Session, user_id):
    user = db.get(models.User, user_id)
    if user is None:
        raise NotFound(f"user {user_id} does not exist")
    return user


def get_user_by_email(db: Session, email):
    return db.query(models.User).filter(models.User.email == email).first()


def create_user(db: Session, email, name):
    email = (email or "").strip()
    if not email:
        raise ValidationError("email is required")
    if get_user_by_email(db, email):
        raise ValidationError(f"email {email} already registered")
    user = models.User(email=email, name=(name or "").strip() or "Anonymous User")
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ValidationError(f"email {email} already registered")
    db.refresh(user)
    logger.info("created user id=%s email=%s", user.id, user.email)
    return user


def get_or_create_user(db: Session, email, name):
    """Return (user, created)."""
    user = get_user_by_email(db, email)
    if user:
        return user, False
    try:
        return create_user(db, email, name), True
    except ValidationError:
        # lost a race with another sign-in for the same email
        user = get_user_by_email(db, email)
        if user is None:
            raise
        return user, False


# Notifications
def add_notification(db: Session, user_id, message, type_):
    """Stage a notification in the caller's transaction."""
    n = models.Notification(user_id=user_id, message=message, type=type_, is_read=False)
    db.add(n)
    return n


def create_notification(db: Session, user_id, message, type_):
    n = add_notification(db, user_id, message, type_)
    db.commit(); db.refresh(n)
    return n


def unread_notifications(db: Session, user_id):
    return (
        db.query(models.Notification)
        .filter(models.Notification.user_id == user_id, models.Notification.is_read.is_(False))
        .order_by(models.Notification.created_at.desc(), models.Notification.id.desc())
        .all()
    )


def mark_notification_read(db: Session, notification_id):
    n = db.get(models.Notification, notification_id)
    if n is None:
        raise NotFound(f"notification {notification_id} does not exist")
    if not n.is_read:
        n.is_read = True
        db.commit(); db.refresh(n)
    return n


# Collected waste
def collections_by_collector(db: Session, collector_id):
    return (
        db.query(models.CollectedWaste)
        .filter(models.CollectedWaste.collector_id == collector_id)
        .order_by(models.CollectedWaste.collection_date.desc(), models.CollectedWaste.id.desc())
        .all()
    )
