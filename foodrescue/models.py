# foodrescue/models.py
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean, CheckConstraint, Column, DateTime, ForeignKey, Integer, String, Text,
)
from sqlalchemy.orm import relationship

from .database import Base

# Report.status values; "completed" is only ever shown by old clients, nothing assigns it
PENDING = "pending"
IN_PROGRESS = "in_progress"
VERIFIED = "verified"
REPORT_STATUSES = (PENDING, IN_PROGRESS, VERIFIED)

EARNED_REPORT = "earned_report"
EARNED_COLLECT = "earned_collect"
REDEEMED = "redeemed"
TRANSACTION_TYPES = (EARNED_REPORT, EARNED_COLLECT, REDEEMED)


def utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


class User(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String, unique=True, nullable=False)
    name = Column(String, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    reports = relationship("Report", back_populates="user")


class Report(Base):
    __tablename__ = "reports"
    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    location = Column(String, nullable=False)
    food_type = Column(String, nullable=False)
    quantity = Column(String, nullable=False)  # free text, e.g. "3 portions"
    image_url = Column(Text)
    verification_result = Column(Text)  # JSON string
    metadata_json = Column("metadata", Text)  # JSON string
    expiry_time = Column(DateTime)
    status = Column(String, default=PENDING, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    collector_id = Column(Integer, index=True)

    user = relationship("User", back_populates="reports")
    collections = relationship("CollectedWaste", back_populates="report")


class Reward(Base):
    __tablename__ = "rewards"
    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, nullable=False, index=True)
    # set to user_id on the one account row per user, NULL on catalog rows
    account_user_id = Column(Integer, unique=True)
    name = Column(String, nullable=False)
    collection_info = Column(String, nullable=False, default="")
    points = Column(Integer, nullable=False, default=0)
    level = Column(Integer, nullable=False, default=1)
    is_available = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, nullable=False)
    description = Column(Text)
    cost = Column(Integer)

    @property
    def is_account(self):
        return self.account_user_id is not None


class Transaction(Base):
    __tablename__ = "transactions"
    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_transactions_amount_positive"),
    )
    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, nullable=False, index=True)
    type = Column(String, nullable=False)  # earned_report | earned_collect | redeemed
    amount = Column(Integer, nullable=False)
    description = Column(String, nullable=False, default="")
    date = Column(DateTime, default=utcnow, nullable=False)

    @property
    def signed_amount(self):
        return -self.amount if self.type == REDEEMED else self.amount


class Notification(Base):
    __tablename__ = "notifications"
    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, nullable=False, index=True)
    message = Column(Text, nullable=False)
    type = Column(String, nullable=False)
    is_read = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)


class CollectedWaste(Base):
    __tablename__ = "collected_wastes"
    id = Column(Integer, primary_key=True, autoincrement=True)
    report_id = Column(Integer, ForeignKey("reports.id"), nullable=False, index=True)
    collector_id = Column(Integer, nullable=False, index=True)
    collection_date = Column(DateTime, default=utcnow, nullable=False)
    status = Column(String)
    notes = Column(Text)
    verification_result = Column(Text)  # JSON string

    report = relationship("Report", back_populates="collections")
