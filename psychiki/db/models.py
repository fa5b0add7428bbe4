"""SQLAlchemy models for accounts and the activity ledger."""
from __future__ import annotations

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import relationship

from .session import Base

DEFAULT_WEIGHT_KG = 70.0
DEFAULT_DAILY_GOAL = 10000


class Account(Base):
    __tablename__ = "accounts"
    __table_args__ = (
        CheckConstraint(
            "(verification_code IS NULL) = (verification_expires_at IS NULL)",
            name="ck_accounts_code_has_expiry",
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(50), unique=True, nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    password_hash = Column(Text, nullable=False)
    is_verified = Column(Boolean, default=False, nullable=False)
    verification_code = Column(String(6), nullable=True)
    verification_expires_at = Column(DateTime(timezone=True), nullable=True)

    display_name = Column(String(100), nullable=True)
    avatar_url = Column(String(500), nullable=True)
    weight_kg = Column(Float, default=DEFAULT_WEIGHT_KG, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    activity = relationship("ActivityRecord", uselist=False, back_populates="account", cascade="all,delete-orphan")


class ActivityRecord(Base):
    __tablename__ = "activity_records"

    account_id = Column(Integer, ForeignKey("accounts.id", ondelete="CASCADE"), primary_key=True)
    total_steps = Column(BigInteger, default=0, nullable=False)
    daily_goal = Column(Integer, default=DEFAULT_DAILY_GOAL, nullable=False)
    streak = Column(Integer, default=0, nullable=False)
    last_active_date = Column(Date, nullable=True)
    version = Column(Integer, default=1, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    account = relationship("Account", back_populates="activity")
    days = relationship(
        "DayEntry",
        back_populates="record",
        cascade="all,delete-orphan",
        order_by="DayEntry.day",
    )


class DayEntry(Base):
    __tablename__ = "day_entries"
    __table_args__ = (UniqueConstraint("account_id", "day", name="uq_day_entries_account_day"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    account_id = Column(Integer, ForeignKey("activity_records.account_id", ondelete="CASCADE"), nullable=False)
    day = Column(Date, nullable=False)
    steps = Column(Integer, default=0, nullable=False)

    record = relationship("ActivityRecord", back_populates="days")
