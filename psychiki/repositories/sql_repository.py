"""High-level data access helpers backed by SQLAlchemy."""
from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Callable, ContextManager, Optional

from sqlalchemy import delete, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload
from sqlalchemy.orm.exc import StaleDataError

from psychiki.db.models import Account, ActivityRecord, DayEntry
from psychiki.db.session import get_session

SessionFactory = Callable[[], ContextManager[Session]]


class SQLRepository:
    """CRUD helpers wrapping the SQLAlchemy session."""

    def __init__(self, session_factory: SessionFactory = get_session) -> None:
        self._session = session_factory

    # -------------------------- accounts --------------------------
    def find_account(self, *, username: str | None = None, email: str | None = None) -> Optional[Account]:
        """First account matching the username OR the email."""
        clauses = []
        if username:
            clauses.append(Account.username == username)
        if email:
            clauses.append(Account.email == email)
        if not clauses:
            return None
        with self._session() as session:
            stmt = select(Account).where(or_(*clauses)).order_by(Account.id).limit(1)
            return session.execute(stmt).scalars().first()

    def get_account(self, account_id: int) -> Optional[Account]:
        with self._session() as session:
            return session.get(Account, account_id)

    def get_account_by_email(self, email: str) -> Optional[Account]:
        with self._session() as session:
            stmt = select(Account).where(Account.email == email)
            return session.execute(stmt).scalar_one_or_none()

    def insert_account(self, username: str, email: str, password_hash: str, **values) -> Account:
        now = datetime.now(timezone.utc)
        entity = Account(
            username=username,
            email=email,
            password_hash=password_hash,
            created_at=now,
            updated_at=now,
            **values,
        )
        with self._session() as session:
            session.add(entity)
            session.commit()
            session.refresh(entity)
            return entity

    def update_account(self, account_id: int, **values) -> Optional[Account]:
        with self._session() as session:
            account = session.get(Account, account_id)
            if not account:
                return None
            for key, value in values.items():
                setattr(account, key, value)
            account.updated_at = datetime.now(timezone.utc)
            session.commit()
            session.refresh(account)
            return account

    def delete_account(self, account_id: int) -> None:
        with self._session() as session:
            session.execute(delete(Account).where(Account.id == account_id))
            session.commit()

    # -------------------------- activity --------------------------
    def get_activity(self, account_id: int) -> Optional[ActivityRecord]:
        with self._session() as session:
            stmt = (
                select(ActivityRecord)
                .where(ActivityRecord.account_id == account_id)
                .options(selectinload(ActivityRecord.days))
            )
            return session.execute(stmt).scalar_one_or_none()

    def ensure_activity(self, account_id: int) -> ActivityRecord:
        """Return the account's record, creating an empty one on first use."""
        existing = self.get_activity(account_id)
        if existing:
            return existing
        now = datetime.now(timezone.utc)
        try:
            with self._session() as session:
                session.add(
                    ActivityRecord(
                        account_id=account_id,
                        total_steps=0,
                        streak=0,
                        version=1,
                        created_at=now,
                        updated_at=now,
                    )
                )
                session.commit()
        except IntegrityError:
            # another request created it first
            pass
        return self.get_activity(account_id)

    def get_day_steps(self, account_id: int, day: date) -> Optional[int]:
        with self._session() as session:
            stmt = select(DayEntry.steps).where(DayEntry.account_id == account_id, DayEntry.day == day)
            return session.execute(stmt).scalar_one_or_none()

    def apply_sync(
        self,
        account_id: int,
        *,
        expected_version: int,
        day: date,
        steps: int,
        total_steps: int,
        streak: int,
        last_active_date: Optional[date],
    ) -> ActivityRecord:
        """
        Write the new totals and the day entry in one transaction. Raises
        StaleDataError when the record changed since ``expected_version`` was read.
        """
        with self._session() as session:
            stmt = (
                update(ActivityRecord)
                .where(ActivityRecord.account_id == account_id, ActivityRecord.version == expected_version)
                .values(
                    total_steps=total_steps,
                    streak=streak,
                    last_active_date=last_active_date,
                    version=expected_version + 1,
                    updated_at=datetime.now(timezone.utc),
                )
            )
            if session.execute(stmt).rowcount != 1:
                session.rollback()
                raise StaleDataError(f"activity record {account_id} was modified concurrently")
            entry = session.execute(
                select(DayEntry).where(DayEntry.account_id == account_id, DayEntry.day == day)
            ).scalar_one_or_none()
            if entry:
                entry.steps = steps
            else:
                session.add(DayEntry(account_id=account_id, day=day, steps=steps))
            session.commit()
        return self.get_activity(account_id)

    def update_activity(self, account_id: int, **values) -> Optional[ActivityRecord]:
        with self._session() as session:
            record = session.get(ActivityRecord, account_id)
            if not record:
                return None
            for key, value in values.items():
                setattr(record, key, value)
            record.version = int(record.version or 0) + 1
            record.updated_at = datetime.now(timezone.utc)
            session.commit()
        return self.get_activity(account_id)

    def top_activity(self, limit: int) -> list[tuple[Account, ActivityRecord]]:
        """Synced records by lifetime steps, highest first; ties keep account creation order."""
        with self._session() as session:
            stmt = (
                select(Account, ActivityRecord)
                .join(ActivityRecord, ActivityRecord.account_id == Account.id)
                .where(ActivityRecord.last_active_date.is_not(None))
                .order_by(ActivityRecord.total_steps.desc(), Account.id.asc())
                .limit(limit)
            )
            return [(account, record) for account, record in session.execute(stmt).all()]
