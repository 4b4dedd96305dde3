# app/services/transaction_store.py
"""
Transaction store used by the recurrence engine.

TransactionStore is the narrow interface the engine depends on;
SqlTransactionStore implements it on top of a SQLAlchemy session.
Every database error is rolled back and re-raised as StoreUnavailable.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Protocol, Tuple

from sqlalchemy import and_, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.errors import StoreUnavailable
from models import Transaction

SUPPORTED_FREQUENCIES = ("monthly", "quarterly", "yearly")


@dataclass(frozen=True)
class RecurringTemplate:
    id: int
    owner_id: str
    kind: str
    amount: Decimal
    category: Optional[str]
    description: Optional[str]
    vendor: Optional[str]
    date: datetime
    frequency: str
    recurring_paused: bool = False
    last_generated: Optional[datetime] = None


@dataclass(frozen=True)
class OccurrenceDraft:
    """A new occurrence row staged by the engine, not yet persisted."""

    owner_id: str
    series_id: int
    kind: str
    amount: Decimal
    category: Optional[str]
    description: Optional[str]
    vendor: Optional[str]
    date: datetime
    frequency: str


class TransactionStore(Protocol):
    def find_recurring_templates(self, owner_id: str) -> List[RecurringTemplate]:
        ...

    def exists_occurrence(
        self,
        owner_id: str,
        template: RecurringTemplate,
        day_start: datetime,
        day_end: datetime,
    ) -> bool:
        ...

    def insert_many(self, occurrences: List[OccurrenceDraft]) -> None:
        ...

    def update_checkpoints(self, checkpoints: List[Tuple[int, datetime]]) -> None:
        ...


def _nullable_eq(column, value):
    # SQL "=" never matches NULL, so labels left empty need IS NULL
    return column.is_(None) if value is None else column == value


class SqlTransactionStore:
    def __init__(self, db: Session):
        self._db = db

    def _row_to_template(self, row: Transaction) -> RecurringTemplate:
        return RecurringTemplate(
            id=row.id,
            owner_id=row.owner_id,
            kind=row.kind,
            amount=row.amount,
            category=row.category,
            description=row.description,
            vendor=row.vendor,
            date=row.date,
            frequency=row.frequency,
            recurring_paused=bool(row.recurring_paused),
            last_generated=row.last_generated,
        )

    def find_recurring_templates(self, owner_id: str) -> List[RecurringTemplate]:
        try:
            rows = (
                self._db.query(Transaction)
                .filter(
                    Transaction.owner_id == owner_id,
                    Transaction.recurring.is_(True),
                    Transaction.frequency.in_(SUPPORTED_FREQUENCIES),
                    Transaction.series_id.is_(None),
                )
                .order_by(Transaction.id)
                .all()
            )
        except SQLAlchemyError as e:
            self._db.rollback()
            raise StoreUnavailable(f"Failed to load recurring templates: {e}") from e
        return [self._row_to_template(r) for r in rows]

    def exists_occurrence(
        self,
        owner_id: str,
        template: RecurringTemplate,
        day_start: datetime,
        day_end: datetime,
    ) -> bool:
        """
        True when the owner already has this occurrence on [day_start, day_end].

        A row counts when it belongs to this series, or when it is any other
        recurring row (linked to any series or none) whose kind, amount,
        category and description match the template. The template's own row
        never counts.
        """
        same_series = Transaction.series_id == template.id
        same_tuple = and_(
            Transaction.id != template.id,
            Transaction.recurring.is_(True),
            Transaction.kind == template.kind,
            Transaction.amount == template.amount,
            _nullable_eq(Transaction.category, template.category),
            _nullable_eq(Transaction.description, template.description),
        )
        try:
            found = (
                self._db.query(Transaction.id)
                .filter(
                    Transaction.owner_id == owner_id,
                    Transaction.date >= day_start,
                    Transaction.date <= day_end,
                    or_(same_series, same_tuple),
                )
                .first()
            )
        except SQLAlchemyError as e:
            self._db.rollback()
            raise StoreUnavailable(f"Failed to check occurrence for template {template.id}: {e}") from e
        return found is not None

    def insert_many(self, occurrences: List[OccurrenceDraft]) -> None:
        if not occurrences:
            return
        orm_objects = [
            Transaction(
                owner_id=o.owner_id,
                kind=o.kind,
                vendor=o.vendor,
                amount=o.amount,
                category=o.category,
                description=o.description,
                date=o.date,
                recurring=True,
                frequency=o.frequency,
                recurring_paused=False,
                series_id=o.series_id,
            )
            for o in occurrences
        ]
        try:
            self._db.add_all(orm_objects)
            self._db.commit()
        except SQLAlchemyError as e:
            self._db.rollback()
            raise StoreUnavailable(f"Failed to insert {len(orm_objects)} occurrences: {e}") from e

    def update_checkpoints(self, checkpoints: List[Tuple[int, datetime]]) -> None:
        if not checkpoints:
            return
        try:
            for template_id, checkpoint in checkpoints:
                # Never move a checkpoint backwards (a concurrent call may be ahead)
                self._db.query(Transaction).filter(
                    Transaction.id == template_id,
                    or_(
                        Transaction.last_generated.is_(None),
                        Transaction.last_generated < checkpoint,
                    ),
                ).update(
                    {Transaction.last_generated: checkpoint},
                    synchronize_session=False,
                )
            self._db.commit()
        except SQLAlchemyError as e:
            self._db.rollback()
            raise StoreUnavailable(f"Failed to update {len(checkpoints)} checkpoints: {e}") from e
