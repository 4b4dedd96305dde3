# models.py
# Role: SQLAlchemy ORM models for the finance tracker domain.
#       Defines the Transaction model: one income/expense row per owner,
#       which may also act as the head of a recurring series.

from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from db import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Transaction(Base):
    """
    ORM model representing a single financial transaction.

    A row with recurring=True and no series_id is a recurring template
    (the head of a series). Rows generated from a template point back to
    it through series_id and are never treated as templates themselves.
    """

    __tablename__ = "transactions"
    __table_args__ = (
        # At most one generated row per series and occurrence instant
        UniqueConstraint("series_id", "date", name="uq_transactions_series_date"),
    )

    # Primary key
    id = Column(Integer, primary_key=True, index=True)

    # Owning user (opaque identity provided by the auth layer)
    owner_id = Column(String(64), nullable=False, index=True)

    # "income" or "expense"
    kind = Column(String(16), nullable=False)

    # Free-form labels
    vendor = Column(String, nullable=True)
    category = Column(String, nullable=True)
    description = Column(Text, nullable=True)

    # Signed decimal amount
    amount = Column(Numeric(14, 2), nullable=False)

    # Instant the transaction is attributed to (naive UTC)
    date = Column(DateTime, nullable=False, index=True)

    # Recurring series settings
    recurring = Column(Boolean, nullable=False, default=False)
    frequency = Column(String(16), nullable=True)  # monthly | quarterly | yearly
    recurring_paused = Column(Boolean, nullable=False, default=False)

    # Date of the most recent occurrence confirmed to exist (templates only)
    last_generated = Column(DateTime, nullable=True)

    # Template id for generated occurrences, NULL for templates and one-off rows
    series_id = Column(Integer, nullable=True, index=True)

    created_at = Column(DateTime, nullable=False, default=_utcnow)
