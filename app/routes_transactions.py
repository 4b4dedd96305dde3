# routes_transactions.py
"""
Routes for an owner's transactions: list / create / update / delete,
plus the action that catches up recurring transactions.
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from models import Transaction
from app.deps import get_db, get_owner_id, get_recurrence_engine
from app.errors import StoreUnavailable
from app.schemas import (
    ReconcileResponse,
    TransactionCreate,
    TransactionOut,
    TransactionUpdate,
)
from app.services.dates import get_month_range, utc_naive
from app.services.recurrence import RecurrenceEngine


router = APIRouter(prefix="/transactions", tags=["transactions"])

# Fields that only mean something on a series template
SERIES_CONTROL_FIELDS = {"recurring", "recurring_paused", "frequency"}


def _get_owned(db: Session, owner_id: str, transaction_id: int) -> Transaction:
    tx = (
        db.query(Transaction)
        .filter(Transaction.id == transaction_id, Transaction.owner_id == owner_id)
        .first()
    )
    if tx is None:
        raise HTTPException(status_code=404, detail="Transaction not found")
    return tx


def _commit(db: Session, action: str):
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise StoreUnavailable(f"Failed to {action}") from e


@router.get("", response_model=List[TransactionOut])
def list_transactions(
    type: Optional[str] = Query(None),
    month: Optional[str] = Query(None),
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
):
    """
    All transactions of the owner, newest first.
    Optional filters: type (income / expense) and month (YYYY-MM).
    """
    query = db.query(Transaction).filter(Transaction.owner_id == owner_id)

    if type:
        query = query.filter(Transaction.kind == type.strip().lower())

    if month:
        try:
            range_start, range_end_exclusive = get_month_range(month)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        query = query.filter(
            Transaction.date >= range_start,
            Transaction.date < range_end_exclusive,
        )

    return query.order_by(Transaction.date.desc(), Transaction.id.desc()).all()


@router.post("", response_model=TransactionOut, status_code=201)
def create_transaction(
    payload: TransactionCreate,
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
):
    """
    Create a transaction for the owner. With recurring=true the row becomes
    the template of a new recurring series.
    """
    tx = Transaction(
        owner_id=owner_id,
        kind=payload.kind,
        amount=payload.amount,
        date=utc_naive(payload.date),
        vendor=payload.vendor,
        category=payload.category,
        description=payload.description,
        recurring=payload.recurring,
        frequency=payload.frequency,
        recurring_paused=payload.recurring_paused,
    )
    db.add(tx)
    _commit(db, "create transaction")
    db.refresh(tx)
    return tx


@router.put("/{transaction_id}", response_model=TransactionOut)
def update_transaction(
    transaction_id: int,
    payload: TransactionUpdate,
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
):
    """
    Partial update of an owned transaction.
    Pausing / resuming a series is an update of recurring_paused on its template;
    generated occurrences refuse series settings (422).
    """
    tx = _get_owned(db, owner_id, transaction_id)

    changes = payload.model_dump(exclude_unset=True)
    series_fields = sorted(SERIES_CONTROL_FIELDS & changes.keys())
    if tx.series_id is not None and series_fields:
        raise HTTPException(
            status_code=422,
            detail=(
                f"{', '.join(series_fields)} cannot be changed on a generated occurrence; "
                f"update its template (transaction {tx.series_id}) instead"
            ),
        )
    if "date" in changes:
        if changes["date"] is None:
            raise HTTPException(status_code=422, detail="date cannot be null")
        changes["date"] = utc_naive(changes["date"])
    for key in ("kind", "amount", "recurring", "recurring_paused"):
        if key in changes and changes[key] is None:
            raise HTTPException(status_code=422, detail=f"{key} cannot be null")

    recurring = changes.get("recurring", tx.recurring)
    frequency = changes.get("frequency", tx.frequency)
    if recurring and frequency is None:
        raise HTTPException(status_code=422, detail="frequency is required when recurring is true")

    for key, value in changes.items():
        setattr(tx, key, value)

    _commit(db, f"update transaction {transaction_id}")
    db.refresh(tx)
    return tx


@router.delete("/{transaction_id}", status_code=204)
def delete_transaction(
    transaction_id: int,
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
):
    tx = _get_owned(db, owner_id, transaction_id)
    db.delete(tx)
    _commit(db, f"delete transaction {transaction_id}")
    return Response(status_code=204)


@router.post("/recurring", response_model=ReconcileResponse)
def apply_recurring_transactions(
    as_of: Optional[datetime] = Query(None),
    owner_id: str = Depends(get_owner_id),
    engine: RecurrenceEngine = Depends(get_recurrence_engine),
):
    """
    Materialize every recurring occurrence that fell due up to as_of (default: now).
    Safe to call repeatedly: occurrences already present are skipped.
    """
    result = engine.reconcile(owner_id, as_of)
    return ReconcileResponse(
        generated_count=result.generated_count,
        skipped_count=result.skipped_count,
    )
