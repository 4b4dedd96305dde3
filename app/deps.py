# app/deps.py
# Role: Shared application-level dependencies.
#       Provides the standard SQLAlchemy database session dependency,
#       the owner identity taken from the request, and the recurrence engine factory.

"""
Shared dependencies for the finance tracker app.
"""

from typing import Generator, Optional

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from db import SessionLocal
from app.services.recurrence import RecurrenceEngine, validate_owner_id
from app.services.transaction_store import SqlTransactionStore

# -------------------------------------------------------------------
# Database dependency
# -------------------------------------------------------------------

def get_db() -> Generator[Session, None, None]:
    """
    FastAPI dependency that yields a database session and ensures it is closed.

    Typical usage in routes:
        db: Session = Depends(get_db)
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


# -------------------------------------------------------------------
# Owner identity
# -------------------------------------------------------------------

def get_owner_id(x_user_id: Optional[str] = Header(None)) -> str:
    """
    Owner of the request, as set by the upstream auth layer in X-User-Id.
    Raises InvalidOwner (-> 401) when missing or malformed.
    """
    return validate_owner_id(x_user_id)


# -------------------------------------------------------------------
# Recurrence engine
# -------------------------------------------------------------------

def get_recurrence_engine(db: Session = Depends(get_db)) -> RecurrenceEngine:
    return RecurrenceEngine(SqlTransactionStore(db))
