# app/schemas.py
"""
Request / response models for the JSON API.
"""

from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

Kind = Literal["income", "expense"]
Frequency = Literal["monthly", "quarterly", "yearly"]


class TransactionCreate(BaseModel):
    kind: Kind
    amount: Decimal
    date: Optional[datetime] = None
    vendor: Optional[str] = None
    category: Optional[str] = None
    description: Optional[str] = None
    recurring: bool = False
    frequency: Optional[Frequency] = None
    recurring_paused: bool = False

    @model_validator(mode="after")
    def _frequency_required_for_recurring(self):
        if self.recurring and self.frequency is None:
            raise ValueError("frequency is required when recurring is true")
        return self


class TransactionUpdate(BaseModel):
    kind: Optional[Kind] = None
    amount: Optional[Decimal] = None
    date: Optional[datetime] = None
    vendor: Optional[str] = None
    category: Optional[str] = None
    description: Optional[str] = None
    recurring: Optional[bool] = None
    frequency: Optional[Frequency] = None
    recurring_paused: Optional[bool] = None


class TransactionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    owner_id: str
    kind: str
    amount: Decimal
    date: datetime
    vendor: Optional[str] = None
    category: Optional[str] = None
    description: Optional[str] = None
    recurring: bool
    frequency: Optional[str] = None
    recurring_paused: bool
    last_generated: Optional[datetime] = None
    series_id: Optional[int] = None


class ReconcileResponse(BaseModel):
    generated_count: int = Field(ge=0)
    skipped_count: int = Field(ge=0)
