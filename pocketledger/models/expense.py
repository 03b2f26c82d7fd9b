import uuid
from datetime import datetime, date
from decimal import Decimal
from typing import Optional
from sqlmodel import SQLModel, Field

from .base import UTCDateTime, utcnow


class Expense(SQLModel, table=True):
    __tablename__ = "expenses"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True, index=True)

    user_id: uuid.UUID = Field(
        foreign_key="users.id",
        index=True
    )

    amount: Decimal = Field(max_digits=12, decimal_places=2)
    description: str = Field(max_length=200)
    category_id: uuid.UUID = Field(foreign_key="categories.id", index=True)
    expense_date: date = Field(default_factory=date.today, index=True)
    receipt_path: Optional[str] = Field(default=None)

    created_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)
