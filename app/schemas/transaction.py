from typing import Optional
from datetime import datetime
from decimal import Decimal
from pydantic import BaseModel

from app.schemas.common import TransactionKind


class TransactionRead(BaseModel):
    id: str
    budget_id: str
    budget_line_id: Optional[str] = None
    name: str
    amount: Decimal
    kind: TransactionKind
    transaction_date: Optional[datetime] = None
    category: Optional[str] = None
    checked_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
