from typing import Optional
from datetime import datetime
from decimal import Decimal
from pydantic import BaseModel, Field


class BudgetRead(BaseModel):
    id: str
    user_id: str
    template_id: Optional[str] = None
    month: int = Field(..., ge=1, le=12)
    year: int
    description: Optional[str] = None
    ending_balance: Optional[Decimal] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class BudgetMetrics(BaseModel):
    """Aggregated figures of one month."""
    total_income: Decimal
    total_expenses: Decimal
    rollover: Decimal
    available: Decimal
    ending_balance: Decimal
    remaining: Decimal


class RecalculationResponse(BaseModel):
    budget_id: str
    ending_balance: Decimal
