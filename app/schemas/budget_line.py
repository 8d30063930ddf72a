from typing import Optional
from datetime import datetime
from decimal import Decimal
from pydantic import BaseModel

from app.schemas.common import TransactionKind, TransactionRecurrence


class BudgetLineRead(BaseModel):
    """Envelope as read from the store."""
    id: str
    budget_id: str
    template_line_id: Optional[str] = None
    savings_goal_id: Optional[str] = None
    name: str
    amount: Decimal
    kind: TransactionKind
    recurrence: TransactionRecurrence = TransactionRecurrence.FIXED
    is_manually_adjusted: bool = False
    checked_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    # Only set on synthetic rollover envelopes; plain id, never followed
    rollover_source_budget_id: Optional[str] = None

    class Config:
        from_attributes = True
