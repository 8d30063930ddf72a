from decimal import Decimal
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel

from app.schemas.budget import BudgetMetrics


class LedgerItemType(str, Enum):
    BUDGET_LINE = "budget_line"
    TRANSACTION = "transaction"


class EnvelopeConsumption(BaseModel):
    consumed: Decimal = Decimal("0")
    transaction_count: int = 0


class ConsumptionView(BaseModel):
    consumed: Decimal
    transaction_count: int
    percentage: int
    has_transactions: bool


class LedgerRow(BaseModel):
    """
    One display row of a budget ledger.

    kind and recurrence are plain strings so that rows built from malformed
    data still render.
    """
    item_type: LedgerItemType
    id: str
    name: str
    amount: Decimal
    kind: str
    recurrence: Optional[str] = None
    cumulative_balance: Decimal
    is_rollover: bool = False
    is_editing: bool = False
    is_template_linked: bool = False
    is_propagation_locked: bool = False
    rollover_source_budget_id: Optional[str] = None
    # Set on allocated transactions, points at the envelope rendered above
    envelope_id: Optional[str] = None
    consumption: Optional[ConsumptionView] = None


class LedgerResponse(BaseModel):
    budget_id: str
    rows: List[LedgerRow]
    metrics: BudgetMetrics
