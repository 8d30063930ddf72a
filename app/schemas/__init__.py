from app.schemas.common import TransactionKind, TransactionRecurrence, LineShape
from app.schemas.budget import BudgetRead, BudgetMetrics, RecalculationResponse
from app.schemas.budget_line import BudgetLineRead
from app.schemas.transaction import TransactionRead
from app.schemas.template import (
    TemplateRead,
    TemplateLineRead,
    TemplateLineCreate,
    TemplateLineUpdate,
    TemplateLinesBulkOperations,
    TemplateLinesBulkOperationsResponse,
    PropagationMode,
    PropagationSummary,
    RecalculationFailure,
    PropagationOperations,
)
from app.schemas.ledger import LedgerItemType, LedgerRow, LedgerResponse, EnvelopeConsumption, ConsumptionView

__all__ = [
    "TransactionKind",
    "TransactionRecurrence",
    "LineShape",
    "BudgetRead",
    "BudgetMetrics",
    "RecalculationResponse",
    "BudgetLineRead",
    "TransactionRead",
    "TemplateRead",
    "TemplateLineRead",
    "TemplateLineCreate",
    "TemplateLineUpdate",
    "TemplateLinesBulkOperations",
    "TemplateLinesBulkOperationsResponse",
    "PropagationMode",
    "PropagationSummary",
    "RecalculationFailure",
    "PropagationOperations",
    "LedgerItemType",
    "LedgerRow",
    "LedgerResponse",
    "EnvelopeConsumption",
    "ConsumptionView",
]
