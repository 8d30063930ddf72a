from typing import Optional

from fastapi import APIRouter, Depends, Query

from app.dependencies import get_current_user_id, get_store
from app.logging_config import get_logger
from app.schemas.budget import RecalculationResponse
from app.schemas.ledger import LedgerResponse
from app.services.budget_ledger_service import BudgetLedgerService
from app.store.interface import EntityStore

logger = get_logger(__name__)
router = APIRouter(prefix="/budgets", tags=["budgets"])


@router.get("/{budget_id}/ledger", response_model=LedgerResponse)
async def get_budget_ledger(
    budget_id: str,
    editing_line_id: Optional[str] = Query(default=None, description="Envelope currently being edited"),
    user_id: str = Depends(get_current_user_id),
    store: EntityStore = Depends(get_store),
):
    """Ordered envelopes and transactions of a budget with running balance."""
    return await BudgetLedgerService(store).get_ledger(budget_id, user_id, editing_line_id)


@router.post("/{budget_id}/recalculate", response_model=RecalculationResponse)
async def recalculate_budget(
    budget_id: str,
    user_id: str = Depends(get_current_user_id),
    store: EntityStore = Depends(get_store),
):
    """Recompute and persist a budget's ending balance."""
    result = await BudgetLedgerService(store).recalculate(budget_id, user_id)
    logger.info(f"Budget {budget_id} recalculated on request of user {user_id}")
    return result
