"""
Read side of a budget: ownership check, ledger rows with the rollover
envelope on top, and on-demand recalculation.
"""
from typing import Optional

from app.exceptions import ErrorCode, ForbiddenError, NotFoundError
from app.logging_config import get_logger
from app.schemas.budget import BudgetRead, RecalculationResponse
from app.schemas.ledger import LedgerResponse
from app.services import budget_formulas
from app.services.balance_service import BalanceCalculator
from app.services.ledger_builder import provide_ledger
from app.services.rollover import build_rollover_line, is_rollover
from app.store.interface import EntityStore

logger = get_logger(__name__)


class BudgetLedgerService:
    def __init__(self, store: EntityStore, calculator: Optional[BalanceCalculator] = None):
        self.store = store
        self.calculator = calculator or BalanceCalculator(store)

    async def get_owned_budget(self, budget_id: str, user_id: str) -> BudgetRead:
        budget = await self.store.get_budget(budget_id)
        if not budget:
            raise NotFoundError(f"Budget with ID {budget_id} not found", code=ErrorCode.BUDGET_NOT_FOUND)
        if budget.user_id != user_id:
            logger.warning(f"Unauthorized budget access attempt on {budget_id} by user {user_id}")
            raise ForbiddenError("You do not have access to this budget", code=ErrorCode.BUDGET_ACCESS_DENIED)
        return budget

    async def get_ledger(
        self,
        budget_id: str,
        user_id: str,
        editing_line_id: Optional[str] = None,
    ) -> LedgerResponse:
        """
        Build the ordered ledger of a budget.

        The rollover envelope is derived from the previous budget's ending
        balance and replaces any stored rollover line.
        """
        budget = await self.get_owned_budget(budget_id, user_id)
        budget_lines = await self.store.list_budget_lines(budget_id)
        transactions = await self.store.list_transactions(budget_id)

        rollover, previous_budget_id = await self.calculator.get_rollover(budget)
        if previous_budget_id is not None:
            rollover_line = build_rollover_line(budget, rollover, previous_budget_id)
            budget_lines = [rollover_line] + [line for line in budget_lines if not is_rollover(line)]

        rows = provide_ledger(budget_lines, transactions, editing_line_id)
        metrics = budget_formulas.calculate_all_metrics(budget_lines, transactions, rollover)
        return LedgerResponse(budget_id=budget_id, rows=rows, metrics=metrics)

    async def recalculate(self, budget_id: str, user_id: str) -> RecalculationResponse:
        await self.get_owned_budget(budget_id, user_id)
        ending_balance = await self.calculator.recalculate_and_persist(budget_id)
        return RecalculationResponse(budget_id=budget_id, ending_balance=ending_balance)
