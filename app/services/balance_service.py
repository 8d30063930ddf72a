"""
Balance calculation and recalculation.

A budget's ending balance is its rollover (the previous budget's persisted
ending balance) plus the net of its own envelopes and transactions. Budgets
of one user therefore form a chain: recalculating them must go oldest first.
"""
from decimal import Decimal
from typing import List, Optional, Sequence, Tuple

from app.exceptions import ErrorCode, NotFoundError
from app.logging_config import get_logger
from app.schemas.budget import BudgetMetrics, BudgetRead
from app.schemas.template import RecalculationFailure
from app.services import budget_formulas
from app.store.interface import EntityStore
from app.utils.amounts import ZERO, to_decimal
from app.utils.date_utils import period_key

logger = get_logger(__name__)


class BalanceCalculator:
    """Computes and persists budget ending balances."""

    def __init__(self, store: EntityStore):
        self.store = store

    async def _get_budget(self, budget_id: str) -> BudgetRead:
        budget = await self.store.get_budget(budget_id)
        if not budget:
            raise NotFoundError(f"Budget with ID {budget_id} not found", code=ErrorCode.BUDGET_NOT_FOUND)
        return budget

    async def get_rollover(self, budget: BudgetRead) -> Tuple[Decimal, Optional[str]]:
        """
        Get the amount carried into a budget and the budget it comes from.

        Returns:
            tuple: (rollover amount, previous budget id or None)
        """
        previous = await self.store.get_previous_budget(budget.user_id, budget.year, budget.month)
        if not previous:
            return ZERO, None
        return to_decimal(previous.ending_balance), previous.id

    async def calculate_metrics(self, budget_id: str) -> BudgetMetrics:
        budget = await self._get_budget(budget_id)
        budget_lines = await self.store.list_budget_lines(budget_id)
        transactions = await self.store.list_transactions(budget_id)
        rollover, _ = await self.get_rollover(budget)
        return budget_formulas.calculate_all_metrics(budget_lines, transactions, rollover)

    async def calculate_ending_balance(self, budget_id: str) -> Decimal:
        metrics = await self.calculate_metrics(budget_id)
        return metrics.ending_balance

    async def recalculate_and_persist(self, budget_id: str) -> Decimal:
        """Recompute a budget's ending balance and store it. Idempotent."""
        ending_balance = await self.calculate_ending_balance(budget_id)
        await self.store.persist_ending_balance(budget_id, ending_balance)
        logger.info(f"Ending balance of budget {budget_id} recalculated: {ending_balance}")
        return ending_balance


class RecalculationService:
    """
    Recalculates many budgets, oldest month first.

    Runs sequentially: budgets of one user share a rollover chain and the
    store session is not safe for concurrent use. Independent users are
    parallelized at task level (one backfill task per user).
    """

    def __init__(self, store: EntityStore, calculator: Optional[BalanceCalculator] = None):
        self.store = store
        self.calculator = calculator or BalanceCalculator(store)

    async def recalculate_many(self, budget_ids: Sequence[str]) -> List[RecalculationFailure]:
        """
        Recalculate every given budget. One failure does not stop the others.

        Returns:
            Failures, empty when every budget was recalculated
        """
        if not budget_ids:
            return []

        budgets = await self.store.get_budgets(list(dict.fromkeys(budget_ids)))
        found = {budget.id for budget in budgets}
        failures = [
            RecalculationFailure(budget_id=budget_id, error="Budget not found")
            for budget_id in dict.fromkeys(budget_ids)
            if budget_id not in found
        ]

        for budget in sorted(budgets, key=lambda b: (b.user_id, period_key(b.year, b.month))):
            try:
                await self.calculator.recalculate_and_persist(budget.id)
            except Exception as e:
                logger.error(f"Failed to recalculate budget {budget.id}: {e}")
                failures.append(RecalculationFailure(budget_id=budget.id, error=str(e)))

        if failures:
            logger.warning(f"Recalculation finished with {len(failures)} failure(s) out of {len(budget_ids)}")
        return failures

    async def backfill_user_balances(self, user_id: str) -> List[RecalculationFailure]:
        """Recalculate all budgets of a user in chronological order."""
        budgets = await self.store.list_user_budgets(user_id)
        logger.info(f"Backfilling balances of {len(budgets)} budgets for user {user_id}")
        return await self.recalculate_many([budget.id for budget in budgets])
