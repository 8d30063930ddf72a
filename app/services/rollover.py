"""
Rollover envelopes: synthetic lines carrying a previous budget's leftover
balance into the next month. They are recognised by name only.
"""
import re
from decimal import Decimal
from typing import Optional

from app.schemas.budget import BudgetRead
from app.schemas.budget_line import BudgetLineRead
from app.schemas.common import TransactionKind, TransactionRecurrence
from app.utils.date_utils import previous_period

ROLLOVER_NAME_PATTERN = re.compile(r"^rollover_(0?[1-9]|1[0-2])_(\d{4})$")
ROLLOVER_ID_PREFIX = "rollover-"


def rollover_name(month: int, year: int) -> str:
    return f"rollover_{month}_{year}"


def rollover_line_id(budget_id: str) -> str:
    return f"{ROLLOVER_ID_PREFIX}{budget_id}"


def is_rollover_name(name) -> bool:
    return isinstance(name, str) and ROLLOVER_NAME_PATTERN.match(name) is not None


def is_rollover(line) -> bool:
    """Whether an envelope (or any object with a name) is a rollover line."""
    return is_rollover_name(getattr(line, "name", None))


def rollover_source_budget_id(line) -> Optional[str]:
    if not is_rollover(line):
        return None
    return getattr(line, "rollover_source_budget_id", None)


def build_rollover_line(
    budget: BudgetRead,
    rollover_amount: Decimal,
    previous_budget_id: Optional[str],
) -> BudgetLineRead:
    """
    Build the display envelope for a budget's rollover.

    Args:
        budget: Budget receiving the rollover
        rollover_amount: Signed leftover of the previous month
        previous_budget_id: Budget the rollover comes from, if any

    Returns:
        BudgetLineRead: a one-off envelope named after the previous month,
        income when the leftover is positive, expense otherwise
    """
    prev_month, prev_year = previous_period(budget.month, budget.year)
    return BudgetLineRead(
        id=rollover_line_id(budget.id),
        budget_id=budget.id,
        template_line_id=None,
        savings_goal_id=None,
        name=rollover_name(prev_month, prev_year),
        amount=abs(rollover_amount),
        kind=TransactionKind.INCOME if rollover_amount > 0 else TransactionKind.EXPENSE,
        recurrence=TransactionRecurrence.ONE_OFF,
        is_manually_adjusted=False,
        created_at=budget.created_at,
        updated_at=budget.updated_at,
        rollover_source_budget_id=previous_budget_id,
    )
