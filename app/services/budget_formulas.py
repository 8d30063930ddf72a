"""
Budget formulas shared by the balance calculator and summaries.

    available      = income + rollover
    ending_balance = available - expenses
    remaining      = ending_balance

Income and expenses count each envelope at max(planned, consumed) and each
free transaction at face value, so a month's net equals the final running
balance of its ledger. Saving is treated as an expense.
"""
from decimal import Decimal
from typing import Iterable, Tuple

from app.schemas.budget import BudgetMetrics
from app.schemas.common import enum_value
from app.services.consumption import aggregate
from app.services.rollover import is_rollover
from app.utils.amounts import ZERO, to_decimal

OUTFLOW_KINDS = ("expense", "saving")


def _split_totals(budget_lines: Iterable, transactions: Iterable) -> Tuple[Decimal, Decimal]:
    lines = [line for line in budget_lines if not is_rollover(line)]
    transactions = list(transactions)
    consumption = aggregate(lines, transactions)

    income = ZERO
    expenses = ZERO
    for line in lines:
        effective = max(to_decimal(line.amount), consumption[line.id].consumed)
        kind = enum_value(line.kind)
        if kind == "income":
            income += effective
        elif kind in OUTFLOW_KINDS:
            expenses += effective

    for tx in transactions:
        if tx.budget_line_id and tx.budget_line_id in consumption:
            continue
        kind = enum_value(tx.kind)
        if kind == "income":
            income += to_decimal(tx.amount)
        elif kind in OUTFLOW_KINDS:
            expenses += to_decimal(tx.amount)

    return income, expenses


def calculate_net(budget_lines: Iterable, transactions: Iterable = ()) -> Decimal:
    """Net of one month without its rollover: income minus expenses."""
    income, expenses = _split_totals(budget_lines, transactions)
    return income - expenses


def calculate_all_metrics(budget_lines: Iterable, transactions: Iterable = (), rollover=ZERO) -> BudgetMetrics:
    """Compute every figure of a month in one pass."""
    rollover = to_decimal(rollover)
    income, expenses = _split_totals(budget_lines, transactions)
    available = income + rollover
    ending_balance = available - expenses
    return BudgetMetrics(
        total_income=income,
        total_expenses=expenses,
        rollover=rollover,
        available=available,
        ending_balance=ending_balance,
        remaining=ending_balance,
    )
