"""
Shared enums and the line shape common to template lines and envelopes.
"""
from decimal import Decimal
from enum import Enum
from typing import Protocol


class TransactionKind(str, Enum):
    INCOME = "income"
    EXPENSE = "expense"
    SAVING = "saving"


class TransactionRecurrence(str, Enum):
    FIXED = "fixed"
    ONE_OFF = "one_off"


class LineShape(Protocol):
    """Fields shared by template lines and the envelopes generated from them."""
    name: str
    amount: Decimal
    kind: TransactionKind
    recurrence: TransactionRecurrence


def enum_value(value) -> str:
    """Plain string value of an enum member or raw string."""
    if isinstance(value, Enum):
        return value.value
    return "" if value is None else str(value)
