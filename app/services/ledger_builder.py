"""
Ledger builder: merges a budget's envelopes and transactions into one ordered
list of display rows carrying a running balance.

Ordering:
    - kinds in the order income, saving, expense (unknown kinds last)
    - within a kind, envelopes first, then free transactions
    - envelopes by recurrence (fixed before one_off), creation time, name
    - transactions by transaction date (creation time when missing), name
    - allocated transactions directly under their envelope

Balance:
    - envelope: sign(kind) * max(planned, consumed)
    - free transaction: sign(kind) * amount
    - allocated transaction: nothing, it is already inside its envelope

Nothing here raises on malformed amounts or dates; they are normalised by
to_decimal and safe_timestamp.
"""
from collections import defaultdict
from decimal import Decimal
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from app.schemas.common import enum_value
from app.schemas.ledger import ConsumptionView, EnvelopeConsumption, LedgerItemType, LedgerRow
from app.services.consumption import aggregate, calculate_percentage
from app.services.rollover import is_rollover, rollover_source_budget_id
from app.utils.amounts import ZERO, to_decimal
from app.utils.date_utils import safe_timestamp

KIND_ORDER = {"income": 0, "saving": 1, "expense": 2}
RECURRENCE_ORDER = {"fixed": 0, "one_off": 1}
_LAST = len(KIND_ORDER) + len(RECURRENCE_ORDER)


def signed_amount(kind, amount) -> Decimal:
    """Income adds to the balance, expense and saving subtract from it."""
    kind = enum_value(kind)
    amount = to_decimal(amount)
    if kind == "income":
        return amount
    if kind in ("expense", "saving"):
        return -amount
    return ZERO


def _name(item) -> str:
    name = getattr(item, "name", None)
    return name if isinstance(name, str) else ""


def envelope_sort_key(line) -> Tuple[int, float, str]:
    return (
        RECURRENCE_ORDER.get(enum_value(getattr(line, "recurrence", None)), _LAST),
        safe_timestamp(getattr(line, "created_at", None)),
        _name(line),
    )


def transaction_sort_key(tx) -> Tuple[float, str]:
    timestamp = safe_timestamp(getattr(tx, "transaction_date", None))
    if timestamp == float("inf"):
        timestamp = safe_timestamp(getattr(tx, "created_at", None))
    return timestamp, _name(tx)


def _kind_sequence(kinds: Iterable[str]) -> List[str]:
    known = [kind for kind in KIND_ORDER if kind in kinds]
    unknown = sorted(kind for kind in kinds if kind not in KIND_ORDER)
    return known + unknown


def _walk(
    budget_lines: List,
    transactions: List,
    consumption: Dict[str, EnvelopeConsumption],
) -> Iterator[Tuple[LedgerItemType, object, Decimal, Optional[str]]]:
    """
    Yield (item_type, item, running_balance, envelope_id) in display order.
    """
    envelopes_by_kind: Dict[str, List] = defaultdict(list)
    for line in budget_lines:
        envelopes_by_kind[enum_value(getattr(line, "kind", None))].append(line)

    allocated: Dict[str, List] = defaultdict(list)
    free_by_kind: Dict[str, List] = defaultdict(list)
    for tx in transactions:
        envelope_id = getattr(tx, "budget_line_id", None)
        # A dangling reference is not reflected in any envelope, count it as free
        if envelope_id and envelope_id in consumption:
            allocated[envelope_id].append(tx)
        else:
            free_by_kind[enum_value(getattr(tx, "kind", None))].append(tx)

    running = ZERO
    for kind in _kind_sequence(set(envelopes_by_kind) | set(free_by_kind)):
        for line in sorted(envelopes_by_kind[kind], key=envelope_sort_key):
            planned = to_decimal(getattr(line, "amount", None))
            used = consumption.get(line.id, EnvelopeConsumption()).consumed
            running += signed_amount(kind, max(planned, used))
            yield LedgerItemType.BUDGET_LINE, line, running, None

            for tx in sorted(allocated.get(line.id, []), key=transaction_sort_key):
                yield LedgerItemType.TRANSACTION, tx, running, line.id

        for tx in sorted(free_by_kind[kind], key=transaction_sort_key):
            running += signed_amount(kind, getattr(tx, "amount", None))
            yield LedgerItemType.TRANSACTION, tx, running, None


def _envelope_row(line, balance: Decimal, consumption: EnvelopeConsumption, editing_line_id: Optional[str]) -> LedgerRow:
    rollover = is_rollover(line)
    template_linked = bool(getattr(line, "template_line_id", None))
    planned = to_decimal(getattr(line, "amount", None))

    view = None
    if not rollover:
        view = ConsumptionView(
            consumed=consumption.consumed,
            transaction_count=consumption.transaction_count,
            percentage=calculate_percentage(planned, consumption.consumed),
            has_transactions=consumption.transaction_count > 0,
        )

    return LedgerRow(
        item_type=LedgerItemType.BUDGET_LINE,
        id=str(line.id),
        name=_name(line),
        amount=planned,
        kind=enum_value(getattr(line, "kind", None)),
        recurrence=enum_value(getattr(line, "recurrence", None)) or None,
        cumulative_balance=balance,
        is_rollover=rollover,
        is_editing=editing_line_id is not None and editing_line_id == line.id and not rollover,
        is_template_linked=template_linked,
        is_propagation_locked=template_linked and bool(getattr(line, "is_manually_adjusted", False)),
        rollover_source_budget_id=rollover_source_budget_id(line),
        consumption=view,
    )


def _transaction_row(tx, balance: Decimal, envelope_id: Optional[str]) -> LedgerRow:
    return LedgerRow(
        item_type=LedgerItemType.TRANSACTION,
        id=str(tx.id),
        name=_name(tx),
        amount=to_decimal(getattr(tx, "amount", None)),
        kind=enum_value(getattr(tx, "kind", None)),
        cumulative_balance=balance,
        envelope_id=envelope_id,
    )


def provide_ledger(
    budget_lines: Iterable,
    transactions: Iterable,
    editing_line_id: Optional[str] = None,
) -> List[LedgerRow]:
    """
    Build the ordered ledger of one budget.

    Args:
        budget_lines: Envelopes of the budget (rollover envelope included)
        transactions: All transactions of the budget
        editing_line_id: Envelope currently being edited, if any

    Returns:
        List of LedgerRow in display order
    """
    budget_lines = list(budget_lines)
    transactions = list(transactions)
    consumption = aggregate(budget_lines, transactions)

    rows = []
    for item_type, item, balance, envelope_id in _walk(budget_lines, transactions, consumption):
        if item_type == LedgerItemType.BUDGET_LINE:
            rows.append(_envelope_row(item, balance, consumption[item.id], editing_line_id))
        else:
            rows.append(_transaction_row(item, balance, envelope_id))
    return rows


def ledger_balance(budget_lines: Iterable, transactions: Iterable) -> Decimal:
    """Final running balance of the ledger, without building rows."""
    budget_lines = list(budget_lines)
    transactions = list(transactions)
    consumption = aggregate(budget_lines, transactions)
    balance = ZERO
    for _, _, balance, _ in _walk(budget_lines, transactions, consumption):
        pass
    return balance
