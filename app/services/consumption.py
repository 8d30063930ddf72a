"""
Per-envelope consumption: how much of each envelope allocated transactions
have used. Pure functions, same inputs always give the same outputs.
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable

from app.schemas.ledger import EnvelopeConsumption
from app.utils.amounts import ZERO, to_decimal


def aggregate(envelopes: Iterable, transactions: Iterable) -> Dict[str, EnvelopeConsumption]:
    """
    Sum allocated transaction amounts per envelope.

    Free transactions and transactions pointing at an envelope that is not
    in `envelopes` are ignored.

    Returns:
        Dict mapping envelope id to its consumption (zero when untouched)
    """
    totals: Dict[str, EnvelopeConsumption] = {
        envelope.id: EnvelopeConsumption() for envelope in envelopes
    }
    for tx in transactions:
        envelope_id = getattr(tx, "budget_line_id", None)
        if not envelope_id or envelope_id not in totals:
            continue
        entry = totals[envelope_id]
        entry.consumed += to_decimal(getattr(tx, "amount", None))
        entry.transaction_count += 1
    return totals


def calculate_percentage(planned, consumed) -> int:
    """round(consumed / planned * 100), half away from zero; 0 when nothing is planned."""
    planned = to_decimal(planned)
    consumed = to_decimal(consumed)
    if planned <= ZERO:
        return 0
    ratio = consumed / planned * Decimal(100)
    return int(ratio.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
