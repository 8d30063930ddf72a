from decimal import Decimal

from factories import make_budget, make_line, make_tx, ts
from app.schemas.ledger import LedgerItemType
from app.services.budget_formulas import calculate_all_metrics, calculate_net
from app.services.ledger_builder import ledger_balance, provide_ledger
from app.services.rollover import build_rollover_line


class TestOrdering:
    """Rows are grouped by kind, envelopes first, allocated transactions under their envelope."""

    def test_groups_income_saving_expense(self):
        lines = [
            make_line(name="Rent", kind="expense"),
            make_line(name="Salary", kind="income", amount=Decimal("3000")),
            make_line(name="Emergency fund", kind="saving", amount=Decimal("200")),
        ]
        rows = provide_ledger(lines, [])
        assert [row.name for row in rows] == ["Salary", "Emergency fund", "Rent"]

    def test_envelopes_before_free_transactions_within_kind(self):
        lines = [make_line(name="Rent", kind="expense")]
        txs = [make_tx(name="Coffee", kind="expense", amount=Decimal("4"))]
        rows = provide_ledger(lines, txs)
        assert [row.item_type for row in rows] == [LedgerItemType.BUDGET_LINE, LedgerItemType.TRANSACTION]

    def test_fixed_before_one_off_then_created_at_then_name(self):
        lines = [
            make_line(name="Vacation", recurrence="one_off", created_at=ts(1)),
            make_line(name="B", recurrence="fixed", created_at=ts(2)),
            make_line(name="A", recurrence="fixed", created_at=ts(2)),
            make_line(name="Z", recurrence="fixed", created_at=ts(1)),
        ]
        rows = provide_ledger(lines, [])
        assert [row.name for row in rows] == ["Z", "A", "B", "Vacation"]

    def test_allocated_transactions_follow_their_envelope(self):
        groceries = make_line(name="Groceries")
        rent = make_line(name="Rent", created_at=ts(2))
        shop = make_tx(name="Shop", budget_line_id=groceries.id)
        free = make_tx(name="Cinema", transaction_date=ts(3))
        rows = provide_ledger([rent, groceries], [free, shop])

        assert [row.name for row in rows] == ["Groceries", "Shop", "Rent", "Cinema"]
        assert rows[1].envelope_id == groceries.id
        assert rows[3].envelope_id is None

    def test_free_transactions_sorted_by_date_falling_back_to_created_at(self):
        txs = [
            make_tx(name="late", transaction_date=ts(20)),
            make_tx(name="undated", transaction_date=None, created_at=ts(10)),
            make_tx(name="early", transaction_date=ts(2)),
        ]
        rows = provide_ledger([], txs)
        assert [row.name for row in rows] == ["early", "undated", "late"]


class TestRunningBalance:
    def test_overspent_envelope_counts_consumed_amount(self):
        envelope = make_line(amount=Decimal("500"))
        txs = [
            make_tx(budget_line_id=envelope.id, amount=Decimal("350")),
            make_tx(budget_line_id=envelope.id, amount=Decimal("250")),
        ]
        rows = provide_ledger([envelope], txs)
        assert rows[0].cumulative_balance == Decimal("-600")

    def test_underspent_envelope_counts_planned_amount(self):
        envelope = make_line(amount=Decimal("500"))
        rows = provide_ledger([envelope], [make_tx(budget_line_id=envelope.id, amount=Decimal("120"))])
        assert rows[0].cumulative_balance == Decimal("-500")
        # Allocated transactions repeat the balance, they do not move it
        assert rows[1].cumulative_balance == Decimal("-500")

    def test_removing_allocated_transaction_does_not_shift_siblings(self):
        envelope = make_line(amount=Decimal("500"))
        first = make_tx(budget_line_id=envelope.id, amount=Decimal("100"), transaction_date=ts(2))
        second = make_tx(budget_line_id=envelope.id, amount=Decimal("100"), transaction_date=ts(3))

        with_both = provide_ledger([envelope], [first, second])
        without_first = provide_ledger([envelope], [second])

        balance_of = lambda rows: {row.id: row.cumulative_balance for row in rows}
        assert balance_of(with_both)[second.id] == balance_of(without_first)[second.id]

    def test_income_minus_expenses(self):
        lines = [
            make_line(name="Salary", kind="income", amount=Decimal("3000")),
            make_line(name="Rent", kind="expense", amount=Decimal("1500")),
            make_line(name="Savings", kind="saving", amount=Decimal("300")),
        ]
        rows = provide_ledger(lines, [make_tx(kind="income", amount=Decimal("50"))])
        assert [row.cumulative_balance for row in rows] == [
            Decimal("3000"), Decimal("3050"), Decimal("2750"), Decimal("1250"),
        ]

    def test_dangling_envelope_reference_counts_as_free(self):
        tx = make_tx(budget_line_id="deleted-envelope", amount=Decimal("40"))
        rows = provide_ledger([], [tx])
        assert rows[0].cumulative_balance == Decimal("-40")
        assert rows[0].envelope_id is None

    def test_ledger_balance_matches_metrics_net(self):
        groceries = make_line(name="Groceries", amount=Decimal("400"))
        lines = [groceries, make_line(name="Salary", kind="income", amount=Decimal("2000"))]
        txs = [
            make_tx(budget_line_id=groceries.id, amount=Decimal("450")),
            make_tx(amount=Decimal("30")),
        ]
        metrics = calculate_all_metrics(lines, txs)
        assert ledger_balance(lines, txs) == metrics.ending_balance == Decimal("1520")


class TestMalformedData:
    def test_unparsable_values_do_not_raise(self):
        line = make_line(name="Odd").model_copy(update={"amount": "not a number", "created_at": "garbage"})
        tx = make_tx(name="Broken").model_copy(update={"amount": None, "transaction_date": "31/02/2025", "created_at": None})
        rows = provide_ledger([line], [tx])

        assert [row.name for row in rows] == ["Odd", "Broken"]
        assert rows[0].amount == Decimal("0")
        assert rows[1].cumulative_balance == Decimal("0")

    def test_unknown_kind_sorts_last_and_does_not_move_balance(self):
        weird = make_line(name="Weird").model_copy(update={"kind": "transfer"})
        rent = make_line(name="Rent", amount=Decimal("100"))
        rows = provide_ledger([weird, rent], [])
        assert [row.name for row in rows] == ["Rent", "Weird"]
        assert rows[1].cumulative_balance == Decimal("-100")
        assert rows[1].kind == "transfer"

    def test_unparsable_created_at_sorts_after_valid_envelope(self):
        broken = make_line(name="Aaa").model_copy(update={"created_at": "garbage"})
        valid = make_line(name="Zzz", created_at=ts(5))
        rows = provide_ledger([broken, valid], [])
        assert [row.name for row in rows] == ["Zzz", "Aaa"]


class TestRowMetadata:
    def test_editing_flag_only_on_matching_envelope(self):
        lines = [make_line(name="A"), make_line(name="B")]
        rows = provide_ledger(lines, [], editing_line_id=lines[1].id)
        assert [row.is_editing for row in rows] == [False, True]

    def test_propagation_lock_requires_template_link(self):
        linked = make_line(name="A", template_line_id="tl-1", is_manually_adjusted=True)
        unlinked = make_line(name="B", is_manually_adjusted=True)
        rows = provide_ledger([linked, unlinked], [])
        assert rows[0].is_template_linked and rows[0].is_propagation_locked
        assert not rows[1].is_template_linked and not rows[1].is_propagation_locked

    def test_consumption_view(self):
        envelope = make_line(amount=Decimal("500"))
        txs = [make_tx(budget_line_id=envelope.id, amount=Decimal("120")) for _ in range(2)]
        view = provide_ledger([envelope], txs)[0].consumption
        assert view.consumed == Decimal("240")
        assert view.percentage == 48
        assert view.transaction_count == 2
        assert view.has_transactions

    def test_rollover_row(self):
        budget = make_budget(3, 2025)
        rollover = build_rollover_line(budget, Decimal("-75.50"), "previous-budget")
        rows = provide_ledger([rollover], [], editing_line_id=rollover.id)

        row = rows[0]
        assert row.is_rollover
        assert not row.is_editing
        assert row.consumption is None
        assert row.rollover_source_budget_id == "previous-budget"
        assert row.cumulative_balance == Decimal("-75.50")


def test_net_excludes_stored_rollover_lines():
    lines = [
        make_line(name="Salary", kind="income", amount=Decimal("1000")),
        make_line(name="rollover_1_2025", kind="income", amount=Decimal("999")),
    ]
    assert calculate_net(lines, []) == Decimal("1000")
