import asyncio
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from factories import OTHER_USER_ID, USER_ID, make_budget, make_line, make_template, make_template_line
from app.exceptions import BadRequestError, ErrorCode, ForbiddenError, NotFoundError
from app.schemas.template import PropagationMode, PropagationOperations
from app.services.template_propagation_service import TemplateLockRegistry, TemplatePropagationService

NOW = datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def template(store):
    return store.add_template(make_template())


@pytest.fixture
def rent(store, template):
    return store.add_template_line(make_template_line(template.id))


@pytest.fixture
def budgets(store, template):
    """May (past), June (current) and July (future) budgets from the template."""
    return {
        month: store.add_budget(make_budget(month, 2025, template_id=template.id))
        for month in (5, 6, 7)
    }


@pytest.fixture
def engine(store):
    return TemplatePropagationService(store, locks=TemplateLockRegistry(), clock=lambda: NOW)


def mirror(store, budget, template_line, **overrides):
    data = dict(
        template_line_id=template_line.id,
        name=template_line.name,
        amount=template_line.amount,
        kind=template_line.kind,
        recurrence=template_line.recurrence,
    )
    data.update(overrides)
    return store.add_line(make_line(budget.id, **data))


class TestPropagate:
    async def test_rent_update_skips_locked_envelope(self, store, engine, template, rent, budgets):
        locked = mirror(store, budgets[6], rent, is_manually_adjusted=True)
        unlocked = mirror(store, budgets[7], rent)
        past = mirror(store, budgets[5], rent)
        updated = rent.model_copy(update={"amount": Decimal("1600")})

        summary = await engine.apply(template.id, PropagationOperations(update=[updated]), True, USER_ID)

        assert summary.mode == PropagationMode.PROPAGATE
        assert summary.affected_budget_ids == [budgets[7].id]
        assert store.budget_lines[unlocked.id].amount == Decimal("1600")
        assert store.budget_lines[locked.id].amount == Decimal("1500")
        assert store.budget_lines[past.id].amount == Decimal("1500")

    async def test_touched_budgets_are_recalculated(self, store, engine, template, rent, budgets):
        mirror(store, budgets[7], rent)
        updated = rent.model_copy(update={"amount": Decimal("1600")})

        summary = await engine.apply(template.id, {"update": [updated.model_dump()]}, True, USER_ID)

        assert summary.recalculation_failures == []
        assert store.budgets[budgets[7].id].ending_balance == Decimal("-1600")
        assert store.budgets[budgets[6].id].ending_balance is None

    async def test_created_lines_reach_every_future_budget(self, store, engine, template, budgets):
        gym = store.add_template_line(make_template_line(template.id, name="Gym", amount=Decimal("45")))

        summary = await engine.apply(template.id, PropagationOperations(create=[gym]), True, USER_ID)

        assert summary.affected_budget_ids == sorted([budgets[6].id, budgets[7].id])
        inserted = [line for line in store.budget_lines.values() if line.template_line_id == gym.id]
        assert sorted(line.budget_id for line in inserted) == sorted([budgets[6].id, budgets[7].id])

    async def test_delete_removes_mirrors_and_template_line(self, store, engine, template, rent, budgets):
        future = mirror(store, budgets[7], rent, is_manually_adjusted=True)
        past = mirror(store, budgets[5], rent)

        summary = await engine.apply(template.id, PropagationOperations(delete=[rent.id]), True, USER_ID)

        assert summary.affected_budget_ids == [budgets[7].id]
        assert future.id not in store.budget_lines
        assert rent.id not in store.template_lines
        # Past envelopes survive, detached from the deleted template line
        assert store.budget_lines[past.id].template_line_id is None

    async def test_recalculation_failures_are_collected(self, store, engine, template, budgets):
        gym = store.add_template_line(make_template_line(template.id, name="Gym", amount=Decimal("45")))
        store.fail_persist_for.add(budgets[6].id)

        summary = await engine.apply(template.id, PropagationOperations(create=[gym]), True, USER_ID)

        assert [failure.budget_id for failure in summary.recalculation_failures] == [budgets[6].id]
        assert "write refused" in summary.recalculation_failures[0].error
        assert store.budgets[budgets[7].id].ending_balance == Decimal("-45")


class TestShortCircuits:
    async def test_template_only_never_touches_budgets(self, store, engine, template, rent, budgets):
        mirror(store, budgets[7], rent)
        store.calls.clear()

        summary = await engine.apply(template.id, PropagationOperations(delete=[rent.id]), False, USER_ID)

        assert summary.mode == PropagationMode.TEMPLATE_ONLY
        assert summary.affected_budget_ids == []
        assert rent.id not in store.template_lines
        assert store.budget_calls() == []

    async def test_empty_operations_skip_the_write(self, store, engine, template, budgets):
        summary = await engine.apply(template.id, PropagationOperations(), True, USER_ID)

        assert summary.mode == PropagationMode.PROPAGATE
        assert summary.affected_budget_ids == []
        assert store.budget_calls() == []

    async def test_no_future_budget_only_deletes_template_lines(self, store, engine, template, rent):
        past_budget = store.add_budget(make_budget(4, 2025, template_id=template.id))
        past = mirror(store, past_budget, rent)

        summary = await engine.apply(template.id, PropagationOperations(delete=[rent.id]), True, USER_ID)

        assert summary.mode == PropagationMode.PROPAGATE
        assert summary.affected_budget_ids == []
        assert rent.id not in store.template_lines
        assert past.id in store.budget_lines
        assert "apply_template_line_operations" not in store.calls


class TestValidation:
    async def test_unknown_template(self, engine):
        with pytest.raises(NotFoundError) as exc_info:
            await engine.apply("missing", PropagationOperations(), True, USER_ID)
        assert exc_info.value.code == ErrorCode.TEMPLATE_NOT_FOUND

    async def test_foreign_owner(self, store, engine, template, rent):
        with pytest.raises(ForbiddenError) as exc_info:
            await engine.apply(template.id, PropagationOperations(delete=[rent.id]), True, OTHER_USER_ID)
        assert exc_info.value.code == ErrorCode.TEMPLATE_ACCESS_DENIED
        assert rent.id in store.template_lines

    async def test_cross_template_ids_fail_whole_call(self, store, engine, template, rent, budgets):
        other = store.add_template(make_template(name="Other"))
        foreign = store.add_template_line(make_template_line(other.id))
        store.calls.clear()

        with pytest.raises(BadRequestError) as exc_info:
            await engine.apply(template.id, PropagationOperations(delete=[rent.id, foreign.id]), True, USER_ID)

        assert exc_info.value.code == ErrorCode.TEMPLATE_LINE_NOT_FOUND
        assert rent.id in store.template_lines
        assert store.budget_calls() == []

    async def test_malformed_payload(self, engine, template, rent):
        payload = {"update": [rent.model_dump()], "delete": [rent.id]}
        with pytest.raises(BadRequestError) as exc_info:
            await engine.apply(template.id, payload, True, USER_ID)
        assert exc_info.value.code == ErrorCode.TEMPLATE_LINES_INVALID_OPERATIONS

    async def test_rollover_lines_are_never_candidates(self, store, engine, template, budgets):
        rollover_line = store.add_template_line(make_template_line(template.id, name="rollover_12_2025"))
        mirrored = mirror(store, budgets[7], rollover_line)

        summary = await engine.apply(
            template.id,
            PropagationOperations(delete=[rollover_line.id, f"rollover-{budgets[7].id}"]),
            True,
            USER_ID,
        )

        assert summary.affected_budget_ids == []
        assert rollover_line.id in store.template_lines
        assert mirrored.id in store.budget_lines


class TestLocking:
    def test_one_lock_per_template(self):
        locks = TemplateLockRegistry()
        first = locks.lock_for("a")
        assert locks.lock_for("a") is first
        assert locks.lock_for("b") is not first

    async def test_concurrent_calls_on_one_template_are_serialized(self, store, template, budgets):
        in_flight = 0
        peak = 0
        find_future_budgets = store.find_future_budgets

        async def slow_find(*args):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1
            return await find_future_budgets(*args)

        store.find_future_budgets = slow_find
        engine = TemplatePropagationService(store, locks=TemplateLockRegistry(), clock=lambda: NOW)
        lines = [
            store.add_template_line(make_template_line(template.id, name=name))
            for name in ("Gym", "Phone")
        ]

        await asyncio.gather(*(
            engine.apply(template.id, PropagationOperations(create=[line]), True, USER_ID)
            for line in lines
        ))

        assert peak == 1
        assert len([line for line in store.budget_lines.values() if line.template_line_id]) == 4
