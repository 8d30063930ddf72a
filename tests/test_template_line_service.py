from datetime import datetime, timezone
from decimal import Decimal

import pytest

from factories import USER_ID, make_budget, make_line, make_template, make_template_line
from app.exceptions import BadRequestError, ErrorCode
from app.schemas.template import PropagationMode, TemplateLinesBulkOperations
from app.services.template_line_service import TemplateLineService
from app.services.template_propagation_service import TemplateLockRegistry, TemplatePropagationService

NOW = datetime(2025, 6, 15, tzinfo=timezone.utc)


@pytest.fixture
def service(store):
    engine = TemplatePropagationService(store, locks=TemplateLockRegistry(), clock=lambda: NOW)
    return TemplateLineService(store, engine)


@pytest.fixture
def template(store):
    return store.add_template(make_template())


async def test_bulk_operations_apply_and_propagate(store, service, template):
    rent = store.add_template_line(make_template_line(template.id))
    phone = store.add_template_line(make_template_line(template.id, name="Phone", amount=Decimal("30")))
    july = store.add_budget(make_budget(7, 2025, template_id=template.id))
    mirrored_rent = store.add_line(make_line(july.id, template_line_id=rent.id, name="Rent", amount=Decimal("1500")))
    mirrored_phone = store.add_line(make_line(july.id, template_line_id=phone.id, name="Phone", amount=Decimal("30")))

    ops = TemplateLinesBulkOperations(
        create=[{"name": " Gym ", "amount": "45", "kind": "expense"}],
        update=[{"id": rent.id, "name": "Rent", "amount": "1600", "kind": "expense", "recurrence": "fixed"}],
        delete=[phone.id],
        propagate_to_budgets=True,
    )
    response = await service.bulk_operations(template.id, ops, USER_ID)

    assert [line.name for line in response.created] == ["Gym"]
    assert [line.amount for line in response.updated] == [Decimal("1600")]
    assert response.deleted == [phone.id]
    assert response.propagation.mode == PropagationMode.PROPAGATE
    assert response.propagation.affected_budget_ids == [july.id]

    assert store.template_lines[rent.id].amount == Decimal("1600")
    assert phone.id not in store.template_lines
    assert store.budget_lines[mirrored_rent.id].amount == Decimal("1600")
    assert mirrored_phone.id not in store.budget_lines
    gym_id = response.created[0].id
    assert [line.budget_id for line in store.budget_lines.values() if line.template_line_id == gym_id] == [july.id]


async def test_bulk_operations_template_only(store, service, template):
    rent = store.add_template_line(make_template_line(template.id))
    ops = TemplateLinesBulkOperations(
        update=[{"id": rent.id, "name": "Rent", "amount": "1700", "kind": "expense"}],
    )
    response = await service.bulk_operations(template.id, ops, USER_ID)

    assert response.propagation.mode == PropagationMode.TEMPLATE_ONLY
    assert store.template_lines[rent.id].amount == Decimal("1700")
    assert store.budget_calls() == []


async def test_nothing_written_when_an_id_is_foreign(store, service, template):
    rent = store.add_template_line(make_template_line(template.id))
    ops = TemplateLinesBulkOperations(
        create=[{"name": "Gym", "amount": "45", "kind": "expense"}],
        delete=[rent.id, "not-a-line"],
        propagate_to_budgets=True,
    )
    with pytest.raises(BadRequestError) as exc_info:
        await service.bulk_operations(template.id, ops, USER_ID)

    assert exc_info.value.code == ErrorCode.TEMPLATE_LINE_NOT_FOUND
    assert "create_template_lines" not in store.calls
    assert rent.id in store.template_lines


async def test_rollover_ids_are_dropped(store, service, template):
    ops = TemplateLinesBulkOperations(delete=["rollover-some-budget"], propagate_to_budgets=True)
    response = await service.bulk_operations(template.id, ops, USER_ID)
    assert response.deleted == []
    assert response.propagation.affected_budget_ids == []


async def test_rollover_named_line_is_not_deleted(store, service, template):
    carried = store.add_template_line(make_template_line(template.id, name="rollover_12_2025", amount=Decimal("80")))
    store.add_budget(make_budget(7, 2025, template_id=template.id))

    ops = TemplateLinesBulkOperations(delete=[carried.id], propagate_to_budgets=True)
    response = await service.bulk_operations(template.id, ops, USER_ID)

    assert response.deleted == []
    assert carried.id in store.template_lines


async def test_rollover_named_line_is_not_updated(store, service, template):
    carried = store.add_template_line(make_template_line(template.id, name="rollover_12_2025", amount=Decimal("80")))

    ops = TemplateLinesBulkOperations(
        update=[{"id": carried.id, "name": "rollover_12_2025", "amount": "999", "kind": "expense"}],
    )
    response = await service.bulk_operations(template.id, ops, USER_ID)

    assert response.updated == []
    assert store.template_lines[carried.id].amount == Decimal("80")


async def test_failed_budget_write_undoes_template_writes(store, service, template, monkeypatch):
    rent = store.add_template_line(make_template_line(template.id))
    store.add_budget(make_budget(7, 2025, template_id=template.id))

    async def failing_write(*args, **kwargs):
        raise RuntimeError("connection lost")

    monkeypatch.setattr(store, "apply_template_line_operations", failing_write)
    ops = TemplateLinesBulkOperations(
        create=[{"name": "Gym", "amount": "45", "kind": "expense"}],
        delete=[rent.id],
        propagate_to_budgets=True,
    )
    with pytest.raises(RuntimeError):
        await service.bulk_operations(template.id, ops, USER_ID)

    assert [line.name for line in store.template_lines.values()] == ["Rent"]


async def test_raw_payload_is_validated(service, template):
    with pytest.raises(BadRequestError) as exc_info:
        await service.bulk_operations(template.id, {"delete": ["a", "a"]}, USER_ID)
    assert exc_info.value.code == ErrorCode.TEMPLATE_LINES_INVALID_OPERATIONS


def test_blank_line_name_rejected():
    with pytest.raises(ValueError):
        TemplateLinesBulkOperations(create=[{"name": "   ", "amount": "1", "kind": "expense"}])
