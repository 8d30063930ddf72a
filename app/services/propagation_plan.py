"""
Planning of the mirrored budget line writes for one propagation.

Stores call plan_mirror_operations() inside their transaction with the
mirrored lines they just read, then execute the resulting plan. Keeping the
decision logic here means every store skips locked and rollover lines the
same way.
"""
import uuid
from collections import defaultdict
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Iterable, List, NamedTuple, Sequence, Set

from app.schemas.common import enum_value
from app.services.rollover import is_rollover
from app.utils.amounts import to_decimal


class LinePayload(NamedTuple):
    """Normalized shape written to mirrored lines, used as a grouping key."""
    name: str
    amount: Decimal
    kind: str
    recurrence: str

    @classmethod
    def of(cls, line) -> "LinePayload":
        return cls(
            name=line.name,
            amount=to_decimal(line.amount),
            kind=enum_value(line.kind),
            recurrence=enum_value(line.recurrence),
        )


@dataclass
class MirrorPlan:
    delete_line_ids: List[str] = field(default_factory=list)
    # payload -> ids of the budget lines receiving it, one UPDATE per key
    update_groups: Dict[LinePayload, List[str]] = field(default_factory=dict)
    inserts: List[dict] = field(default_factory=list)
    touched_budget_ids: Set[str] = field(default_factory=set)
    skipped_locked_ids: List[str] = field(default_factory=list)

    def sorted_touched(self) -> List[str]:
        return sorted(self.touched_budget_ids)


def group_updates(targets: Iterable) -> Dict[LinePayload, List[str]]:
    """
    Build the multimap payload -> target ids from (payload, id) pairs so
    identical writes are issued once.
    """
    groups: Dict[LinePayload, List[str]] = defaultdict(list)
    for payload, target_id in targets:
        groups[payload].append(target_id)
    return dict(groups)


def plan_mirror_operations(
    mirrored_lines: Iterable,
    budget_ids: Sequence[str],
    delete_ids: Sequence[str],
    updated_lines: Sequence,
    created_lines: Sequence,
) -> MirrorPlan:
    """
    Decide which budget lines to delete, update and insert.

    Args:
        mirrored_lines: Budget lines of the target budgets that reference one
            of the deleted or updated template lines
        budget_ids: Future budgets reached by the propagation
        delete_ids: Deleted template line ids
        updated_lines: Template lines carrying their new shape
        created_lines: Newly created template lines (with ids)

    Returns:
        MirrorPlan. Manually adjusted lines are never updated, rollover lines
        are never deleted or updated.
    """
    plan = MirrorPlan()
    targets = set(budget_ids)
    deleted = set(delete_ids)
    updates = {line.id: LinePayload.of(line) for line in updated_lines}
    update_targets = []

    for line in mirrored_lines:
        if line.budget_id not in targets or is_rollover(line):
            continue
        if line.template_line_id in deleted:
            plan.delete_line_ids.append(line.id)
            plan.touched_budget_ids.add(line.budget_id)
            continue
        payload = updates.get(line.template_line_id)
        if payload is None:
            continue
        if line.is_manually_adjusted:
            plan.skipped_locked_ids.append(line.id)
            continue
        if LinePayload.of(line) == payload:
            continue
        update_targets.append((payload, line.id))
        plan.touched_budget_ids.add(line.budget_id)

    plan.update_groups = group_updates(update_targets)

    for budget_id in budget_ids:
        for template_line in created_lines:
            plan.inserts.append({
                "id": str(uuid.uuid4()),
                "budget_id": budget_id,
                "template_line_id": template_line.id,
                "savings_goal_id": None,
                "name": template_line.name,
                "amount": to_decimal(template_line.amount),
                "kind": enum_value(template_line.kind),
                "recurrence": enum_value(template_line.recurrence),
                "is_manually_adjusted": False,
            })
            plan.touched_budget_ids.add(budget_id)

    return plan
