"""
Template propagation: mirrors template line edits into every future budget
generated from the template, then recalculates the budgets it touched.
"""
import asyncio
import time
import weakref
from datetime import datetime
from typing import Callable, List, Optional, Tuple, Union

from pydantic import ValidationError

from app.exceptions import BadRequestError, ErrorCode
from app.logging_config import get_logger
from app.schemas.template import (
    PropagationMode,
    PropagationOperations,
    PropagationSummary,
    TemplateLineRead,
    TemplateRead,
)
from app.services.balance_service import RecalculationService
from app.services.rollover import is_rollover
from app.services.template_validation_service import TemplateValidationService
from app.store.interface import EntityStore
from app.utils.date_utils import current_budget_period, is_future_budget, utc_now

logger = get_logger(__name__)


class TemplateLockRegistry:
    """
    One asyncio.Lock per template id, alive only while someone holds it, so
    propagations on the same template run one after the other while
    different templates proceed in parallel.
    """

    def __init__(self):
        self._locks = weakref.WeakValueDictionary()

    def lock_for(self, template_id: str) -> asyncio.Lock:
        lock = self._locks.get(template_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[template_id] = lock
        return lock


template_locks = TemplateLockRegistry()


class TemplatePropagationService:
    """Applies template line operations and propagates them to future budgets."""

    def __init__(
        self,
        store: EntityStore,
        recalculation: Optional[RecalculationService] = None,
        locks: Optional[TemplateLockRegistry] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.validation = TemplateValidationService(store)
        self.recalculation = recalculation or RecalculationService(store)
        self.locks = locks or template_locks
        self.clock = clock

    @staticmethod
    def coerce_operations(operations: Union[PropagationOperations, dict]) -> PropagationOperations:
        """Accept a model or raw payload, rejecting malformed payloads as a business error."""
        if isinstance(operations, PropagationOperations):
            return operations
        try:
            return PropagationOperations.model_validate(operations)
        except ValidationError as e:
            raise BadRequestError(
                f"Invalid template line operations: {e.errors()[0]['msg']}",
                code=ErrorCode.TEMPLATE_LINES_INVALID_OPERATIONS,
            )

    async def apply(
        self,
        template_id: str,
        operations: Union[PropagationOperations, dict],
        propagate_to_budgets: bool,
        user_id: str,
    ) -> PropagationSummary:
        """
        Validate and apply template line operations.

        Args:
            template_id: Template being edited
            operations: Lines created, updated and deleted at template level
            propagate_to_budgets: Whether future budgets receive the changes
            user_id: Acting user, must own the template

        Returns:
            PropagationSummary with the mode and the budgets actually touched

        Raises:
            NotFoundError, ForbiddenError, BadRequestError: before any write
        """
        operations = self.coerce_operations(operations)
        async with self.locks.lock_for(template_id):
            template, template_lines = await self.validate(template_id, operations, user_id)
            return await self.propagate_validated(template, template_lines, operations, propagate_to_budgets)

    async def validate(
        self,
        template_id: str,
        operations: PropagationOperations,
        user_id: str,
    ) -> Tuple[TemplateRead, List[TemplateLineRead]]:
        """Check ownership once, then that every updated or deleted id is a line of the template."""
        template = await self.validation.validate_template_access(template_id, user_id)
        template_lines = await self.store.list_template_lines(template_id)

        update_ids, _ = self.validation.drop_rollover_ids([line.id for line in operations.update])
        delete_ids, _ = self.validation.drop_rollover_ids(operations.delete)
        self.validation.validate_line_membership(template_lines, update_ids + delete_ids)
        return template, template_lines

    def _candidates(self, template_id: str, template_lines: List[TemplateLineRead], operations: PropagationOperations) -> PropagationOperations:
        """Remove rollover lines from every candidate set."""
        excluded = set(self.validation.rollover_line_ids(template_lines))
        update_ids, _ = self.validation.drop_rollover_ids([line.id for line in operations.update])
        delete_ids, _ = self.validation.drop_rollover_ids(operations.delete)
        excluded.update(set(line.id for line in operations.update) - set(update_ids))

        candidates = PropagationOperations(
            create=[line for line in operations.create if not is_rollover(line)],
            update=[line for line in operations.update if line.id not in excluded and not is_rollover(line)],
            delete=[line_id for line_id in delete_ids if line_id not in excluded],
        )
        removed = (
            len(operations.create) + len(update_ids) + len(delete_ids)
            - len(candidates.create) - len(candidates.update) - len(candidates.delete)
        )
        if removed:
            logger.warning(f"Excluded {removed} rollover line(s) from operations on template {template_id}")
        return candidates

    async def propagate_validated(
        self,
        template: TemplateRead,
        template_lines: List[TemplateLineRead],
        operations: PropagationOperations,
        propagate_to_budgets: bool,
    ) -> PropagationSummary:
        """
        Apply already validated operations. Callers must hold the template lock.
        """
        summary, _ = await self.write_validated(template, template_lines, operations, propagate_to_budgets)
        return await self.recalculate_touched(summary)

    async def write_validated(
        self,
        template: TemplateRead,
        template_lines: List[TemplateLineRead],
        operations: PropagationOperations,
        propagate_to_budgets: bool,
    ) -> Tuple[PropagationSummary, List[str]]:
        """
        Write already validated operations without recalculating anything,
        so callers can run it inside `store.atomic()` together with their
        own template writes.

        Returns:
            The summary (no recalculation failures yet) and the ids of the
            template lines deleted
        """
        start_time = time.perf_counter()
        template_id = template.id
        candidates = self._candidates(template_id, template_lines, operations)

        if not propagate_to_budgets:
            if candidates.delete:
                await self.store.delete_template_lines(template_id, candidates.delete)
            logger.info(
                f"Template {template_id} updated without propagation "
                f"({len(candidates.delete)} deleted)"
            )
            return PropagationSummary(mode=PropagationMode.TEMPLATE_ONLY), candidates.delete

        if candidates.is_empty():
            logger.info(f"Nothing to propagate for template {template_id}")
            return PropagationSummary(mode=PropagationMode.PROPAGATE), []

        year, month = current_budget_period(self.clock())
        future_budgets = [
            budget
            for budget in await self.store.find_future_budgets(template_id, template.user_id, year, month)
            if is_future_budget(budget.year, budget.month, year, month)
        ]

        if not future_budgets:
            if candidates.delete:
                await self.store.delete_template_lines(template_id, candidates.delete)
            logger.info(
                f"No future budget linked to template {template_id} from {month}/{year}, "
                f"propagation reached no budget"
            )
            return PropagationSummary(mode=PropagationMode.PROPAGATE), candidates.delete

        budget_ids = [budget.id for budget in future_budgets]
        touched = await self.store.apply_template_line_operations(
            template_id,
            budget_ids,
            candidates.delete,
            candidates.update,
            candidates.create,
        )

        logger.info(
            f"Propagated template {template_id} to {len(touched)}/{len(budget_ids)} future budgets "
            f"(created={len(candidates.create)}, updated={len(candidates.update)}, "
            f"deleted={len(candidates.delete)}) in {time.perf_counter() - start_time:.3f}s"
        )
        summary = PropagationSummary(mode=PropagationMode.PROPAGATE, affected_budget_ids=touched)
        return summary, candidates.delete

    async def recalculate_touched(self, summary: PropagationSummary) -> PropagationSummary:
        """Recalculate the budgets a write touched, collecting failures on the summary."""
        if not summary.affected_budget_ids:
            return summary
        failures = await self.recalculation.recalculate_many(summary.affected_budget_ids)
        return summary.model_copy(update={"recalculation_failures": failures})
