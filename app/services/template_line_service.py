"""
Template line bulk operations: applies creates, updates and deletes to a
template and hands them to the propagation engine.
"""
import time
from typing import Optional, Union

from pydantic import ValidationError

from app.exceptions import BadRequestError, ErrorCode
from app.logging_config import get_logger
from app.schemas.template import (
    PropagationOperations,
    TemplateLinesBulkOperations,
    TemplateLinesBulkOperationsResponse,
)
from app.services.template_propagation_service import TemplatePropagationService
from app.store.interface import EntityStore

logger = get_logger(__name__)


class TemplateLineService:
    """Service for template line operations"""

    def __init__(self, store: EntityStore, engine: Optional[TemplatePropagationService] = None):
        self.store = store
        self.engine = engine or TemplatePropagationService(store)

    async def bulk_operations(
        self,
        template_id: str,
        ops: Union[TemplateLinesBulkOperations, dict],
        user_id: str,
    ) -> TemplateLinesBulkOperationsResponse:
        """
        Create, update and delete template lines in one call, optionally
        propagating the changes to future budgets.

        Nothing is written unless the user owns the template and every
        updated or deleted id belongs to it. Template and budget writes land
        together or not at all; recalculation runs after they are committed.
        """
        if not isinstance(ops, TemplateLinesBulkOperations):
            try:
                ops = TemplateLinesBulkOperations.model_validate(ops)
            except ValidationError as e:
                raise BadRequestError(
                    f"Invalid template line operations: {e.errors()[0]['msg']}",
                    code=ErrorCode.TEMPLATE_LINES_INVALID_OPERATIONS,
                )

        start_time = time.perf_counter()
        validation = self.engine.validation

        async with self.engine.locks.lock_for(template_id):
            template = await validation.validate_template_access(template_id, user_id)
            template_lines = await self.store.list_template_lines(template_id)

            update_ids, _ = validation.drop_rollover_ids([line.id for line in ops.update])
            delete_ids, _ = validation.drop_rollover_ids(ops.delete)
            validation.validate_line_membership(template_lines, update_ids + delete_ids)

            # Rollover-named lines are never edited, not even at template level
            protected = set(validation.rollover_line_ids(template_lines))
            ignored = protected.intersection(update_ids + delete_ids)
            if ignored:
                logger.warning(f"Ignored {len(ignored)} rollover line(s) in bulk operations on template {template_id}")
            kept = set(update_ids) - protected
            delete_ids = [line_id for line_id in delete_ids if line_id not in protected]

            async with self.store.atomic():
                created = await self.store.create_template_lines(template_id, ops.create) if ops.create else []
                updates = [line for line in ops.update if line.id in kept]
                updated = await self.store.update_template_lines(template_id, updates) if updates else []

                propagation, deleted = await self.engine.write_validated(
                    template,
                    template_lines,
                    PropagationOperations(create=created, update=updated, delete=delete_ids),
                    ops.propagate_to_budgets,
                )

            propagation = await self.engine.recalculate_touched(propagation)

        logger.info(
            f"Bulk operations on template {template_id} by user {user_id}: "
            f"created={len(created)}, updated={len(updated)}, deleted={len(deleted)}, "
            f"mode={propagation.mode.value}, affected_budgets={len(propagation.affected_budget_ids)} "
            f"in {time.perf_counter() - start_time:.3f}s"
        )
        return TemplateLinesBulkOperationsResponse(
            created=created,
            updated=updated,
            deleted=deleted,
            propagation=propagation,
        )
