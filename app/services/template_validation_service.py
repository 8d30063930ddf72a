"""
Ownership and membership checks run before any template line write.
"""
from typing import Iterable, List, Sequence, Tuple

from app.exceptions import BadRequestError, ErrorCode, ForbiddenError, NotFoundError
from app.logging_config import get_logger
from app.schemas.template import TemplateLineRead, TemplateRead
from app.services.rollover import ROLLOVER_ID_PREFIX, is_rollover
from app.store.interface import EntityStore

logger = get_logger(__name__)


class TemplateValidationService:
    """Validates template access and template line membership."""

    def __init__(self, store: EntityStore):
        self.store = store

    async def validate_template_access(self, template_id: str, user_id: str) -> TemplateRead:
        """
        Fetch a template and check that the user owns it.

        Raises:
            NotFoundError: If the template does not exist
            ForbiddenError: If another user owns it
        """
        template = await self.store.get_template(template_id)
        if not template:
            logger.warning(f"Template {template_id} not found for user {user_id}")
            raise NotFoundError(
                f"Template with ID {template_id} not found",
                code=ErrorCode.TEMPLATE_NOT_FOUND,
            )

        if template.user_id != user_id:
            logger.warning(
                f"Unauthorized template access attempt on {template_id} by user {user_id} "
                f"(owner {template.user_id})"
            )
            raise ForbiddenError(
                "You do not have access to this template",
                code=ErrorCode.TEMPLATE_ACCESS_DENIED,
            )

        return template

    @staticmethod
    def validate_line_membership(template_lines: Iterable[TemplateLineRead], line_ids: Sequence[str]) -> None:
        """
        Check that every id belongs to the template, all or nothing.

        Raises:
            BadRequestError: If at least one id is not a line of the template
        """
        known = {line.id for line in template_lines}
        foreign = sorted(set(line_ids) - known)
        if foreign:
            logger.warning(f"Template line ids not part of the template: {foreign}")
            raise BadRequestError(
                f"Template lines do not belong to this template: {', '.join(foreign)}",
                code=ErrorCode.TEMPLATE_LINE_NOT_FOUND,
            )

    @staticmethod
    def drop_rollover_ids(line_ids: Sequence[str]) -> Tuple[List[str], List[str]]:
        """
        Split ids into (kept, dropped) where dropped are synthetic rollover
        envelope ids, which are never edit or delete candidates.
        """
        kept, dropped = [], []
        for line_id in line_ids:
            (dropped if str(line_id).startswith(ROLLOVER_ID_PREFIX) else kept).append(line_id)
        if dropped:
            logger.warning(f"Ignoring rollover lines in template operations: {dropped}")
        return kept, dropped

    @staticmethod
    def rollover_line_ids(template_lines: Iterable[TemplateLineRead]) -> List[str]:
        """Ids of template lines carrying a rollover name."""
        return [line.id for line in template_lines if is_rollover(line)]
