from fastapi import APIRouter, Depends

from app.dependencies import get_current_user_id, get_store
from app.schemas.template import TemplateLinesBulkOperations, TemplateLinesBulkOperationsResponse
from app.services.template_line_service import TemplateLineService
from app.store.interface import EntityStore

router = APIRouter(prefix="/budget-templates", tags=["budget-templates"])


@router.post(
    "/{template_id}/lines/bulk-operations",
    response_model=TemplateLinesBulkOperationsResponse,
)
async def bulk_template_line_operations(
    template_id: str,
    operations: TemplateLinesBulkOperations,
    user_id: str = Depends(get_current_user_id),
    store: EntityStore = Depends(get_store),
):
    """
    Create, update and delete template lines in one call.

    With `propagate_to_budgets`, the changes are mirrored into every budget
    of the current month or later generated from this template. Manually
    adjusted envelopes keep their amounts.
    """
    return await TemplateLineService(store).bulk_operations(template_id, operations, user_id)
