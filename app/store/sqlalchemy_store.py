"""
SQLAlchemy implementation of the entity store.
"""
import uuid
from contextlib import asynccontextmanager
from decimal import Decimal
from typing import List, Optional, Sequence

from sqlalchemy import and_, delete, insert, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.logging_config import get_logger
from app.models.budget import Budget
from app.models.budget_line import BudgetLine
from app.models.template import Template, TemplateLine
from app.models.transaction import Transaction
from app.schemas.budget import BudgetRead
from app.schemas.budget_line import BudgetLineRead
from app.schemas.common import enum_value
from app.schemas.template import TemplateLineCreate, TemplateLineRead, TemplateLineUpdate, TemplateRead
from app.schemas.transaction import TransactionRead
from app.services.propagation_plan import plan_mirror_operations
from app.store.interface import EntityStore
from app.utils.date_utils import utc_now

logger = get_logger(__name__)


def chunked(items: Sequence, size: int):
    """Yield consecutive slices of at most `size` items."""
    for start in range(0, len(items), size):
        yield items[start:start + size]


class SqlAlchemyEntityStore(EntityStore):
    """Entity store backed by an async SQLAlchemy session."""

    def __init__(self, session: AsyncSession, batch_size: Optional[int] = None):
        self.session = session
        self.batch_size = batch_size or settings.TEMPLATE_LINE_BATCH_SIZE
        self._atomic_depth = 0

    @asynccontextmanager
    async def _transaction(self):
        """
        Run the block in a fresh transaction, committing on success and
        rolling back on error. Any read-only transaction left open by
        earlier reads is closed first. Inside `atomic()` the block joins
        the enclosing transaction instead.
        """
        if self._atomic_depth:
            yield
            return
        if self.session.in_transaction():
            await self.session.commit()
        async with self.session.begin():
            yield

    @asynccontextmanager
    async def atomic(self):
        async with self._transaction():
            self._atomic_depth += 1
            try:
                yield
            finally:
                self._atomic_depth -= 1

    # Templates

    async def get_template(self, template_id: str) -> Optional[TemplateRead]:
        template = (
            await self.session.execute(
                select(Template)
                .where(Template.id == template_id)
                .execution_options(populate_existing=True)
            )
        ).scalar_one_or_none()
        return TemplateRead.model_validate(template) if template else None

    async def list_template_lines(self, template_id: str) -> List[TemplateLineRead]:
        result = await self.session.execute(
            select(TemplateLine)
            .where(TemplateLine.template_id == template_id)
            .order_by(TemplateLine.name.asc())
            .execution_options(populate_existing=True)
        )
        return [TemplateLineRead.model_validate(line) for line in result.scalars().all()]

    async def create_template_lines(
        self, template_id: str, lines: Sequence[TemplateLineCreate]
    ) -> List[TemplateLineRead]:
        created = []
        now = utc_now()
        async with self._transaction():
            for batch in chunked(list(lines), self.batch_size):
                rows = [
                    TemplateLine(
                        id=str(uuid.uuid4()),
                        template_id=template_id,
                        name=line.name,
                        amount=line.amount,
                        kind=enum_value(line.kind),
                        recurrence=enum_value(line.recurrence),
                        description=line.description,
                        created_at=now,
                        updated_at=now,
                    )
                    for line in batch
                ]
                self.session.add_all(rows)
                await self.session.flush()
                created.extend(rows)
        logger.info(f"Created {len(created)} template lines for template {template_id}")
        return [TemplateLineRead.model_validate(row) for row in created]

    async def update_template_lines(
        self, template_id: str, lines: Sequence[TemplateLineUpdate]
    ) -> List[TemplateLineRead]:
        by_id = {line.id: line for line in lines}
        updated = []
        now = utc_now()
        async with self._transaction():
            for batch in chunked(list(by_id), self.batch_size):
                result = await self.session.execute(
                    select(TemplateLine).where(and_(
                        TemplateLine.template_id == template_id,
                        TemplateLine.id.in_(batch),
                    ))
                )
                for row in result.scalars().all():
                    change = by_id[row.id]
                    row.name = change.name
                    row.amount = change.amount
                    row.kind = enum_value(change.kind)
                    row.recurrence = enum_value(change.recurrence)
                    row.description = change.description
                    row.updated_at = now
                    updated.append(row)
                await self.session.flush()
        logger.info(f"Updated {len(updated)} template lines for template {template_id}")
        return [TemplateLineRead.model_validate(row) for row in updated]

    async def delete_template_lines(self, template_id: str, line_ids: Sequence[str]) -> int:
        if not line_ids:
            return 0
        async with self._transaction():
            deleted = await self._delete_template_lines(template_id, list(line_ids))
        logger.info(f"Deleted {deleted} template lines from template {template_id}")
        return deleted

    async def _delete_template_lines(self, template_id: str, line_ids: List[str]) -> int:
        # Surviving envelopes lose their back-reference rather than dangling
        await self.session.execute(
            update(BudgetLine)
            .where(BudgetLine.template_line_id.in_(line_ids))
            .values(template_line_id=None)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(
            delete(TemplateLine)
            .where(and_(TemplateLine.template_id == template_id, TemplateLine.id.in_(line_ids)))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

    # Budgets

    async def get_budget(self, budget_id: str) -> Optional[BudgetRead]:
        budget = (
            await self.session.execute(
                select(Budget)
                .where(Budget.id == budget_id)
                .execution_options(populate_existing=True)
            )
        ).scalar_one_or_none()
        return BudgetRead.model_validate(budget) if budget else None

    async def get_budgets(self, budget_ids: Sequence[str]) -> List[BudgetRead]:
        if not budget_ids:
            return []
        result = await self.session.execute(
            select(Budget)
            .where(Budget.id.in_(list(budget_ids)))
            .execution_options(populate_existing=True)
        )
        return [BudgetRead.model_validate(budget) for budget in result.scalars().all()]

    async def list_user_budgets(self, user_id: str) -> List[BudgetRead]:
        result = await self.session.execute(
            select(Budget)
            .where(Budget.user_id == user_id)
            .order_by(Budget.year.asc(), Budget.month.asc())
            .execution_options(populate_existing=True)
        )
        return [BudgetRead.model_validate(budget) for budget in result.scalars().all()]

    async def find_future_budgets(
        self, template_id: str, user_id: str, year: int, month: int
    ) -> List[BudgetRead]:
        result = await self.session.execute(
            select(Budget)
            .where(and_(
                Budget.template_id == template_id,
                Budget.user_id == user_id,
                or_(
                    Budget.year > year,
                    and_(Budget.year == year, Budget.month >= month),
                ),
            ))
            .order_by(Budget.year.asc(), Budget.month.asc())
            .execution_options(populate_existing=True)
        )
        return [BudgetRead.model_validate(budget) for budget in result.scalars().all()]

    async def get_previous_budget(self, user_id: str, year: int, month: int) -> Optional[BudgetRead]:
        budget = (
            await self.session.execute(
                select(Budget)
                .where(and_(
                    Budget.user_id == user_id,
                    or_(
                        Budget.year < year,
                        and_(Budget.year == year, Budget.month < month),
                    ),
                ))
                .order_by(Budget.year.desc(), Budget.month.desc())
                .limit(1)
                .execution_options(populate_existing=True)
            )
        ).scalar_one_or_none()
        return BudgetRead.model_validate(budget) if budget else None

    async def persist_ending_balance(self, budget_id: str, ending_balance: Decimal) -> None:
        async with self._transaction():
            await self.session.execute(
                update(Budget)
                .where(Budget.id == budget_id)
                .values(ending_balance=ending_balance, updated_at=utc_now())
                .execution_options(synchronize_session=False)
            )

    # Budget contents

    async def list_budget_lines(self, budget_id: str) -> List[BudgetLineRead]:
        result = await self.session.execute(
            select(BudgetLine)
            .where(BudgetLine.budget_id == budget_id)
            .execution_options(populate_existing=True)
        )
        return [BudgetLineRead.model_validate(line) for line in result.scalars().all()]

    async def list_transactions(self, budget_id: str) -> List[TransactionRead]:
        result = await self.session.execute(
            select(Transaction)
            .where(Transaction.budget_id == budget_id)
            .execution_options(populate_existing=True)
        )
        return [TransactionRead.model_validate(tx) for tx in result.scalars().all()]

    # Atomic write

    async def apply_template_line_operations(
        self,
        template_id: str,
        budget_ids: Sequence[str],
        delete_ids: Sequence[str],
        updated_lines: Sequence[TemplateLineRead],
        created_lines: Sequence[TemplateLineRead],
    ) -> List[str]:
        budget_ids = list(budget_ids)
        delete_ids = list(delete_ids)
        referenced = delete_ids + [line.id for line in updated_lines]
        now = utc_now()

        async with self._transaction():
            # Serializes concurrent writers on the same template
            await self.session.execute(
                select(Template.id).where(Template.id == template_id).with_for_update()
            )

            mirrored = []
            if referenced and budget_ids:
                result = await self.session.execute(
                    select(BudgetLine).where(and_(
                        BudgetLine.budget_id.in_(budget_ids),
                        BudgetLine.template_line_id.in_(referenced),
                    ))
                )
                mirrored = result.scalars().all()

            plan = plan_mirror_operations(mirrored, budget_ids, delete_ids, updated_lines, created_lines)

            for batch in chunked(plan.delete_line_ids, self.batch_size):
                await self.session.execute(
                    update(Transaction)
                    .where(Transaction.budget_line_id.in_(batch))
                    .values(budget_line_id=None)
                    .execution_options(synchronize_session=False)
                )
                await self.session.execute(
                    delete(BudgetLine)
                    .where(BudgetLine.id.in_(batch))
                    .execution_options(synchronize_session=False)
                )

            if delete_ids:
                await self._delete_template_lines(template_id, delete_ids)

            for payload, line_ids in plan.update_groups.items():
                for batch in chunked(line_ids, self.batch_size):
                    await self.session.execute(
                        update(BudgetLine)
                        .where(BudgetLine.id.in_(batch))
                        .values(
                            name=payload.name,
                            amount=payload.amount,
                            kind=payload.kind,
                            recurrence=payload.recurrence,
                            updated_at=now,
                        )
                        .execution_options(synchronize_session=False)
                    )

            for batch in chunked(plan.inserts, self.batch_size):
                await self.session.execute(
                    insert(BudgetLine),
                    [dict(row, created_at=now, updated_at=now) for row in batch],
                )

        if plan.skipped_locked_ids:
            logger.info(
                f"Skipped {len(plan.skipped_locked_ids)} manually adjusted budget lines "
                f"while propagating template {template_id}"
            )
        return plan.sorted_touched()
