"""
Celery tasks for budget balance recalculation.

A user's budgets form one rollover chain and are recalculated in a single
task, oldest first. Different users are independent and get one task each,
so workers process them in parallel.
"""
from celery.utils.log import get_task_logger
from typing import List
import asyncio

from sqlalchemy import select

from app.celery.celery_app import celery_app
from app.db import AsyncSessionLocal
from app.models.budget import Budget
from app.services.balance_service import RecalculationService
from app.store.sqlalchemy_store import SqlAlchemyEntityStore

logger = get_task_logger(__name__)


def _get_loop():
    try:
        loop = asyncio.get_event_loop()
    except RuntimeError:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
    return loop


async def backfill_user_async(user_id: str) -> dict:
    async with AsyncSessionLocal() as db:
        service = RecalculationService(SqlAlchemyEntityStore(db))
        failures = await service.backfill_user_balances(user_id)
    return {
        "status": "success" if not failures else "partial",
        "user_id": user_id,
        "failures": [failure.model_dump() for failure in failures],
    }


async def recalculate_budgets_async(budget_ids: List[str]) -> dict:
    async with AsyncSessionLocal() as db:
        service = RecalculationService(SqlAlchemyEntityStore(db))
        failures = await service.recalculate_many(budget_ids)
    return {
        "status": "success" if not failures else "partial",
        "budget_ids": budget_ids,
        "failures": [failure.model_dump() for failure in failures],
    }


async def list_budget_owner_ids() -> List[str]:
    async with AsyncSessionLocal() as db:
        result = await db.execute(select(Budget.user_id).distinct())
        return [str(row[0]) for row in result.fetchall()]


@celery_app.task(bind=True, max_retries=3)
def backfill_budget_balances(self, user_id: str):
    """
    Recalculate and persist the ending balance of every budget of a user,
    in chronological order.

    Args:
        user_id: Owner of the budgets
    """
    loop = _get_loop()
    try:
        logger.info(f"Starting balance backfill for user {user_id}")
        result = loop.run_until_complete(backfill_user_async(user_id))
        logger.info(f"Balance backfill for user {user_id} done: {len(result['failures'])} failure(s)")
        return result
    except Exception as exc:
        logger.error(f"Balance backfill failed for user {user_id}: {exc}", exc_info=True)
        raise self.retry(exc=exc, countdown=60 * (self.request.retries + 1))


@celery_app.task(bind=True, max_retries=3)
def recalculate_budgets(self, budget_ids: List[str]):
    """Recalculate the given budgets, oldest month first."""
    loop = _get_loop()
    try:
        return loop.run_until_complete(recalculate_budgets_async(budget_ids))
    except Exception as exc:
        logger.error(f"Recalculation of {len(budget_ids)} budgets failed: {exc}", exc_info=True)
        raise self.retry(exc=exc, countdown=30 * (self.request.retries + 1))


@celery_app.task
def schedule_balance_backfill():
    """Enqueue one backfill task per budget owner."""
    loop = _get_loop()
    try:
        user_ids = loop.run_until_complete(list_budget_owner_ids())
    except Exception as e:
        logger.error(f"Balance backfill scheduling failed: {e}", exc_info=True)
        return {"status": "failed", "error": str(e)}

    for user_id in user_ids:
        backfill_budget_balances.delay(user_id)
    logger.info(f"Enqueued balance backfill for {len(user_ids)} users")
    return {"status": "success", "users": len(user_ids)}
