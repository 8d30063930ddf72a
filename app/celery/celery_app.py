"""
Celery application configuration for background balance recalculation.
"""
from celery import Celery

from app.config import settings

# Initialize Celery app
celery_app = Celery(
    'budget_ledger',
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=['app.celery.celery_tasks']  # Import task modules
)

# Celery configuration
celery_app.conf.update(
    task_serializer='json',
    accept_content=['json'],
    result_serializer='json',
    timezone='UTC',
    enable_utc=True,
    task_track_started=True,
    task_time_limit=1800,
    task_soft_time_limit=1500,
    worker_prefetch_multiplier=1,  # Fetch one task at a time
    worker_max_tasks_per_child=50,
    broker_connection_retry_on_startup=True,
    result_expires=3600,  # Results expire after 1 hour
)

celery_app.conf.task_routes = {
    'app.celery.celery_tasks.backfill_budget_balances': {'queue': 'balances'},
    'app.celery.celery_tasks.recalculate_budgets': {'queue': 'balances'},
    'app.celery.celery_tasks.schedule_balance_backfill': {'queue': 'scheduling'},
}
