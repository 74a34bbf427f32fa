"""Celery tasks for the order lifecycle."""

import structlog
from celery import shared_task

from events.service import order_service

logger = structlog.get_logger(__name__)


@shared_task(name="events.expire_pending_orders")
def expire_pending_orders() -> int:
    """Expire pending orders that never received a payment proof within the expiry window.

    Their tickets go back on sale. Orders confirmed, rejected or cancelled while the task
    runs are skipped, so the task is safe to run periodically and concurrently.
    """
    expired = order_service.expire_pending_orders()
    logger.info("expire_pending_orders_task_finished", expired=expired)
    return expired
