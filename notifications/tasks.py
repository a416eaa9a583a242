from celery import shared_task
import logging

from .services import OutboxDispatcher

logger = logging.getLogger(__name__)


@shared_task
def deliver_pending_events(limit=100):
    """Celery task that retries outbox events the post-commit hook could not deliver."""
    try:
        delivered = OutboxDispatcher().deliver_pending(limit=limit)
        if delivered:
            logger.info(f"Redelivered {delivered} pending outbox events")
        return {"status": "success", "delivered": delivered}
    except Exception as e:
        logger.error(f"Outbox redelivery failed: {e}")
        return {"status": "failed", "error": str(e)}
