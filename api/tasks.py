# api/tasks.py
import logging

from celery import shared_task
from django.conf import settings

from api.utils.notifications import process_due_jobs

logger = logging.getLogger(__name__)


@shared_task(name="api.tasks.process_notification_jobs", bind=True, max_retries=3, default_retry_delay=30)
def process_notification_jobs(self, batch_size=None):
    """
    One pass of the notification delivery loop; Celery beat runs it every minute.
    Per-job delivery failures are recorded on the job itself and retried by later passes.
    """
    try:
        stats = process_due_jobs(batch_size or settings.NOTIFICATION_BATCH_SIZE)
    except Exception as e:
        logger.error(f"[Notification Jobs] Error: {e}", exc_info=True)
        raise self.retry(exc=e)

    if stats["claimed"]:
        logger.info(
            "[Notification Jobs] sent=%s retry=%s failed=%s skipped=%s",
            stats["sent"], stats["retry"], stats["failed"], stats["skipped"],
        )
    return stats
