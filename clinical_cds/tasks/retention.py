"""
Clinical CDS - Retention Tasks
Celery tasks applying the alert history and audit log retention policy
"""

import logging
from typing import Optional

from clinical_cds.celery_app import celery_app
from clinical_cds.config import settings

logger = logging.getLogger(__name__)


@celery_app.task(name="clinical_cds.tasks.retention.cleanup_cds_history", bind=True, max_retries=3)
def cleanup_cds_history_task(
    self,
    retention_days: Optional[int] = None,
    audit_retention_days: Optional[int] = None
) -> dict:
    """
    Remove history and audit entries older than the retention periods

    Args:
        retention_days: Days of history to keep (default: settings)
        audit_retention_days: Days of audit log to keep (default: settings)

    Returns:
        Retention result as dictionary
    """
    if settings.storage_backend == "memory":
        logger.warning(
            "CDS retention cleanup is running against the in-memory store; "
            "it only sees this worker's own data. Set STORAGE_BACKEND to redis or database."
        )

    try:
        logger.info("Starting CDS retention cleanup")

        from clinical_cds.modules.cds_history import get_history_manager
        result = get_history_manager().cleanup_old_history(retention_days, audit_retention_days)

        logger.info(f"✓ Retention cleanup complete: {result.total_removed} entries removed")
        return result.model_dump(mode="json")

    except ValueError:
        raise

    except Exception as e:
        logger.error(f"Retention cleanup failed: {e}", exc_info=True)
        raise self.retry(exc=e, countdown=60 * (2 ** self.request.retries))
