"""
Clinical CDS - Celery Application Configuration
Handles scheduled maintenance tasks such as alert history retention
"""

import logging
from celery import Celery
from celery.schedules import crontab
from clinical_cds.config import settings

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Create Celery application
celery_app = Celery(
    "clinical_cds",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=[
        "clinical_cds.tasks.retention",
    ]
)

# Configure Celery
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    worker_max_tasks_per_child=1000,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    result_expires=3600,
    task_always_eager=settings.celery_task_always_eager,
)

celery_app.conf.task_routes = {
    "clinical_cds.tasks.retention.*": {"queue": "maintenance"},
}

# Daily retention cleanup
celery_app.conf.beat_schedule = {
    "cleanup-cds-history": {
        "task": "clinical_cds.tasks.retention.cleanup_cds_history",
        "schedule": crontab(hour=settings.retention_cleanup_hour, minute=0),
    },
}

logger.info("Celery application configured successfully")
logger.info(f"Broker: {settings.celery_broker_url}")
logger.info(f"Backend: {settings.celery_result_backend}")

if __name__ == "__main__":
    celery_app.start()
