from celery import Celery
from tenant_admin.core.config import settings

celery_app = Celery(
    "tenant_admin",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
    include=["tenant_admin.workers.tasks.notifications"],
)

celery_app.conf.beat_schedule = {
    "prune_read_notifications": {
        "task": "tenant_admin.workers.tasks.notifications.prune_read_notifications",
        "schedule": 86400.0,
    },
}
celery_app.conf.timezone = settings.DEFAULT_TIMEZONE
