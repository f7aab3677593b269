from __future__ import annotations

from datetime import datetime, timedelta, timezone

from tenant_admin.core.config import settings
from tenant_admin.db.session import SessionLocal
from tenant_admin.models.notification import Notification
from tenant_admin.services.notifications.observers import register_notification_observers
from tenant_admin.workers.celery_app import celery_app


def prune_read(db, older_than_days: int | None = None, now: datetime | None = None) -> dict:
    """Hard-delete read notifications older than the cutoff.

    Rows go through ``db.delete`` one by one so each removal is broadcast.
    """
    days = settings.NOTIFICATIONS_PRUNE_READ_DAYS if older_than_days is None else int(older_than_days)
    cutoff = (now or datetime.now(timezone.utc)) - timedelta(days=days)
    rows = (
        db.query(Notification)
        .filter(Notification.read_at.isnot(None), Notification.read_at <= cutoff)
        .all()
    )
    for row in rows:
        db.delete(row)
    db.commit()
    return {"cutoff": cutoff.isoformat(), "deleted": len(rows)}


@celery_app.task(name="tenant_admin.workers.tasks.notifications.prune_read_notifications")
def prune_read_notifications():
    register_notification_observers()
    db = SessionLocal()
    try:
        return prune_read(db)
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
