from __future__ import annotations

from typing import Any

from fastapi import HTTPException
from sqlalchemy.orm import Session

from tenant_admin.core.config import settings
from tenant_admin.models.common import utcnow
from tenant_admin.models.notification import Notification
from tenant_admin.models.user import User
from tenant_admin.services.notifications.content import NotificationContent


def _iso(value) -> str | None:
    return value.isoformat() if value is not None else None


def serialize_notification(item: Notification, locale: str | None = None) -> dict[str, Any]:
    data = item.data or {}
    return {
        "id": item.uuid,
        "type": item.type,
        "title": NotificationContent.from_storable(data.get("title"), locale),
        "subtitle": NotificationContent.from_storable(data.get("subtitle"), locale) or None,
        "content": NotificationContent.from_storable(data.get("content"), locale),
        "toast_type": data.get("type"),
        "link": data.get("link"),
        "read": item.is_read,
        "read_at": _iso(item.read_at),
        "created_at": _iso(item.created_at),
    }


def _owned(db: Session, user: User):
    return db.query(Notification).filter(Notification.notifiable_id == user.id)


def _get_owned(db: Session, user: User, notification_uuid: str, trashed: bool = False) -> Notification:
    q = _owned(db, user).filter(Notification.uuid == notification_uuid)
    q = q.filter(Notification.deleted_at.isnot(None) if trashed else Notification.deleted_at.is_(None))
    item = q.first()
    if not item:
        raise HTTPException(status_code=404, detail="Notification not found")
    return item


def unread_count(db: Session, user: User) -> int:
    return (
        _owned(db, user)
        .filter(Notification.deleted_at.is_(None), Notification.read_at.is_(None))
        .count()
    )


def list_notifications(db: Session, user: User, visible: int | None = None, locale: str | None = None) -> dict[str, Any]:
    """Newest first. ``visible`` grows by one page each "load more"."""
    limit = int(visible or settings.NOTIFICATIONS_PAGE_SIZE)
    if limit < 1:
        limit = settings.NOTIFICATIONS_PAGE_SIZE

    q = _owned(db, user).filter(Notification.deleted_at.is_(None))
    total = q.count()
    rows = q.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit + 1).all()
    has_more = len(rows) > limit
    rows = rows[:limit]

    return {
        "items": [serialize_notification(r, locale) for r in rows],
        "visible": limit,
        "total": total,
        "has_more": has_more,
        "remaining": max(total - len(rows), 0),
        "unread_count": unread_count(db, user),
    }


def mark_read(db: Session, user: User, notification_uuid: str) -> Notification:
    item = _get_owned(db, user, notification_uuid)
    item.mark_as_read()
    db.commit()
    db.refresh(item)
    return item


def mark_unread(db: Session, user: User, notification_uuid: str) -> Notification:
    item = _get_owned(db, user, notification_uuid)
    item.mark_as_unread()
    db.commit()
    db.refresh(item)
    return item


def mark_all_read(db: Session, user: User) -> int:
    # row by row so each change is broadcast
    items = _owned(db, user).filter(Notification.deleted_at.is_(None), Notification.read_at.is_(None)).all()
    now = utcnow()
    for item in items:
        item.read_at = now
    db.commit()
    return len(items)


def delete_notification(db: Session, user: User, notification_uuid: str) -> None:
    item = _get_owned(db, user, notification_uuid)
    item.soft_delete()
    db.commit()


def restore_notification(db: Session, user: User, notification_uuid: str) -> Notification:
    item = _get_owned(db, user, notification_uuid, trashed=True)
    item.restore()
    db.commit()
    db.refresh(item)
    return item


def clear_notifications(db: Session, user: User) -> int:
    items = _owned(db, user).all()
    for item in items:
        db.delete(item)
    db.commit()
    return len(items)
