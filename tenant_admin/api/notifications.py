from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from tenant_admin.core.config import settings
from tenant_admin.core.deps import get_current_user
from tenant_admin.core.i18n import translate
from tenant_admin.db.session import get_db
from tenant_admin.models.user import User
from tenant_admin.services.notifications import center
from tenant_admin.services.preferences import request_locale

router = APIRouter()


@router.get("")
def list_notifications(
    request: Request,
    visible: int = Query(default=settings.NOTIFICATIONS_PAGE_SIZE, ge=1, le=500),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    locale = request_locale(request, current_user)
    data = center.list_notifications(db, current_user, visible=visible, locale=locale)
    data["next_visible"] = visible + settings.NOTIFICATIONS_PAGE_SIZE if data["has_more"] else None
    data["load_more_label"] = (
        translate("notifications.load_more", locale, count=data["remaining"]) if data["has_more"] else None
    )
    return data


@router.get("/unread-count")
def unread_count(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return {"unread_count": center.unread_count(db, current_user)}


@router.post("/read-all")
def read_all(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    changed = center.mark_all_read(db, current_user)
    return {"status": "ok", "changed": changed}


@router.post("/{notification_id}/read")
def read_one(
    notification_id: str,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    item = center.mark_read(db, current_user, notification_id)
    return {"status": "ok", "notification": center.serialize_notification(item, request_locale(request, current_user))}


@router.post("/{notification_id}/unread")
def unread_one(
    notification_id: str,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    item = center.mark_unread(db, current_user, notification_id)
    return {"status": "ok", "notification": center.serialize_notification(item, request_locale(request, current_user))}


@router.delete("/{notification_id}")
def delete_one(notification_id: str, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    center.delete_notification(db, current_user, notification_id)
    return {"status": "deleted", "id": notification_id}


@router.post("/{notification_id}/restore")
def restore_one(
    notification_id: str,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    item = center.restore_notification(db, current_user, notification_id)
    return {"status": "ok", "notification": center.serialize_notification(item, request_locale(request, current_user))}


@router.delete("")
def clear_all(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    removed = center.clear_notifications(db, current_user)
    return {"status": "ok", "removed": removed}
