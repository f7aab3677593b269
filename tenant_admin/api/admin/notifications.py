from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from tenant_admin.auth.policies import authorize
from tenant_admin.core.deps import get_current_user
from tenant_admin.core.exceptions import NotificationError
from tenant_admin.db.session import get_db
from tenant_admin.models.notification import Notification
from tenant_admin.models.team import Team
from tenant_admin.models.user import User
from tenant_admin.schemas.admin import NotificationSendIn
from tenant_admin.services.notifications.builder import NotificationBuilder
from tenant_admin.services.notifications.payload import ToastType

router = APIRouter()


@router.post("/send")
def send_notification(
    payload: NotificationSendIn,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    authorize(current_user, "send", Notification)
    try:
        toast_type = ToastType(str(payload.type or "").strip().lower())
    except ValueError:
        raise HTTPException(status_code=400, detail=f'Unknown notification type "{payload.type}"')

    builder = NotificationBuilder.make().title(payload.title).subtitle(payload.subtitle).type(toast_type)
    if payload.content:
        builder.content(payload.content)
    if payload.link:
        builder.link(payload.link)
    if payload.persist:
        builder.persist()

    if payload.target == "user":
        target_id = str(payload.target_id or current_user.uuid)
        if not db.query(User.id).filter(User.uuid == target_id, User.deleted_at.is_(None)).first():
            raise HTTPException(status_code=404, detail="User not found")
        builder.to_user(target_id)
    elif payload.target == "team":
        team = db.query(Team).filter(Team.uuid == str(payload.target_id or ""), Team.deleted_at.is_(None)).first()
        if team is None:
            raise HTTPException(status_code=404, detail="Team not found")
        builder.to_team(team)
    else:
        builder.global_()

    try:
        toast = builder.send(db, current_user=current_user)
    except NotificationError as exc:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    db.commit()
    return {"status": "sent", "toast": toast.to_broadcast()}
