from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from tenant_admin.core.config import settings
from tenant_admin.core.deps import get_optional_user
from tenant_admin.core.security import sign_channel_subscription
from tenant_admin.db.session import get_db
from tenant_admin.models.user import User
from tenant_admin.schemas.admin import BroadcastAuthIn
from tenant_admin.services.notifications.channels import authorize_channel

router = APIRouter()


@router.post("/auth")
def broadcasting_auth(
    payload: BroadcastAuthIn,
    db: Session = Depends(get_db),
    user: User | None = Depends(get_optional_user),
):
    socket_id = str(payload.socket_id or "").strip()
    channel = str(payload.channel_name or "").strip()
    if not socket_id or not channel:
        raise HTTPException(status_code=400, detail="socket_id and channel_name are required")
    if not authorize_channel(db, user, channel):
        raise HTTPException(status_code=403, detail="This action is unauthorized.")
    return {
        "auth": sign_channel_subscription(settings.BROADCAST_AUTH_SECRET, socket_id, channel),
        "channel": channel,
    }
