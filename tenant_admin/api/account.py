from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from tenant_admin.core.deps import get_current_user
from tenant_admin.db.session import get_db
from tenant_admin.models.user import User
from tenant_admin.schemas.admin import EmailChangeIn
from tenant_admin.services.email_change import start_email_change
from tenant_admin.services.preferences import request_locale

router = APIRouter()


@router.post("/email", status_code=202)
def request_email_change(
    payload: EmailChangeIn,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    start_email_change(db, current_user, payload.email, locale=request_locale(request, current_user))
    return {
        "status": "pending",
        "pending_email": current_user.pending_email,
        "expires_at": current_user.pending_email_expires_at.isoformat(),
    }
