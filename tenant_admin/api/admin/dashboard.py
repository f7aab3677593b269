from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from tenant_admin.auth import permissions as perms
from tenant_admin.auth.policies import is_super_admin
from tenant_admin.core.deps import get_current_user
from tenant_admin.db.session import get_db
from tenant_admin.models.user import User
from tenant_admin.services.preferences import request_locale
from tenant_admin.services.stats.dashboard import build_dashboard

router = APIRouter()


@router.get("")
def dashboard(request: Request, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    if not (is_super_admin(current_user) or current_user.has_permission_to(perms.VIEW_DASHBOARD)):
        raise HTTPException(status_code=403, detail="This action is unauthorized.")
    return build_dashboard(db, current_user, locale=request_locale(request, current_user))
