from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from sqlalchemy.orm import Session

from tenant_admin.api.admin.users import serialize_user
from tenant_admin.core.config import settings
from tenant_admin.core.deps import get_current_user
from tenant_admin.core.security import create_jwt, verify_password
from tenant_admin.db.session import get_db
from tenant_admin.models.user import User
from tenant_admin.schemas.admin import LoginIn, TokenOut
from tenant_admin.services.bootstrap import ensure_bootstrap_admin_for_login, get_active_user_by_login
from tenant_admin.services.preferences import sync_user_preferences

router = APIRouter()


@router.post("/login", response_model=TokenOut)
def login(payload: LoginIn, request: Request, response: Response, db: Session = Depends(get_db)):
    user = ensure_bootstrap_admin_for_login(db, payload.login, payload.password)
    if user is None:
        user = get_active_user_by_login(db, payload.login)
    if not user or not verify_password(payload.password, user.password_hash or ""):
        raise HTTPException(status_code=401, detail="Invalid login or password")

    sync_user_preferences(db, user, request, response)

    ttl = timedelta(minutes=settings.JWT_TTL_MINUTES)
    token = create_jwt({"sub": str(user.id), "uuid": user.uuid}, settings.JWT_SECRET, ttl)
    response.set_cookie(
        settings.AUTH_COOKIE_NAME,
        token,
        max_age=int(ttl.total_seconds()),
        httponly=True,
        samesite="lax",
        secure=settings.APP_ENV == "production",
    )
    return TokenOut(access_token=token)


@router.post("/logout")
def logout(response: Response):
    response.delete_cookie(settings.AUTH_COOKIE_NAME)
    return {"status": "ok"}


@router.get("/me")
def me(current_user: User = Depends(get_current_user)):
    data = serialize_user(current_user)
    data["preferences"] = dict(current_user.frontend_preferences or {})
    return data
