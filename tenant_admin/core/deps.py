from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from tenant_admin.core.config import settings
from tenant_admin.core.security import decode_jwt
from tenant_admin.db.session import get_db
from tenant_admin.models.user import User

bearer = HTTPBearer(auto_error=False)


def _user_from_token(db: Session, token: str) -> User | None:
    try:
        payload = decode_jwt(token, settings.JWT_SECRET)
    except Exception:
        return None
    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        return None
    user = db.get(User, user_id)
    if user is None or user.deleted_at is not None or not user.is_active:
        return None
    return user


def _token_from_request(request: Request, creds: HTTPAuthorizationCredentials | None) -> str | None:
    if creds and creds.credentials:
        return creds.credentials
    cookie = request.cookies.get(settings.AUTH_COOKIE_NAME)
    return cookie or None


def get_optional_user(
    request: Request,
    creds: HTTPAuthorizationCredentials = Depends(bearer),
    db: Session = Depends(get_db),
) -> User | None:
    token = _token_from_request(request, creds)
    if not token:
        return None
    return _user_from_token(db, token)


def get_current_user(
    request: Request,
    creds: HTTPAuthorizationCredentials = Depends(bearer),
    db: Session = Depends(get_db),
) -> User:
    token = _token_from_request(request, creds)
    if not token:
        raise HTTPException(status_code=401, detail="Missing authorization token")
    user = _user_from_token(db, token)
    if user is None:
        raise HTTPException(status_code=401, detail="Invalid token")
    return user


def get_session_id(request: Request) -> str:
    session_id = getattr(request.state, "session_id", None)
    if session_id:
        return session_id
    return request.cookies.get(settings.SESSION_COOKIE_NAME, "")
