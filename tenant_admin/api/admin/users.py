from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy import func
from sqlalchemy.orm import Session

from tenant_admin.api.admin.common import get_or_404, iso, run_bulk_action, table_listing
from tenant_admin.auth.policies import authorize, is_super_admin
from tenant_admin.core.config import settings
from tenant_admin.core.deps import get_current_user
from tenant_admin.core.security import hash_password
from tenant_admin.db.session import get_db
from tenant_admin.models.role import Role
from tenant_admin.models.team import Team
from tenant_admin.models.user import User
from tenant_admin.schemas.admin import ActivationIn, BulkActionIn, UserCreate, UserUpdate
from tenant_admin.services.datatable.tables import users_table

router = APIRouter()


def serialize_user(user: User) -> dict:
    return {
        "id": user.uuid,
        "name": user.name,
        "email": user.email,
        "username": user.username,
        "is_active": bool(user.is_active),
        "is_super_admin": is_super_admin(user),
        "email_verified_at": iso(user.email_verified_at),
        "last_login_at": iso(user.last_login_at),
        "roles": sorted(user.role_names()),
        "teams": [{"id": t.uuid, "name": t.label()} for t in user.teams if t.deleted_at is None],
        "permissions": sorted(user.permission_names()),
        "created_at": iso(user.created_at),
        "deleted_at": iso(user.deleted_at),
    }


def _roles_by_name(db: Session, names: list[str]) -> list[Role]:
    wanted = {str(n).strip() for n in names if str(n).strip()}
    if not wanted:
        return []
    rows = db.query(Role).filter(Role.name.in_(wanted), Role.deleted_at.is_(None)).all()
    missing = wanted - {r.name for r in rows}
    if missing:
        raise HTTPException(status_code=400, detail=f"Unknown roles: {', '.join(sorted(missing))}")
    return rows


def _teams_by_uuid(db: Session, uuids: list[str]) -> list[Team]:
    wanted = {str(u).strip() for u in uuids if str(u).strip()}
    if not wanted:
        return []
    rows = db.query(Team).filter(Team.uuid.in_(wanted), Team.deleted_at.is_(None)).all()
    if len(rows) != len(wanted):
        raise HTTPException(status_code=400, detail="Unknown teams")
    return rows


def _ensure_unique(db: Session, field, value: str | None, exclude_id: int | None = None) -> None:
    if not value:
        return
    q = db.query(User.id).filter(func.lower(field) == value.lower())
    if exclude_id is not None:
        q = q.filter(User.id != exclude_id)
    if q.first():
        raise HTTPException(status_code=400, detail=f"{field.key} is already taken")


def _guard_super_admin_role(actor: User, roles: list[Role]) -> None:
    if any(r.name == settings.SUPER_ADMIN_ROLE for r in roles) and not is_super_admin(actor):
        raise HTTPException(status_code=403, detail="This action is unauthorized.")


@router.get("")
def list_users(
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    authorize(current_user, "view_any", User)
    return table_listing(request, db, current_user, users_table())


@router.post("/bulk")
def bulk_users(payload: BulkActionIn, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    authorize(current_user, "view_any", User)
    return run_bulk_action(db, users_table(), payload, current_user)


@router.get("/{user_id}")
def get_user(user_id: str, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    user = get_or_404(db, User, user_id, detail="User not found")
    authorize(current_user, "view", user)
    return serialize_user(user)


@router.post("", status_code=201)
def create_user(payload: UserCreate, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    authorize(current_user, "create", User)
    _ensure_unique(db, User.email, payload.email)
    _ensure_unique(db, User.username, payload.username)
    roles = _roles_by_name(db, payload.roles)
    _guard_super_admin_role(current_user, roles)

    user = User(
        name=payload.name.strip(),
        email=payload.email,
        username=(payload.username or "").strip() or None,
        password_hash=hash_password(payload.password),
        is_active=payload.is_active,
    )
    user.roles = roles
    user.teams = _teams_by_uuid(db, payload.teams)
    db.add(user)
    db.commit()
    db.refresh(user)
    return serialize_user(user)


@router.patch("/{user_id}")
def update_user(
    user_id: str,
    payload: UserUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    user = get_or_404(db, User, user_id, detail="User not found")
    authorize(current_user, "update", user)

    if payload.name is not None:
        user.name = payload.name.strip()
    if payload.username is not None:
        username = payload.username.strip() or None
        _ensure_unique(db, User.username, username, exclude_id=user.id)
        user.username = username
    if payload.password:
        user.password_hash = hash_password(payload.password)
    if payload.roles is not None:
        roles = _roles_by_name(db, payload.roles)
        _guard_super_admin_role(current_user, roles)
        user.roles = roles
    if payload.teams is not None:
        user.teams = _teams_by_uuid(db, payload.teams)
    db.commit()
    db.refresh(user)
    return serialize_user(user)


@router.post("/{user_id}/activation")
def set_activation(
    user_id: str,
    payload: ActivationIn,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    user = get_or_404(db, User, user_id, detail="User not found")
    authorize(current_user, "activate", user)
    user.is_active = payload.is_active
    db.commit()
    db.refresh(user)
    return serialize_user(user)


@router.delete("/{user_id}")
def delete_user(user_id: str, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    user = get_or_404(db, User, user_id, detail="User not found")
    authorize(current_user, "delete", user)
    user.soft_delete()
    db.commit()
    return {"status": "deleted", "id": user.uuid}


@router.post("/{user_id}/restore")
def restore_user(user_id: str, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    user = get_or_404(db, User, user_id, trashed=True, detail="User not found")
    authorize(current_user, "restore", user)
    user.restore()
    db.commit()
    db.refresh(user)
    return serialize_user(user)


@router.delete("/{user_id}/force")
def force_delete_user(user_id: str, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    user = get_or_404(db, User, user_id, trashed=None, detail="User not found")
    authorize(current_user, "force_delete", user)
    db.delete(user)
    db.commit()
    return {"status": "force_deleted", "id": user_id}
