from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from tenant_admin.api.admin.common import get_or_404, iso, run_bulk_action, table_listing
from tenant_admin.auth.permissions import permissions_by_entity
from tenant_admin.auth.policies import authorize
from tenant_admin.core.config import settings
from tenant_admin.core.deps import get_current_user
from tenant_admin.db.session import get_db
from tenant_admin.models.role import Permission, Role
from tenant_admin.models.user import User
from tenant_admin.schemas.admin import BulkActionIn, RoleUpsert
from tenant_admin.services.datatable.tables import roles_table

router = APIRouter()


def serialize_role(role: Role) -> dict:
    return {
        "id": role.uuid,
        "name": role.name,
        "display_name": role.display_name,
        "description": role.description,
        "permissions": sorted(role.permission_names()),
        "users_count": len([u for u in role.users if u.deleted_at is None]),
        "created_at": iso(role.created_at),
        "deleted_at": iso(role.deleted_at),
    }


def _permissions(db: Session, names: list[str]) -> list[Permission]:
    wanted = {str(n).strip() for n in names if str(n).strip()}
    if not wanted:
        return []
    rows = db.query(Permission).filter(Permission.name.in_(wanted), Permission.deleted_at.is_(None)).all()
    missing = wanted - {p.name for p in rows}
    if missing:
        raise HTTPException(status_code=400, detail=f"Unknown permissions: {', '.join(sorted(missing))}")
    return rows


def _check_name(db: Session, name: str, exclude_id: int | None = None) -> None:
    if name == settings.SUPER_ADMIN_ROLE:
        raise HTTPException(status_code=400, detail="This role name is reserved")
    q = db.query(Role.id).filter(Role.name == name)
    if exclude_id is not None:
        q = q.filter(Role.id != exclude_id)
    if q.first():
        raise HTTPException(status_code=400, detail="Role name is already taken")


@router.get("/permissions")
def permission_matrix(current_user: User = Depends(get_current_user)):
    authorize(current_user, "view_any", Role)
    return {"permissions": permissions_by_entity()}


@router.get("")
def list_roles(request: Request, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    authorize(current_user, "view_any", Role)
    return table_listing(request, db, current_user, roles_table())


@router.post("/bulk")
def bulk_roles(payload: BulkActionIn, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    authorize(current_user, "view_any", Role)
    return run_bulk_action(db, roles_table(), payload, current_user)


@router.get("/{role_id}")
def get_role(role_id: str, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    role = get_or_404(db, Role, role_id, detail="Role not found")
    authorize(current_user, "view", role)
    return serialize_role(role)


@router.post("", status_code=201)
def create_role(payload: RoleUpsert, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    authorize(current_user, "create", Role)
    name = payload.name.strip()
    _check_name(db, name)
    role = Role(name=name, display_name=payload.display_name, description=payload.description)
    role.permissions = _permissions(db, payload.permissions)
    db.add(role)
    db.commit()
    db.refresh(role)
    return serialize_role(role)


@router.put("/{role_id}")
def update_role(
    role_id: str,
    payload: RoleUpsert,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    role = get_or_404(db, Role, role_id, detail="Role not found")
    authorize(current_user, "update", role)
    name = payload.name.strip()
    _check_name(db, name, exclude_id=role.id)
    role.name = name
    role.display_name = payload.display_name
    role.description = payload.description
    role.permissions = _permissions(db, payload.permissions)
    db.commit()
    db.refresh(role)
    return serialize_role(role)


@router.delete("/{role_id}")
def delete_role(role_id: str, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    role = get_or_404(db, Role, role_id, detail="Role not found")
    authorize(current_user, "delete", role)
    role.soft_delete()
    db.commit()
    return {"status": "deleted", "id": role.uuid}


@router.post("/{role_id}/restore")
def restore_role(role_id: str, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    role = get_or_404(db, Role, role_id, trashed=True, detail="Role not found")
    authorize(current_user, "restore", role)
    role.restore()
    db.commit()
    db.refresh(role)
    return serialize_role(role)
