from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from tenant_admin.api.admin.common import get_or_404, iso, run_bulk_action, table_listing
from tenant_admin.auth.policies import authorize
from tenant_admin.core.deps import get_current_user
from tenant_admin.db.session import get_db
from tenant_admin.models.team import Team
from tenant_admin.models.user import User
from tenant_admin.schemas.admin import BulkActionIn, TeamUpsert
from tenant_admin.services.datatable.tables import teams_table

router = APIRouter()


def serialize_team(team: Team) -> dict:
    return {
        "id": team.uuid,
        "name": team.name,
        "display_name": team.display_name,
        "description": team.description,
        "members": [{"id": u.uuid, "name": u.name} for u in team.users if u.deleted_at is None],
        "created_at": iso(team.created_at),
        "deleted_at": iso(team.deleted_at),
    }


def _members(db: Session, uuids: list[str]) -> list[User]:
    wanted = {str(u).strip() for u in uuids if str(u).strip()}
    if not wanted:
        return []
    rows = db.query(User).filter(User.uuid.in_(wanted), User.deleted_at.is_(None)).all()
    if len(rows) != len(wanted):
        raise HTTPException(status_code=400, detail="Unknown users")
    return rows


def _ensure_unique_name(db: Session, name: str, exclude_id: int | None = None) -> None:
    q = db.query(Team.id).filter(Team.name == name)
    if exclude_id is not None:
        q = q.filter(Team.id != exclude_id)
    if q.first():
        raise HTTPException(status_code=400, detail="Team name is already taken")


@router.get("")
def list_teams(request: Request, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    authorize(current_user, "view_any", Team)
    return table_listing(request, db, current_user, teams_table())


@router.post("/bulk")
def bulk_teams(payload: BulkActionIn, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    authorize(current_user, "view_any", Team)
    return run_bulk_action(db, teams_table(), payload, current_user)


@router.get("/{team_id}")
def get_team(team_id: str, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    team = get_or_404(db, Team, team_id, detail="Team not found")
    authorize(current_user, "view", team)
    return serialize_team(team)


@router.post("", status_code=201)
def create_team(payload: TeamUpsert, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    authorize(current_user, "create", Team)
    name = payload.name.strip()
    _ensure_unique_name(db, name)
    team = Team(name=name, display_name=payload.display_name, description=payload.description)
    team.users = _members(db, payload.members or [])
    db.add(team)
    db.commit()
    db.refresh(team)
    return serialize_team(team)


@router.put("/{team_id}")
def update_team(
    team_id: str,
    payload: TeamUpsert,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    team = get_or_404(db, Team, team_id, detail="Team not found")
    authorize(current_user, "update", team)
    name = payload.name.strip()
    _ensure_unique_name(db, name, exclude_id=team.id)
    team.name = name
    team.display_name = payload.display_name
    team.description = payload.description
    if payload.members is not None:
        team.users = _members(db, payload.members)
    db.commit()
    db.refresh(team)
    return serialize_team(team)


@router.delete("/{team_id}")
def delete_team(team_id: str, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    team = get_or_404(db, Team, team_id, detail="Team not found")
    authorize(current_user, "delete", team)
    team.soft_delete()
    db.commit()
    return {"status": "deleted", "id": team.uuid}


@router.post("/{team_id}/restore")
def restore_team(team_id: str, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    team = get_or_404(db, Team, team_id, trashed=True, detail="Team not found")
    authorize(current_user, "restore", team)
    team.restore()
    db.commit()
    db.refresh(team)
    return serialize_team(team)
