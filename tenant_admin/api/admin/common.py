from __future__ import annotations

import logging
from typing import Any

from fastapi import HTTPException, Request
from sqlalchemy.orm import Session

from tenant_admin.auth.policies import can
from tenant_admin.models.user import User
from tenant_admin.schemas.admin import BulkActionIn
from tenant_admin.services.datatable.definition import TableDefinition
from tenant_admin.services.datatable.preferences import DataTablePreferencesService
from tenant_admin.services.datatable.table import datatable_response
from tenant_admin.services.preferences import request_locale, request_timezone

_LOG = logging.getLogger("tenant_admin.admin")


def get_or_404(db: Session, model, uuid: str, *, trashed: bool | None = False, detail: str = "Not found"):
    """``trashed``: False live rows only, True trashed only, None either."""
    q = db.query(model).filter(model.uuid == str(uuid or "").strip())
    if trashed is not None and hasattr(model, "deleted_at"):
        q = q.filter(model.deleted_at.isnot(None) if trashed else model.deleted_at.is_(None))
    row = q.first()
    if row is None:
        raise HTTPException(status_code=404, detail=detail)
    return row


def listing_context(request: Request, user: User) -> dict[str, Any]:
    return {
        "locale": request_locale(request, user),
        "timezone": request_timezone(request, user),
        "render": str(request.query_params.get("render") or "").strip().lower() in {"1", "true", "yes"},
    }


def table_listing(
    request: Request, db: Session, user: User, definition: TableDefinition, scope=None
) -> dict[str, Any]:
    ctx = listing_context(request, user)
    return datatable_response(
        db,
        definition,
        request.query_params,
        locale=ctx["locale"],
        timezone=ctx["timezone"],
        render=ctx["render"],
        scope=scope,
        can=lambda ability, row: can(user, ability, row),
        preferences=DataTablePreferencesService.for_request(request, db, user),
    )


def run_bulk_action(
    db: Session, definition: TableDefinition, payload: BulkActionIn, user: User, scope=None
) -> dict[str, Any]:
    """Run a bulk action on the rows the user may act on; the others are skipped."""
    action = definition.bulk_action(payload.action)
    if action is None:
        raise HTTPException(status_code=400, detail=f"Unknown bulk action '{payload.action}'")
    ids = list(dict.fromkeys(str(i).strip() for i in payload.ids if str(i).strip()))
    if not ids:
        raise HTTPException(status_code=400, detail="No rows selected")

    model = definition.model
    q = db.query(model).filter(model.uuid.in_(ids))
    if definition.exclude_trashed:
        q = q.filter(model.deleted_at.is_(None))
    if scope is not None:
        q = scope(q)
    rows = q.all()
    allowed = [row for row in rows if action.ability is None or can(user, action.ability, row)]
    processed = [row.uuid for row in allowed]
    if allowed:
        action.handler(db, allowed, user)
        db.commit()
    skipped = len(ids) - len(processed)
    _LOG.info("bulk action %s on %s: %s processed, %s skipped", action.key, definition.name, len(processed), skipped)
    return {
        "action": action.key,
        "processed": len(processed),
        "skipped": skipped,
        "ids": processed,
    }


def iso(value) -> str | None:
    return value.isoformat() if value is not None else None
