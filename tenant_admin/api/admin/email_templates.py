from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy import or_
from sqlalchemy.orm import Session

from tenant_admin.api.admin.common import get_or_404, iso, run_bulk_action, table_listing
from tenant_admin.auth.policies import authorize, is_super_admin
from tenant_admin.core.deps import get_current_user
from tenant_admin.core.i18n import is_supported_locale
from tenant_admin.db.session import get_db
from tenant_admin.models.email_template import KIND_CONTENT, KIND_LAYOUT, EmailTemplate, EmailTranslation
from tenant_admin.models.team import Team
from tenant_admin.models.user import User
from tenant_admin.schemas.admin import BulkActionIn, EmailPreviewIn, EmailTemplateUpsert, EmailTranslationIn
from tenant_admin.services.datatable.tables import email_templates_table
from tenant_admin.services.email_templates.merge_tags import MergeTagEngine
from tenant_admin.services.email_templates.renderer import LAYOUT_SLOT, SLOT_TAG, has_slot, html_to_text, render_email

router = APIRouter()

# Prefixes template authors may reference besides the global tags.
ENTITY_TYPES = {"user": User, "team": Team}


def serialize_template(template: EmailTemplate) -> dict:
    return {
        "id": template.uuid,
        "key": template.key,
        "name": template.name,
        "description": template.description,
        "kind": template.kind,
        "layout": template.layout.uuid if template.layout is not None else None,
        "is_default": bool(template.is_default),
        "all_teams": bool(template.all_teams),
        "is_active": bool(template.is_active),
        "is_system": bool(template.is_system),
        "teams": [{"id": t.uuid, "name": t.label()} for t in template.teams],
        "translations": [
            {
                "locale": t.locale,
                "subject": t.subject,
                "preheader": t.preheader,
                "html_content": t.html_content,
                "text_content": t.text_content,
            }
            for t in template.translations
        ],
        "updated_at": iso(template.updated_at),
    }


def visibility_scope(user: User):
    """Templates open to all teams are shared; the rest only show to their teams' members."""
    if is_super_admin(user):
        return None
    team_ids = [t.id for t in user.teams if t.deleted_at is None]

    def scope(q):
        return q.filter(or_(EmailTemplate.all_teams.is_(True), EmailTemplate.teams.any(Team.id.in_(team_ids))))

    return scope


def _teams(db: Session, uuids: list[str]) -> list[Team]:
    wanted = {str(u).strip() for u in uuids if str(u).strip()}
    if not wanted:
        return []
    rows = db.query(Team).filter(Team.uuid.in_(wanted), Team.deleted_at.is_(None)).all()
    if len(rows) != len(wanted):
        raise HTTPException(status_code=400, detail="Unknown teams")
    return rows


def _check_translations(items: list[EmailTranslationIn], kind: str = KIND_CONTENT) -> None:
    seen: set[str] = set()
    engine = MergeTagEngine()
    for item in items:
        if not is_supported_locale(item.locale):
            raise HTTPException(status_code=400, detail=f"Unsupported locale: {item.locale}")
        if item.locale in seen:
            raise HTTPException(status_code=400, detail=f"Duplicate locale: {item.locale}")
        seen.add(item.locale)
        if kind == KIND_LAYOUT and not has_slot(item.html_content):
            raise HTTPException(status_code=400, detail=f"Layout content must contain {LAYOUT_SLOT}")
        invalid = []
        for part in (item.subject, item.preheader, item.html_content, item.text_content):
            found = engine.validate_tags(part, ENTITY_TYPES)
            if kind == KIND_LAYOUT:
                found = [t for t in found if t != SLOT_TAG]
            invalid += [t for t in found if t not in invalid]
        if invalid:
            raise HTTPException(status_code=400, detail=f"Unknown merge tags: {', '.join(invalid)}")


def _sync_translations(template: EmailTemplate, items: list[EmailTranslationIn]) -> None:
    by_locale = {t.locale: t for t in template.translations}
    keep = []
    for item in items:
        row = by_locale.get(item.locale) or EmailTranslation(locale=item.locale)
        row.subject = item.subject
        row.preheader = (item.preheader or "").strip() or None
        row.html_content = item.html_content
        row.text_content = (item.text_content or "").strip() or html_to_text(item.html_content)
        keep.append(row)
    template.translations = keep


@router.get("")
def list_templates(request: Request, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    authorize(current_user, "view_any", EmailTemplate)
    return table_listing(request, db, current_user, email_templates_table(), scope=visibility_scope(current_user))


@router.post("/bulk")
def bulk_templates(payload: BulkActionIn, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    authorize(current_user, "view_any", EmailTemplate)
    return run_bulk_action(db, email_templates_table(), payload, current_user, scope=visibility_scope(current_user))


@router.get("/{template_id}")
def get_template(template_id: str, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    template = get_or_404(db, EmailTemplate, template_id, detail="Email template not found")
    authorize(current_user, "view", template)
    return serialize_template(template)


def _layout(db: Session, payload: EmailTemplateUpsert, template: EmailTemplate | None = None) -> EmailTemplate | None:
    if not payload.layout:
        return None
    if payload.kind == KIND_LAYOUT:
        raise HTTPException(status_code=400, detail="Layouts cannot use another layout")
    layout = db.query(EmailTemplate).filter(EmailTemplate.uuid == payload.layout).first()
    if layout is None or not layout.is_layout():
        raise HTTPException(status_code=400, detail="Unknown layout")
    if template is not None and layout.id == template.id:
        raise HTTPException(status_code=400, detail="A template cannot be its own layout")
    return layout


def _apply(db: Session, template: EmailTemplate, payload: EmailTemplateUpsert) -> None:
    if payload.is_default and payload.kind != KIND_LAYOUT:
        raise HTTPException(status_code=400, detail="Only layouts can be the default")
    _check_translations(payload.translations, payload.kind)
    template.key = payload.key
    template.name = payload.name.strip()
    template.description = payload.description
    template.kind = payload.kind
    template.layout = _layout(db, payload, template if template.id is not None else None)
    template.is_default = payload.is_default
    template.is_active = payload.is_active
    template.teams = _teams(db, payload.teams)
    template.all_teams = payload.all_teams if payload.all_teams is not None else not template.teams
    _sync_translations(template, payload.translations)
    if template.is_default:
        # one default layout at a time
        others = db.query(EmailTemplate).filter(EmailTemplate.kind == KIND_LAYOUT, EmailTemplate.is_default.is_(True))
        if template.id is not None:
            others = others.filter(EmailTemplate.id != template.id)
        for other in others.all():
            other.is_default = False


@router.post("", status_code=201)
def create_template(
    payload: EmailTemplateUpsert,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    authorize(current_user, "create", EmailTemplate)
    if db.query(EmailTemplate.id).filter(EmailTemplate.key == payload.key).first():
        raise HTTPException(status_code=400, detail="Template key is already taken")
    template = EmailTemplate()
    _apply(db, template, payload)
    db.add(template)
    db.commit()
    db.refresh(template)
    return serialize_template(template)


@router.put("/{template_id}")
def update_template(
    template_id: str,
    payload: EmailTemplateUpsert,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    template = get_or_404(db, EmailTemplate, template_id, detail="Email template not found")
    authorize(current_user, "update", template)
    if template.is_system and payload.key != template.key:
        raise HTTPException(status_code=400, detail="System template keys cannot change")
    clash = (
        db.query(EmailTemplate.id)
        .filter(EmailTemplate.key == payload.key, EmailTemplate.id != template.id)
        .first()
    )
    if clash:
        raise HTTPException(status_code=400, detail="Template key is already taken")
    if template.is_layout() and payload.kind != KIND_LAYOUT:
        if db.query(EmailTemplate.id).filter(EmailTemplate.layout_id == template.id).first():
            raise HTTPException(status_code=400, detail="Layout is used by other templates")
    _apply(db, template, payload)
    db.commit()
    db.refresh(template)
    return serialize_template(template)


@router.delete("/{template_id}")
def delete_template(template_id: str, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    template = get_or_404(db, EmailTemplate, template_id, detail="Email template not found")
    authorize(current_user, "delete", template)
    if template.is_layout():
        template.release_contents()
    db.delete(template)
    db.commit()
    return {"status": "deleted", "id": template_id}


@router.post("/{template_id}/preview")
def preview_template(
    template_id: str,
    payload: EmailPreviewIn,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    template = get_or_404(db, EmailTemplate, template_id, detail="Email template not found")
    authorize(current_user, "view", template)
    try:
        rendered = render_email(
            template, entities={"user": current_user}, context=payload.context, locale=payload.locale, db=db
        )
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return {
        "subject": rendered.subject,
        "preheader": rendered.preheader,
        "html": rendered.html,
        "text": rendered.text,
        "locale": rendered.locale,
    }
