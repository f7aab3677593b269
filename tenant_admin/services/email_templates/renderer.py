from __future__ import annotations

import html
import re
from dataclasses import dataclass
from typing import Any

from sqlalchemy.orm import Session, object_session

from tenant_admin.core.i18n import FALLBACK_LOCALE, valid_locale
from tenant_admin.models.email_template import KIND_LAYOUT, EmailTemplate, EmailTranslation
from tenant_admin.services.email_templates.merge_tags import MergeTagEngine
from tenant_admin.services.mail import MailMessage

_LINK = re.compile(r'<a[^>]+href="([^"]+)"[^>]*>(.*?)</a>', re.IGNORECASE | re.DOTALL)
_BR = re.compile(r"<br[^>]*>", re.IGNORECASE)
_P_END = re.compile(r"</p>", re.IGNORECASE)
_BLOCK_END = re.compile(r"</(div|tr|h[1-6]|li)>", re.IGNORECASE)
_TAGS = re.compile(r"<[^>]+>")
_LINE_EDGES = re.compile(r"^[ \t]+|[ \t]+$", re.MULTILINE)
_BLANK_RUNS = re.compile(r"\n{3,}")
_SLOT = re.compile(r"\{\{\{?\s*\$?slot\s*\}?\}\}")
_FULL_DOCUMENT = re.compile(r"<!DOCTYPE html|<html", re.IGNORECASE)

LAYOUT_SLOT = "{{ slot }}"
SLOT_TAG = "slot"


def html_to_text(content: str | None) -> str:
    text = str(content or "")
    text = _LINK.sub(r"\2 (\1)", text)
    text = _BR.sub("\n", text)
    text = _P_END.sub("\n\n", text)
    text = _BLOCK_END.sub("\n", text)
    text = _TAGS.sub("", text)
    text = html.unescape(text)
    text = _LINE_EDGES.sub("", text)
    text = _BLANK_RUNS.sub("\n\n", text)
    return text.strip()


@dataclass(frozen=True)
class RenderedEmail:
    subject: str
    html: str
    text: str
    locale: str
    template_key: str
    preheader: str | None = None

    def to_message(self, to: str) -> MailMessage:
        return MailMessage(to=to, subject=self.subject, html=self.html, text=self.text)


def translation_for(template: EmailTemplate, locale: str | None) -> EmailTranslation:
    resolved = valid_locale(locale)
    found = template.translation_for(resolved, FALLBACK_LOCALE)
    if found is None:
        raise ValueError(
            f"No translation found for template '{template.key}' in locale '{resolved}' or fallback '{FALLBACK_LOCALE}'"
        )
    return found


def default_layout(db: Session) -> EmailTemplate | None:
    return (
        db.query(EmailTemplate)
        .filter(
            EmailTemplate.kind == KIND_LAYOUT,
            EmailTemplate.is_default.is_(True),
            EmailTemplate.is_active.is_(True),
        )
        .order_by(EmailTemplate.id.asc())
        .first()
    )


def resolve_layout(template: EmailTemplate, db: Session | None = None) -> EmailTemplate | None:
    """The template's own layout, else the default one. Layouts are never wrapped."""
    if template.is_layout():
        return None
    if template.layout is not None and template.layout.is_layout():
        return template.layout
    session = db or object_session(template)
    if session is None:
        return None
    return default_layout(session)


def has_slot(content: str | None) -> bool:
    return bool(_SLOT.search(content or ""))


def fill_slot(layout_content: str, content: str) -> str:
    return _SLOT.sub(lambda _match: content, layout_content)


def compose_with_layout(layout: EmailTemplate | None, html_content: str, text_content: str, locale: str | None):
    """Wrap content in ``layout``; a full HTML document is sent as is."""
    if layout is None or _FULL_DOCUMENT.search(html_content or ""):
        return html_content, text_content
    translation = layout.translation_for(valid_locale(locale), FALLBACK_LOCALE)
    if translation is None:
        return html_content, text_content
    if translation.html_content:
        html_content = fill_slot(translation.html_content, html_content)
    if translation.text_content:
        text_content = fill_slot(translation.text_content, text_content)
    return html_content, text_content


def render_email(
    template: EmailTemplate,
    entities: dict[str, Any] | None = None,
    context: dict[str, Any] | None = None,
    locale: str | None = None,
    db: Session | None = None,
) -> RenderedEmail:
    translation = translation_for(template, locale)
    engine = MergeTagEngine(translation.locale).set_entities(entities or {}).set_context_variables(context or {})
    text_source = translation.text_content or html_to_text(translation.html_content)
    html_content, text_content = compose_with_layout(
        resolve_layout(template, db), translation.html_content, text_source, translation.locale
    )
    # tags are resolved after composition so layouts can use them too
    return RenderedEmail(
        subject=engine.resolve(translation.subject),
        html=engine.resolve(html_content),
        text=engine.resolve(text_content),
        locale=translation.locale,
        template_key=template.key,
        preheader=engine.resolve(translation.preheader) if translation.preheader else None,
    )
