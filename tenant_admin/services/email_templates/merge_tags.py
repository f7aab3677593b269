from __future__ import annotations

import re
from datetime import date, datetime, timezone
from typing import Any, Iterable

from markupsafe import escape
from sqlalchemy import inspect
from sqlalchemy.exc import NoInspectionAvailable

from tenant_admin.core.config import settings
from tenant_admin.core.i18n import format_date, format_datetime

_TAG = r"([a-zA-Z_][a-zA-Z0-9_]*(?:\.[a-zA-Z_][a-zA-Z0-9_]*)*)"
RAW_TAG_PATTERN = re.compile(r"\{\{\{\s*" + _TAG + r"\s*\}\}\}")
ESCAPED_TAG_PATTERN = re.compile(r"\{\{\s*" + _TAG + r"\s*\}\}")
EXTRACT_TAG_PATTERN = re.compile(r"\{?\{\{\s*" + _TAG + r"\s*\}\}\}?")

CONTEXT_PREFIX = "action"

# never exposed to template authors
HIDDEN_COLUMNS = frozenset({"id", "password_hash", "pending_email_token", "frontend_preferences"})


def global_tags(locale: str | None = None) -> dict[str, str]:
    now = datetime.now(timezone.utc)
    return {
        "app.name": settings.APP_NAME,
        "app.url": settings.APP_URL,
        "sender.name": settings.MAIL_FROM_NAME,
        "sender.email": settings.MAIL_FROM_ADDRESS,
        "meta.year": str(now.year),
        "meta.date": format_date(now, locale),
    }


def entity_columns(entity: Any) -> list[str]:
    try:
        mapper = inspect(entity).mapper
    except NoInspectionAvailable:
        return []
    return [attr.key for attr in mapper.column_attrs if attr.key not in HIDDEN_COLUMNS]


class MergeTagEngine:
    """Replaces ``{{ prefix.key }}`` (escaped) and ``{{{ prefix.key }}}`` (raw).

    Lookup order: global tags (``app.*``, ``sender.*``, ``meta.*``), then
    ``action.*`` context variables, then mapped entity columns. Unresolved
    tags are left in place.
    """

    def __init__(self, locale: str | None = None):
        self.locale = locale
        self.globals = global_tags(locale)
        self.context: dict[str, str] = {}
        self.entities: dict[str, Any] = {}

    def reset(self) -> "MergeTagEngine":
        self.globals = global_tags(self.locale)
        self.context = {}
        self.entities = {}
        return self

    def set_entity(self, name: str, entity: Any) -> "MergeTagEngine":
        self.entities[name] = entity
        return self

    def set_entities(self, entities: dict[str, Any]) -> "MergeTagEngine":
        for name, entity in (entities or {}).items():
            self.set_entity(name, entity)
        return self

    def set_context_variable(self, key: str, value: Any) -> "MergeTagEngine":
        self.context[key] = "" if value is None else str(value)
        return self

    def set_context_variables(self, values: dict[str, Any]) -> "MergeTagEngine":
        for key, value in (values or {}).items():
            self.set_context_variable(key, value)
        return self

    def set_global_tag(self, key: str, value: str) -> "MergeTagEngine":
        self.globals[key] = value
        return self

    def resolve(self, content: str | None) -> str:
        text = str(content or "")
        text = RAW_TAG_PATTERN.sub(lambda m: self._resolve_tag(m.group(1), escaped=False), text)
        return ESCAPED_TAG_PATTERN.sub(lambda m: self._resolve_tag(m.group(1), escaped=True), text)

    def _resolve_tag(self, tag: str, escaped: bool) -> str:
        value = self.value_for(tag)
        if value is None:
            return f"{{{{ {tag} }}}}" if escaped else f"{{{{{{ {tag} }}}}}}"
        return str(escape(value)) if escaped else value

    def value_for(self, tag: str) -> str | None:
        prefix, dot, key = tag.partition(".")
        if not dot:
            return None
        if tag in self.globals:
            return self.globals[tag]
        if prefix == CONTEXT_PREFIX:
            return self.context.get(key)
        entity = self.entities.get(prefix)
        if entity is None or key not in entity_columns(entity):
            return None
        return self._format(getattr(entity, key))

    def _format(self, value: Any) -> str:
        if value is None:
            return ""
        if isinstance(value, bool):
            return "1" if value else "0"
        if isinstance(value, datetime):
            return format_datetime(value, self.locale)
        if isinstance(value, date):
            return format_date(value, self.locale)
        return str(value)

    @staticmethod
    def extract_tags(content: str | None) -> list[str]:
        seen: list[str] = []
        for match in EXTRACT_TAG_PATTERN.finditer(str(content or "")):
            if match.group(1) not in seen:
                seen.append(match.group(1))
        return seen

    def is_valid_tag(self, tag: str, entity_types: dict[str, Any], context_keys: Iterable[str] = ()) -> bool:
        """``entity_types`` maps a tag prefix to its model class."""
        prefix, dot, key = tag.partition(".")
        if not dot:
            return False
        if tag in self.globals:
            return True
        if prefix == CONTEXT_PREFIX:
            return key in set(context_keys)
        model = entity_types.get(prefix)
        return model is not None and key in entity_columns(model)

    def validate_tags(self, content: str | None, entity_types: dict[str, Any], context_keys: Iterable[str] = ()) -> list[str]:
        keys = list(context_keys)
        return [t for t in self.extract_tags(content) if not self.is_valid_tag(t, entity_types, keys)]
