from __future__ import annotations

from typing import Any

from markupsafe import Markup, escape

from tenant_admin.core.i18n import translate

TYPE_STRING = "string"
TYPE_HTML = "html"
TYPE_TRANSLATION = "translation"


class NotificationContent:
    """Body of a notification: plain text, trusted HTML or a translation key."""

    def __init__(self, kind: str, content: Any = None, params: dict[str, Any] | None = None):
        self.kind = kind
        self.content = content
        self.params = dict(params or {})

    @classmethod
    def string(cls, text: str) -> "NotificationContent":
        return cls(TYPE_STRING, str(text))

    @classmethod
    def html(cls, html: str) -> "NotificationContent":
        return cls(TYPE_HTML, Markup(html))

    @classmethod
    def translation(cls, key: str, **params: Any) -> "NotificationContent":
        return cls(TYPE_TRANSLATION, key, params)

    def render(self, locale: str | None = None) -> str:
        if self.content is None:
            return ""
        if self.kind == TYPE_TRANSLATION:
            return translate(self.content, locale, **self.params)
        return str(self.content)

    def to_storable(self) -> dict[str, Any]:
        if self.kind == TYPE_TRANSLATION:
            return {"type": TYPE_TRANSLATION, "key": self.content, "params": dict(self.params)}
        return {"type": self.kind, "content": self.render()}

    @staticmethod
    def from_storable(data: Any, locale: str | None = None) -> str:
        """Render a stored content value. Old rows may hold a bare string."""
        if data is None:
            return ""
        if isinstance(data, str):
            return data
        if not isinstance(data, dict):
            return str(data)
        kind = data.get("type", TYPE_STRING)
        if kind == TYPE_TRANSLATION:
            return translate(str(data.get("key") or ""), locale, **dict(data.get("params") or {}))
        if kind == TYPE_HTML:
            return str(data.get("content") or "")
        return str(escape(str(data.get("content") or "")))
