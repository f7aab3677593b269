from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class ToastType(str, Enum):
    SUCCESS = "success"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    NEUTRAL = "neutral"


class ToastPosition(str, Enum):
    TOP_RIGHT = "top-right"
    TOP_LEFT = "top-left"
    TOP_CENTER = "top-center"
    BOTTOM_RIGHT = "bottom-right"
    BOTTOM_LEFT = "bottom-left"
    BOTTOM_CENTER = "bottom-center"


class ToastAnimation(str, Enum):
    SLIDE = "slide"
    FADE = "fade"
    SCALE = "scale"


TOAST_ICONS: dict[ToastType, str] = {
    ToastType.SUCCESS: "check-circle",
    ToastType.INFO: "information-circle",
    ToastType.WARNING: "exclamation-triangle",
    ToastType.ERROR: "x-circle",
    ToastType.NEUTRAL: "bell",
}


@dataclass(frozen=True)
class ToastPayload:
    """One notification, serialized separately for each sink.

    ``content`` is the rendered text shown in the toast; ``stored_content``
    is what the database row keeps (a translation key stays a key so the
    notification center can render it in the reader's locale).
    """

    title: str
    subtitle: str | None = None
    content: str | None = None
    type: ToastType = ToastType.SUCCESS
    position: ToastPosition = ToastPosition.TOP_RIGHT
    animation: ToastAnimation = ToastAnimation.SLIDE
    link: str | None = None
    icon: str | None = None
    enable_sound: bool = True
    stored_content: Any = None

    def to_broadcast(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "subtitle": self.subtitle,
            "content": self.content,
            "type": self.type.value,
            "position": self.position.value,
            "animation": self.animation.value,
            "link": self.link,
            "icon": self.icon or TOAST_ICONS[self.type],
            "enableSound": self.enable_sound,
        }

    def to_database(self) -> dict[str, Any]:
        stored = self.stored_content
        if isinstance(stored, dict):
            stored = dict(stored)
        return {
            "title": self.title,
            "subtitle": self.subtitle,
            "content": stored if stored is not None else {"type": "string", "content": self.content},
            "type": self.type.value,
            "link": self.link,
        }
