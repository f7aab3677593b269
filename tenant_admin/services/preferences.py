from __future__ import annotations

import logging
from typing import Any, Protocol
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from fastapi import Request, Response
from sqlalchemy.orm import Session

from tenant_admin.core.config import settings
from tenant_admin.core.flash import decode_cookie_value, encode_cookie_value
from tenant_admin.core.i18n import SUPPORTED_LOCALES, is_supported_locale, valid_locale
from tenant_admin.models.common import utcnow
from tenant_admin.models.user import User

_LOG = logging.getLogger("tenant_admin.preferences")

KEY_LOCALE = "locale"
KEY_THEME = "theme"
KEY_TIMEZONE = "timezone"

PREFERRED_THEME_COOKIE = "_preferred_theme"
PREFERENCES_COOKIE_MAX_AGE = 60 * 60 * 24 * 365


def default_preferences() -> dict[str, Any]:
    return {
        KEY_LOCALE: valid_locale(settings.DEFAULT_LOCALE),
        KEY_THEME: settings.DEFAULT_THEME,
        KEY_TIMEZONE: settings.DEFAULT_TIMEZONE,
    }


def is_valid_theme(theme: str | None) -> bool:
    return str(theme or "") in settings.themes_list


def is_valid_timezone(name: str | None) -> bool:
    value = str(name or "").strip()
    if not value:
        return False
    if value.upper() == "UTC":
        return True
    try:
        ZoneInfo(value)
    except (ZoneInfoNotFoundError, ValueError):
        return False
    return True


def detect_locale(accept_language: str | None) -> str | None:
    """Best supported locale from an Accept-Language header (q-ordered)."""
    candidates: list[tuple[float, int, str]] = []
    for index, part in enumerate(str(accept_language or "").split(",")):
        part = part.strip()
        if not part:
            continue
        lang, _, params = part.partition(";")
        quality = 1.0
        params = params.strip()
        if params.startswith("q="):
            try:
                quality = float(params[2:])
            except ValueError:
                quality = 0.0
        candidates.append((-quality, index, lang.strip().replace("-", "_")))

    for _, _, lang in sorted(candidates):
        if is_supported_locale(lang):
            return lang
        prefix = lang.split("_", 1)[0].lower()
        for locale in SUPPORTED_LOCALES:
            if locale.split("_", 1)[0].lower() == prefix:
                return locale
    return None


class PreferencesStore(Protocol):
    def all(self) -> dict[str, Any]:
        ...

    def set_many(self, values: dict[str, Any]) -> None:
        ...


class UserJsonPreferencesStore:
    def __init__(self, db: Session, user: User):
        self.db = db
        self.user = user

    def all(self) -> dict[str, Any]:
        return dict(self.user.frontend_preferences or {})

    def set_many(self, values: dict[str, Any]) -> None:
        # reassign so the JSON column is flagged dirty
        self.user.frontend_preferences = {**self.all(), **values}
        self.db.commit()


class CookiePreferencesStore:
    """Guest preferences. Changes are staged until ``write(response)``."""

    def __init__(self, request: Request | None):
        raw = request.cookies.get(settings.PREFERENCES_COOKIE_NAME) if request is not None else None
        self._values = decode_cookie_value(raw)
        self.dirty = False

    def all(self) -> dict[str, Any]:
        return dict(self._values)

    def set_many(self, values: dict[str, Any]) -> None:
        self._values.update(values)
        self.dirty = True

    def write(self, response: Response) -> None:
        response.set_cookie(
            settings.PREFERENCES_COOKIE_NAME,
            encode_cookie_value(self._values),
            max_age=PREFERENCES_COOKIE_MAX_AGE,
            httponly=True,
            samesite="lax",
        )


class FrontendPreferencesService:
    def __init__(self, request: Request | None, db: Session | None = None, user: User | None = None):
        self.request = request
        self.cookie_store = CookiePreferencesStore(request)
        if user is not None and db is not None:
            self.store: PreferencesStore = UserJsonPreferencesStore(db, user)
        else:
            self.store = self.cookie_store

    def _detect(self) -> dict[str, Any]:
        if self.request is None:
            return {}
        detected: dict[str, Any] = {}
        locale = detect_locale(self.request.headers.get("accept-language"))
        if locale:
            detected[KEY_LOCALE] = locale
        theme = self.request.cookies.get(PREFERRED_THEME_COOKIE)
        if is_valid_theme(theme):
            detected[KEY_THEME] = theme
        return detected

    def all(self) -> dict[str, Any]:
        stored = self.store.all()
        if not stored:
            return {**default_preferences(), **self._detect()}
        return {**default_preferences(), **stored}

    def get(self, key: str, default: Any = None) -> Any:
        return self.all().get(key, default)

    def set_many(self, values: dict[str, Any]) -> None:
        self.store.set_many(values)

    def set(self, key: str, value: Any) -> None:
        self.set_many({key: value})

    def get_locale(self) -> str:
        return valid_locale(self.get(KEY_LOCALE))

    def set_locale(self, locale: str) -> None:
        self.set(KEY_LOCALE, valid_locale(locale))

    def get_theme(self) -> str:
        theme = self.get(KEY_THEME)
        return theme if is_valid_theme(theme) else settings.DEFAULT_THEME

    def set_theme(self, theme: str) -> None:
        self.set(KEY_THEME, theme if is_valid_theme(theme) else settings.DEFAULT_THEME)

    def get_timezone(self) -> str:
        tz = self.get(KEY_TIMEZONE)
        return tz if is_valid_timezone(tz) else settings.DEFAULT_TIMEZONE

    def set_timezone(self, tz: str) -> None:
        self.set(KEY_TIMEZONE, tz if is_valid_timezone(tz) else settings.DEFAULT_TIMEZONE)

    def write(self, response: Response) -> None:
        if self.cookie_store.dirty:
            self.cookie_store.write(response)


def sync_user_preferences(db: Session, user: User, request: Request | None, response: Response) -> dict[str, Any]:
    """Run on login: the user's saved values win, guest choices fill the gaps.

    The merged preferences are saved on the user and mirrored into the
    preferences cookie.
    """
    guest = CookiePreferencesStore(request).all()
    saved = dict(user.frontend_preferences or {})
    merged = {**default_preferences(), **guest, **saved}
    merged[KEY_LOCALE] = valid_locale(merged.get(KEY_LOCALE))
    if not is_valid_theme(merged.get(KEY_THEME)):
        merged[KEY_THEME] = settings.DEFAULT_THEME
    if not is_valid_timezone(merged.get(KEY_TIMEZONE)):
        merged[KEY_TIMEZONE] = settings.DEFAULT_TIMEZONE

    user.frontend_preferences = merged
    user.last_login_at = utcnow()
    db.commit()

    cookie = CookiePreferencesStore(None)
    cookie.set_many(merged)
    cookie.write(response)
    _LOG.debug("preferences synced for user %s", user.id)
    return merged


def request_locale(request: Request | None, user: User | None = None) -> str:
    if user is not None and (user.frontend_preferences or {}).get(KEY_LOCALE):
        return valid_locale(user.frontend_preferences[KEY_LOCALE])
    return FrontendPreferencesService(request).get_locale()


def request_timezone(request: Request | None, user: User | None = None) -> str:
    if user is not None:
        tz = (user.frontend_preferences or {}).get(KEY_TIMEZONE)
        if is_valid_timezone(tz):
            return tz
    return FrontendPreferencesService(request).get_timezone()
