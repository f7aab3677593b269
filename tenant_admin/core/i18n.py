from __future__ import annotations

import logging
from datetime import date, datetime, timezone, tzinfo
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from tenant_admin.core.config import settings

_LOG = logging.getLogger("tenant_admin.i18n")

FALLBACK_LOCALE = "en_US"

SUPPORTED_LOCALES: dict[str, dict[str, Any]] = {
    "en_US": {
        "native_name": "English (US)",
        "english_name": "English (United States)",
        "direction": "ltr",
        "date_format": "%m/%d/%Y",
        "datetime_format": "%m/%d/%Y %H:%M:%S",
        "time_format": "%H:%M:%S",
        "currency": {
            "code": "USD",
            "symbol": "$",
            "precision": 2,
            "symbol_position": "before",
            "decimal_separator": ".",
            "thousands_separator": ",",
        },
    },
    "fr_FR": {
        "native_name": "Français",
        "english_name": "French (France)",
        "direction": "ltr",
        "date_format": "%d/%m/%Y",
        "datetime_format": "%d/%m/%Y %H:%M:%S",
        "time_format": "%H:%M:%S",
        "currency": {
            "code": "EUR",
            "symbol": "€",
            "precision": 2,
            "symbol_position": "after",
            "decimal_separator": ",",
            "thousands_separator": " ",
        },
    },
}

TRANSLATIONS: dict[str, dict[str, str]] = {
    "en_US": {
        "preferences.invalid_theme": "Invalid theme selected.",
        "preferences.theme_updated": "Theme updated successfully.",
        "preferences.invalid_locale": "Invalid locale selected.",
        "preferences.locale_updated": "Language updated successfully.",
        "email_verification.error_title": "Error",
        "email_verification.invalid": "Invalid email verification link.",
        "email_verification.expired": "This email verification link has expired.",
        "email_verification.success_title": "Success",
        "email_verification.success": "Your email has been successfully updated.",
        "emails.email_change_verification.subject": "Verify your new email address - :app",
        "emails.email_change_verification.greeting": "Hello :name,",
        "emails.email_change_verification.intro": (
            "You requested to change your email address. To confirm this change, please verify your new email address."
        ),
        "emails.email_change_verification.button": "Verify Email Change",
        "emails.email_change_verification.expires": "This link will expire in :days days.",
        "emails.email_change_verification.footer": "If you did not request this change, you can safely ignore this email.",
        "notifications.load_more": "Load more (:count remaining)",
        "dashboard.users_per_month": "New users",
        "dashboard.users_status": "Users by status",
        "dashboard.active": "Active",
        "dashboard.inactive": "Inactive",
        "dashboard.total_users": "Total users",
        "dashboard.active_users": "Active users",
        "dashboard.teams": "Teams",
        "dashboard.unread_notifications": "Unread notifications",
        "datatable.filters.any": "Any",
        "datatable.filters.yes": "Yes",
        "datatable.filters.no": "No",
        "datatable.filters.from": "From",
        "datatable.filters.to": "To",
    },
    "fr_FR": {
        "preferences.invalid_theme": "Thème sélectionné invalide.",
        "preferences.theme_updated": "Thème mis à jour avec succès.",
        "preferences.invalid_locale": "Paramètre régional sélectionné invalide.",
        "preferences.locale_updated": "Langue mise à jour avec succès.",
        "email_verification.error_title": "Erreur",
        "email_verification.invalid": "Lien de vérification d'email invalide.",
        "email_verification.expired": "Ce lien de vérification d'email a expiré.",
        "email_verification.success_title": "Succès",
        "email_verification.success": "Votre adresse email a bien été mise à jour.",
        "emails.email_change_verification.subject": "Vérifiez votre nouvelle adresse email - :app",
        "emails.email_change_verification.greeting": "Bonjour :name,",
        "emails.email_change_verification.intro": (
            "Vous avez demandé à changer votre adresse email. Pour confirmer ce changement, "
            "veuillez vérifier votre nouvelle adresse."
        ),
        "emails.email_change_verification.button": "Vérifier le changement d'email",
        "emails.email_change_verification.expires": "Ce lien expirera dans :days jours.",
        "emails.email_change_verification.footer": (
            "Si vous n'avez pas demandé ce changement, vous pouvez ignorer cet e-mail."
        ),
        "notifications.load_more": "Afficher plus (:count restantes)",
        "dashboard.users_per_month": "Nouveaux utilisateurs",
        "dashboard.users_status": "Utilisateurs par statut",
        "dashboard.active": "Actifs",
        "dashboard.inactive": "Inactifs",
        "dashboard.total_users": "Utilisateurs",
        "dashboard.active_users": "Utilisateurs actifs",
        "dashboard.teams": "Équipes",
        "dashboard.unread_notifications": "Notifications non lues",
        "datatable.filters.any": "Tous",
        "datatable.filters.yes": "Oui",
        "datatable.filters.no": "Non",
        "datatable.filters.from": "Du",
        "datatable.filters.to": "Au",
    },
}


def is_supported_locale(locale: str | None) -> bool:
    return str(locale or "") in SUPPORTED_LOCALES


def valid_locale(locale: str | None) -> str:
    if is_supported_locale(locale):
        return str(locale)
    if is_supported_locale(settings.DEFAULT_LOCALE):
        return settings.DEFAULT_LOCALE
    return FALLBACK_LOCALE


def locale_metadata(locale: str | None) -> dict[str, Any]:
    return SUPPORTED_LOCALES[valid_locale(locale)]


def translate(key: str, locale: str | None = None, **params: Any) -> str:
    """Look up ``key`` for ``locale`` (falling back to en_US, then the key itself)
    and substitute ``:name`` placeholders, longest names first."""
    resolved = valid_locale(locale)
    text = TRANSLATIONS.get(resolved, {}).get(key)
    if text is None:
        text = TRANSLATIONS[FALLBACK_LOCALE].get(key, key)
    for name in sorted(params, key=len, reverse=True):
        text = text.replace(f":{name}", str(params[name]))
    return text


def resolve_timezone(name: str | None) -> tzinfo:
    value = str(name or settings.DEFAULT_TIMEZONE or "UTC").strip()
    if value.upper() == "UTC":
        return timezone.utc
    try:
        return ZoneInfo(value)
    except (ZoneInfoNotFoundError, ValueError):
        _LOG.warning("unknown timezone %r, falling back to UTC", value)
        return timezone.utc


def _to_datetime(value) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    try:
        return datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
    except ValueError:
        return None


def format_date(value, locale: str | None = None, fmt: str | None = None, tz: str | None = None) -> str:
    """Calendar date of ``value``. With ``tz``, instants are shifted to that zone first;
    plain dates are never shifted."""
    parsed = _to_datetime(value)
    if parsed is None:
        return ""
    is_instant = isinstance(value, datetime) or (isinstance(value, str) and len(value.strip()) > 10)
    if tz and is_instant:
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        parsed = parsed.astimezone(resolve_timezone(tz))
    pattern = fmt or locale_metadata(locale)["date_format"]
    return parsed.strftime(pattern)


def format_datetime(value, locale: str | None = None, tz: str | None = None, fmt: str | None = None) -> str:
    parsed = _to_datetime(value)
    if parsed is None:
        return ""
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    parsed = parsed.astimezone(resolve_timezone(tz))
    pattern = fmt or locale_metadata(locale)["datetime_format"]
    return parsed.strftime(pattern)


def format_number(
    value,
    decimals: int = 0,
    decimal_separator: str = ".",
    thousands_separator: str = ",",
) -> str:
    if value is None or value == "":
        return ""
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return str(value)
    quantum = Decimal(1).scaleb(-int(decimals)) if decimals > 0 else Decimal(1)
    amount = amount.quantize(quantum, rounding=ROUND_HALF_UP)
    sign = "-" if amount < 0 else ""
    whole, _, fraction = f"{abs(amount):f}".partition(".")
    groups = []
    while len(whole) > 3:
        groups.insert(0, whole[-3:])
        whole = whole[:-3]
    groups.insert(0, whole)
    text = thousands_separator.join(groups)
    if decimals > 0:
        text = f"{text}{decimal_separator}{fraction.ljust(decimals, '0')[:decimals]}"
    return sign + text


def format_locale_number(value, locale: str | None = None, decimals: int = 0) -> str:
    currency = locale_metadata(locale)["currency"]
    return format_number(value, decimals, currency["decimal_separator"], currency["thousands_separator"])


def format_currency(
    value,
    locale: str | None = None,
    currency_code: str | None = None,
    decimals: int | None = None,
    decimal_separator: str | None = None,
    thousands_separator: str | None = None,
) -> str:
    if value is None or value == "":
        return ""
    config = dict(locale_metadata(locale)["currency"])
    if currency_code and currency_code != config["code"]:
        match = next(
            (meta["currency"] for meta in SUPPORTED_LOCALES.values() if meta["currency"]["code"] == currency_code),
            None,
        )
        if match is not None:
            config["symbol"] = match["symbol"]
        else:
            config["symbol"] = currency_code
        config["code"] = currency_code
    precision = config["precision"] if decimals is None else decimals
    amount = format_number(
        value,
        int(precision),
        config["decimal_separator"] if decimal_separator is None else decimal_separator,
        config["thousands_separator"] if thousands_separator is None else thousands_separator,
    )
    if config["symbol_position"] == "after":
        return f"{amount} {config['symbol']}"
    return f"{config['symbol']}{amount}"
