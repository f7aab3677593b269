from __future__ import annotations

import logging
from urllib.parse import urlsplit

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy.orm import Session

from tenant_admin.core.deps import get_optional_user, get_session_id
from tenant_admin.core.flash import clear_flash, flash_errors, flash_status, read_flash
from tenant_admin.core.i18n import is_supported_locale, translate
from tenant_admin.db.session import get_db
from tenant_admin.models.user import User
from tenant_admin.services.email_change import VerificationResult, verify_email_change
from tenant_admin.services.notifications.builder import NotificationBuilder
from tenant_admin.services.preferences import FrontendPreferencesService, is_valid_theme

_LOG = logging.getLogger("tenant_admin.web")

router = APIRouter()


def _back_url(request: Request) -> str:
    """Referer when it points at this host, otherwise the home page."""
    referer = str(request.headers.get("referer") or "").strip()
    if not referer:
        return "/"
    parts = urlsplit(referer)
    if parts.netloc and parts.netloc != request.url.netloc:
        return "/"
    path = parts.path or "/"
    if not path.startswith("/") or path.startswith("//"):
        return "/"
    return f"{path}?{parts.query}" if parts.query else path


@router.post("/preferences/theme")
def update_theme(
    request: Request,
    theme: str = Form(default=""),
    db: Session = Depends(get_db),
    user: User | None = Depends(get_optional_user),
):
    prefs = FrontendPreferencesService(request, db, user)
    locale = prefs.get_locale()
    response = RedirectResponse(_back_url(request), status_code=303)
    value = theme.strip()
    if not is_valid_theme(value):
        flash_errors(response, {"theme": translate("preferences.invalid_theme", locale)})
        return response
    prefs.set_theme(value)
    prefs.write(response)
    flash_status(response, translate("preferences.theme_updated", locale))
    return response


@router.post("/preferences/locale")
def update_locale(
    request: Request,
    locale: str = Form(default=""),
    db: Session = Depends(get_db),
    user: User | None = Depends(get_optional_user),
):
    prefs = FrontendPreferencesService(request, db, user)
    response = RedirectResponse(_back_url(request), status_code=303)
    value = locale.strip()
    if not is_supported_locale(value):
        flash_errors(response, {"locale": translate("preferences.invalid_locale", prefs.get_locale())})
        return response
    prefs.set_locale(value)
    prefs.write(response)
    # confirm in the newly chosen language
    flash_status(response, translate("preferences.locale_updated", value))
    return response


@router.get("/email/verify/{token}")
def verify_email(token: str, request: Request, db: Session = Depends(get_db)):
    locale = FrontendPreferencesService(request).get_locale()
    result = verify_email_change(db, token)

    builder = NotificationBuilder.make().to_session(get_session_id(request))
    if result is VerificationResult.SUCCESS:
        builder.title(translate("email_verification.success_title", locale)).success()
        builder.content(translate("email_verification.success", locale))
    else:
        builder.title(translate("email_verification.error_title", locale)).error()
        builder.content(translate(f"email_verification.{result.value}", locale))
    builder.send(db, locale=locale)
    _LOG.info("email verification outcome=%s", result.value)
    return RedirectResponse("/login", status_code=303)


@router.get("/flash")
def pop_flash(request: Request):
    response = JSONResponse(read_flash(request))
    clear_flash(response)
    return response
