from __future__ import annotations

import logging
from datetime import timedelta
from enum import Enum

from fastapi import HTTPException
from jinja2 import Environment, StrictUndefined
from sqlalchemy import func
from sqlalchemy.orm import Session

from tenant_admin.core.config import settings
from tenant_admin.core.i18n import translate
from tenant_admin.core.security import generate_token, hash_token
from tenant_admin.models.common import utcnow
from tenant_admin.models.user import User
from tenant_admin.services.mail import MailMessage, send_mail

_LOG = logging.getLogger("tenant_admin.email_change")

_env = Environment(autoescape=True, undefined=StrictUndefined)

VERIFICATION_HTML = _env.from_string(
    """<p>{{ greeting }}</p>
<p>{{ intro }}</p>
<p><a href="{{ url }}">{{ button }}</a></p>
<p>{{ expires }}</p>
<p>{{ footer }}</p>"""
)

VERIFICATION_TEXT = """{greeting}

{intro}

{button}: {url}

{expires}

{footer}
"""


class VerificationResult(str, Enum):
    INVALID = "invalid"
    EXPIRED = "expired"
    SUCCESS = "success"


def _normalize_email(value: str | None) -> str:
    return str(value or "").strip().lower()


def verification_url(token: str) -> str:
    return f"{settings.APP_URL.rstrip('/')}/email/verify/{token}"


def build_verification_mail(user: User, token: str, locale: str | None = None) -> MailMessage:
    days = max(1, settings.EMAIL_CHANGE_TTL_HOURS // 24)
    parts = {
        "greeting": translate("emails.email_change_verification.greeting", locale, name=user.name),
        "intro": translate("emails.email_change_verification.intro", locale),
        "button": translate("emails.email_change_verification.button", locale),
        "expires": translate("emails.email_change_verification.expires", locale, days=days),
        "footer": translate("emails.email_change_verification.footer", locale),
        "url": verification_url(token),
    }
    return MailMessage(
        to=user.pending_email or "",
        subject=translate("emails.email_change_verification.subject", locale, app=settings.APP_NAME),
        html=VERIFICATION_HTML.render(**parts),
        text=VERIFICATION_TEXT.format(**parts),
    )


def start_email_change(db: Session, user: User, new_email: str, locale: str | None = None) -> str:
    """Park ``new_email`` as pending and mail a verification link to it.

    Only the sha256 of the token is stored. Returns the raw token.
    """
    email = _normalize_email(new_email)
    if not email or "@" not in email:
        raise HTTPException(status_code=400, detail="Invalid email address")
    if email == _normalize_email(user.email):
        raise HTTPException(status_code=400, detail="This is already your email address")
    taken = (
        db.query(User.id)
        .filter(func.lower(User.email) == email, User.id != user.id, User.deleted_at.is_(None))
        .first()
    )
    if taken:
        raise HTTPException(status_code=400, detail="This email address is already in use")

    token = generate_token()
    user.pending_email = email
    user.pending_email_token = hash_token(token)
    user.pending_email_expires_at = utcnow() + timedelta(hours=settings.EMAIL_CHANGE_TTL_HOURS)
    db.commit()

    send_mail(build_verification_mail(user, token, locale))
    _LOG.info("email change requested for user %s", user.id)
    return token


def verify_email_change(db: Session, token: str) -> VerificationResult:
    hashed = hash_token(str(token or ""))
    user = db.query(User).filter(User.pending_email_token == hashed).first()
    if user is None:
        return VerificationResult.INVALID
    if user.is_pending_email_expired():
        return VerificationResult.EXPIRED
    user.confirm_pending_email()
    db.commit()
    _LOG.info("email change confirmed for user %s", user.id)
    return VerificationResult.SUCCESS
