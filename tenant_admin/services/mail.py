from __future__ import annotations

import logging
import smtplib
from dataclasses import dataclass
from email.message import EmailMessage
from email.utils import formataddr
from typing import Any

import httpx

from tenant_admin.core.config import settings


class EmailDeliveryError(Exception):
    pass


logger = logging.getLogger("tenant_admin.mail")

_MOCK_PROVIDERS = {"", "dummy", "mock", "console"}


@dataclass(frozen=True)
class MailMessage:
    to: str
    subject: str
    html: str | None = None
    text: str | None = None


def _normalize_email(value: str | None) -> str:
    return str(value or "").strip().lower()


def _sender() -> str:
    address = str(settings.MAIL_FROM_ADDRESS or "").strip()
    name = str(settings.MAIL_FROM_NAME or "").strip()
    return formataddr((name, address)) if name else address


def _mock_send(message: MailMessage) -> dict[str, Any]:
    logger.warning("[MAIL MOCK] to=%s subject=%s", message.to, message.subject)
    return {
        "provider": "mock_email",
        "status": "accepted",
        "sent": False,
        "mocked": True,
    }


def _send_smtp(message: MailMessage) -> dict[str, Any]:
    host = str(settings.SMTP_HOST or "").strip()
    port = int(settings.SMTP_PORT or 0)
    username = str(settings.SMTP_USER or "").strip()
    password = str(settings.SMTP_PASSWORD or "").strip()
    use_tls = bool(settings.SMTP_USE_TLS)
    use_ssl = bool(settings.SMTP_USE_SSL)

    if not host or not port or not settings.MAIL_FROM_ADDRESS:
        raise EmailDeliveryError("SMTP_HOST, SMTP_PORT and MAIL_FROM_ADDRESS must be set")
    if use_tls and use_ssl:
        raise EmailDeliveryError("SMTP_USE_TLS and SMTP_USE_SSL cannot both be enabled")

    msg = EmailMessage()
    msg["From"] = _sender()
    msg["To"] = message.to
    msg["Subject"] = message.subject
    msg.set_content(message.text or "")
    if message.html:
        msg.add_alternative(message.html, subtype="html")

    try:
        if use_ssl:
            smtp = smtplib.SMTP_SSL(host=host, port=port, timeout=15)
        else:
            smtp = smtplib.SMTP(host=host, port=port, timeout=15)
        with smtp as client:
            client.ehlo()
            if use_tls:
                client.starttls()
                client.ehlo()
            if username:
                client.login(username, password)
            client.send_message(msg)
    except (smtplib.SMTPException, OSError) as exc:
        raise EmailDeliveryError(f"SMTP delivery failed: {exc}") from exc

    return {"provider": "smtp", "status": "accepted", "sent": True}


def _send_via_relay(message: MailMessage) -> dict[str, Any]:
    base_url = str(settings.EMAIL_RELAY_URL or "").strip().rstrip("/")
    token = str(settings.INTERNAL_SERVICE_TOKEN or "").strip()
    if not base_url:
        raise EmailDeliveryError("EMAIL_RELAY_URL is not set")
    if not token:
        raise EmailDeliveryError("INTERNAL_SERVICE_TOKEN is not set")
    try:
        with httpx.Client(timeout=15.0) as client:
            response = client.post(
                f"{base_url}/internal/send",
                headers={"X-Internal-Token": token, "Content-Type": "application/json"},
                json={
                    "from": _sender(),
                    "to": message.to,
                    "subject": message.subject,
                    "html": message.html,
                    "text": message.text,
                },
            )
    except httpx.HTTPError as exc:
        raise EmailDeliveryError(f"Mail relay unreachable: {exc}") from exc
    payload: dict[str, Any] = {}
    try:
        payload = response.json() if response.content else {}
    except ValueError:
        payload = {}
    if response.status_code >= 400:
        detail = str(payload.get("detail") or payload.get("error") or response.text or response.status_code)
        raise EmailDeliveryError(f"Mail relay error: {detail}")
    return {"provider": "relay", "status": "accepted", "sent": True, "response": payload}


def send_mail(message: MailMessage) -> dict[str, Any]:
    to = _normalize_email(message.to)
    if not to or "@" not in to:
        raise EmailDeliveryError("Invalid recipient address")
    message = MailMessage(to=to, subject=message.subject, html=message.html, text=message.text)

    provider = str(settings.EMAIL_PROVIDER or "dummy").strip().lower()
    if provider in _MOCK_PROVIDERS:
        return _mock_send(message)
    if provider == "smtp":
        return _send_smtp(message)
    if provider == "relay":
        return _send_via_relay(message)
    raise EmailDeliveryError(f"Unknown EMAIL_PROVIDER: {provider}")


def email_provider_health() -> dict[str, Any]:
    provider = str(settings.EMAIL_PROVIDER or "dummy").strip().lower()
    if provider in _MOCK_PROVIDERS:
        return {"provider": "dummy", "status": "ok", "mode": "mock", "can_send": True, "issues": []}

    if provider == "relay":
        base_url = str(settings.EMAIL_RELAY_URL or "").strip().rstrip("/")
        issues: list[str] = []
        if not base_url:
            issues.append("EMAIL_RELAY_URL is not set")
        if not str(settings.INTERNAL_SERVICE_TOKEN or "").strip():
            issues.append("INTERNAL_SERVICE_TOKEN is not set")
        can_send = not issues
        if can_send:
            try:
                with httpx.Client(timeout=5.0) as client:
                    response = client.get(f"{base_url}/health")
                if response.status_code >= 400:
                    can_send = False
                    issues.append(f"mail relay unavailable: HTTP {response.status_code}")
            except httpx.HTTPError as exc:
                can_send = False
                issues.append(f"mail relay unavailable: {exc}")
        return {
            "provider": "relay",
            "status": "ok" if can_send else "degraded",
            "mode": "relay",
            "can_send": can_send,
            "issues": issues,
        }

    if provider == "smtp":
        issues = []
        if not str(settings.SMTP_HOST or "").strip():
            issues.append("SMTP_HOST is not set")
        if not str(settings.MAIL_FROM_ADDRESS or "").strip():
            issues.append("MAIL_FROM_ADDRESS is not set")
        return {
            "provider": "smtp",
            "status": "degraded" if issues else "ok",
            "mode": "real",
            "can_send": not issues,
            "issues": issues,
        }

    return {
        "provider": provider,
        "status": "error",
        "mode": "unknown",
        "can_send": False,
        "issues": [f"Unknown EMAIL_PROVIDER: {provider}"],
    }
