from __future__ import annotations

import base64
import json
from datetime import timedelta

from fastapi import Request, Response
from jose import JWTError

from tenant_admin.core.config import settings
from tenant_admin.core.security import create_jwt, decode_jwt

FLASH_TTL_SECONDS = 60
_FLASH_PURPOSE = "flash"


def encode_cookie_value(data: dict) -> str:
    # unpadded so the cookie value never needs quoting
    raw = json.dumps(data, ensure_ascii=False, separators=(",", ":")).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def decode_cookie_value(value: str | None) -> dict:
    text = str(value or "").strip().strip('"')
    if not text:
        return {}
    try:
        raw = base64.urlsafe_b64decode((text + "=" * (-len(text) % 4)).encode("ascii"))
        data = json.loads(raw.decode("utf-8"))
    except (ValueError, UnicodeDecodeError):
        return {}
    return data if isinstance(data, dict) else {}


def sign_flash(data: dict) -> str:
    return create_jwt(
        {"purpose": _FLASH_PURPOSE, "data": data},
        settings.JWT_SECRET,
        timedelta(seconds=FLASH_TTL_SECONDS),
    )


def unsign_flash(value: str | None) -> dict:
    """Payload of a flash cookie, or {} when it is missing, expired or not ours."""
    token = str(value or "").strip().strip('"')
    if not token:
        return {}
    try:
        claims = decode_jwt(token, settings.JWT_SECRET)
    except JWTError:
        return {}
    if claims.get("purpose") != _FLASH_PURPOSE:
        return {}
    data = claims.get("data")
    return data if isinstance(data, dict) else {}


def flash(response: Response, **data) -> None:
    """Attach data to the next request only."""
    response.set_cookie(
        settings.FLASH_COOKIE_NAME,
        sign_flash(data),
        max_age=FLASH_TTL_SECONDS,
        httponly=True,
        samesite="lax",
    )


def flash_errors(response: Response, errors: dict[str, str]) -> None:
    """Form errors keyed by form field."""
    flash(response, errors=errors)


def flash_status(response: Response, message: str) -> None:
    flash(response, status=message)


def read_flash(request: Request) -> dict:
    return unsign_flash(request.cookies.get(settings.FLASH_COOKIE_NAME))


def clear_flash(response: Response) -> None:
    response.delete_cookie(settings.FLASH_COOKIE_NAME)
