from __future__ import annotations

import logging

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from tenant_admin.auth.permissions import all_permission_names
from tenant_admin.core.config import settings
from tenant_admin.core.security import hash_password, verify_password
from tenant_admin.models.common import utcnow
from tenant_admin.models.role import Permission, Role
from tenant_admin.models.user import User

_LOG = logging.getLogger("tenant_admin.bootstrap")


def normalize_email(raw: str | None) -> str:
    return str(raw or "").strip().lower()


def get_active_user_by_login(db: Session, login: str) -> User | None:
    """Look a user up by email or username."""
    normalized = normalize_email(login)
    if not normalized:
        return None
    return (
        db.query(User)
        .filter(
            (func.lower(User.email) == normalized) | (func.lower(User.username) == normalized),
            User.is_active.is_(True),
            User.deleted_at.is_(None),
        )
        .first()
    )


def seed_permissions(db: Session) -> Role:
    """Create every matrix permission and the super admin role holding them all."""
    existing = {p.name: p for p in db.query(Permission).all()}
    for name in all_permission_names():
        if name not in existing:
            existing[name] = Permission(name=name, display_name=name.capitalize())
            db.add(existing[name])

    role = db.query(Role).filter(Role.name == settings.SUPER_ADMIN_ROLE).first()
    if role is None:
        role = Role(name=settings.SUPER_ADMIN_ROLE, display_name="Super Admin")
        db.add(role)
    role.deleted_at = None
    role.permissions = [p for p in existing.values() if p.deleted_at is None]
    db.flush()
    return role


def ensure_bootstrap_admin_for_login(db: Session, email: str, password: str) -> User | None:
    if not settings.BOOTSTRAP_ADMIN_ENABLED:
        return None

    normalized_email = normalize_email(email)
    bootstrap_email = normalize_email(settings.BOOTSTRAP_ADMIN_EMAIL)
    if normalized_email != bootstrap_email:
        return None
    if str(password or "") != str(settings.BOOTSTRAP_ADMIN_PASSWORD or ""):
        return None

    role = seed_permissions(db)
    user = db.query(User).filter(func.lower(User.email) == bootstrap_email).first()
    if user is None:
        user = User(
            name=str(settings.BOOTSTRAP_ADMIN_NAME or "Super Admin"),
            email=bootstrap_email,
            email_verified_at=utcnow(),
            password_hash=hash_password(str(settings.BOOTSTRAP_ADMIN_PASSWORD or "")),
            is_active=True,
        )
        db.add(user)
        _LOG.info("bootstrap admin created: %s", bootstrap_email)
    else:
        user.is_active = True
        user.deleted_at = None
        if not str(user.name or "").strip():
            user.name = str(settings.BOOTSTRAP_ADMIN_NAME or "Super Admin")
        if not verify_password(str(settings.BOOTSTRAP_ADMIN_PASSWORD or ""), str(user.password_hash or "")):
            user.password_hash = hash_password(str(settings.BOOTSTRAP_ADMIN_PASSWORD or ""))
    if role not in user.roles:
        user.roles.append(role)

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        return get_active_user_by_login(db, bootstrap_email)
    db.refresh(user)
    return user
