from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tenant_admin.db.session import Base
from tenant_admin.models.common import IdMixin, SoftDeleteMixin, TimestampMixin, UuidMixin, utcnow
from tenant_admin.models.role import permission_user, role_user
from tenant_admin.models.team import team_user


class User(Base, IdMixin, UuidMixin, TimestampMixin, SoftDeleteMixin):
    __tablename__ = "users"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    username: Mapped[str | None] = mapped_column(String(100), unique=True, nullable=True, index=True)
    email: Mapped[str | None] = mapped_column(String(200), unique=True, nullable=True)
    pending_email: Mapped[str | None] = mapped_column(String(200), nullable=True)
    pending_email_token: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    pending_email_expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    email_verified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    password_hash: Mapped[str | None] = mapped_column(String(255), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False, index=True)
    last_login_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    frontend_preferences: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    teams = relationship("Team", secondary=team_user, back_populates="users")
    roles = relationship("Role", secondary=role_user, back_populates="users")
    direct_permissions = relationship("Permission", secondary=permission_user)

    def role_names(self) -> set[str]:
        return {r.name for r in self.roles if r.deleted_at is None}

    def has_role(self, name: str) -> bool:
        return name in self.role_names()

    def permission_names(self) -> set[str]:
        names = {p.name for p in self.direct_permissions if p.deleted_at is None}
        for role in self.roles:
            if role.deleted_at is None:
                names |= role.permission_names()
        return names

    def has_permission_to(self, permission: str) -> bool:
        return permission in self.permission_names()

    def belongs_to_team(self, team_uuid: str) -> bool:
        return any(t.uuid == team_uuid and t.deleted_at is None for t in self.teams)

    def is_pending_email_expired(self) -> bool:
        expires_at = self.pending_email_expires_at
        if expires_at is None:
            return True
        if expires_at.tzinfo is None:
            # SQLite hands timestamps back naive; they are stored as UTC.
            return expires_at <= utcnow().replace(tzinfo=None)
        return expires_at <= utcnow()

    def confirm_pending_email(self) -> None:
        self.email = self.pending_email
        self.email_verified_at = utcnow()
        self.pending_email = None
        self.pending_email_token = None
        self.pending_email_expires_at = None
