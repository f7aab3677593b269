from sqlalchemy import Column, ForeignKey, Integer, String, Table, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tenant_admin.db.session import Base
from tenant_admin.models.common import IdMixin, SoftDeleteMixin, TimestampMixin, UuidMixin

role_user = Table(
    "role_user",
    Base.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("role_id", ForeignKey("roles.id", ondelete="CASCADE"), nullable=False, index=True),
    Column("user_id", ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True),
    UniqueConstraint("role_id", "user_id", name="uq_role_user"),
)

permission_role = Table(
    "permission_role",
    Base.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("permission_id", ForeignKey("permissions.id", ondelete="CASCADE"), nullable=False, index=True),
    Column("role_id", ForeignKey("roles.id", ondelete="CASCADE"), nullable=False, index=True),
    UniqueConstraint("permission_id", "role_id", name="uq_permission_role"),
)

permission_user = Table(
    "permission_user",
    Base.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("permission_id", ForeignKey("permissions.id", ondelete="CASCADE"), nullable=False, index=True),
    Column("user_id", ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True),
    UniqueConstraint("permission_id", "user_id", name="uq_permission_user"),
)


class Permission(Base, IdMixin, UuidMixin, TimestampMixin, SoftDeleteMixin):
    __tablename__ = "permissions"

    name: Mapped[str] = mapped_column(String(150), unique=True, nullable=False)
    display_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    roles = relationship("Role", secondary=permission_role, back_populates="permissions")


class Role(Base, IdMixin, UuidMixin, TimestampMixin, SoftDeleteMixin):
    __tablename__ = "roles"

    name: Mapped[str] = mapped_column(String(150), unique=True, nullable=False)
    display_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    permissions = relationship("Permission", secondary=permission_role, back_populates="roles")
    users = relationship("User", secondary=role_user, back_populates="roles")

    def label(self) -> str:
        return str(self.display_name or "").strip() or self.name

    def permission_names(self) -> set[str]:
        return {p.name for p in self.permissions if p.deleted_at is None}
