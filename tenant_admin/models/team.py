from sqlalchemy import Column, ForeignKey, Integer, String, Table, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tenant_admin.db.session import Base
from tenant_admin.models.common import IdMixin, SoftDeleteMixin, TimestampMixin, UuidMixin

team_user = Table(
    "team_user",
    Base.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("team_id", ForeignKey("teams.id", ondelete="CASCADE"), nullable=False, index=True),
    Column("user_id", ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True),
    UniqueConstraint("team_id", "user_id", name="uq_team_user"),
)


class Team(Base, IdMixin, UuidMixin, TimestampMixin, SoftDeleteMixin):
    __tablename__ = "teams"

    name: Mapped[str] = mapped_column(String(200), unique=True, nullable=False)
    display_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    users = relationship("User", secondary=team_user, back_populates="teams")

    def label(self) -> str:
        return str(self.display_name or "").strip() or self.name
