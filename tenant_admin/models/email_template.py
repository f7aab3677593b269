from sqlalchemy import Boolean, Column, ForeignKey, Integer, String, Table, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, object_session, relationship

from tenant_admin.db.session import Base
from tenant_admin.models.common import IdMixin, TimestampMixin, UuidMixin

KIND_CONTENT = "content"
KIND_LAYOUT = "layout"
TEMPLATE_KINDS = (KIND_CONTENT, KIND_LAYOUT)

email_template_team = Table(
    "email_template_team",
    Base.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("email_template_id", ForeignKey("email_templates.id", ondelete="CASCADE"), nullable=False, index=True),
    Column("team_id", ForeignKey("teams.id", ondelete="CASCADE"), nullable=False, index=True),
    UniqueConstraint("email_template_id", "team_id", name="uq_email_template_team"),
)


class EmailTemplate(Base, IdMixin, UuidMixin, TimestampMixin):
    """Either a layout (a wrapper with a ``{{ slot }}``) or a content that may point at one."""

    __tablename__ = "email_templates"

    key: Mapped[str] = mapped_column(String(150), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    kind: Mapped[str] = mapped_column(String(20), default=KIND_CONTENT, nullable=False, index=True)
    layout_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("email_templates.id", ondelete="SET NULL"), nullable=True, index=True
    )
    is_default: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    all_teams: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_system: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    translations = relationship(
        "EmailTranslation",
        back_populates="template",
        cascade="all, delete-orphan",
        order_by="EmailTranslation.locale",
    )
    teams = relationship("Team", secondary=email_template_team)
    layout = relationship("EmailTemplate", remote_side="EmailTemplate.id", foreign_keys=[layout_id])

    def is_layout(self) -> bool:
        return self.kind == KIND_LAYOUT

    def release_contents(self) -> None:
        """Detach the content templates that use this layout."""
        session = object_session(self)
        if session is None or self.id is None:
            return
        for content in session.query(EmailTemplate).filter(EmailTemplate.layout_id == self.id).all():
            content.layout = None

    def is_available_for(self, team_uuids) -> bool:
        if self.all_teams:
            return True
        wanted = set(team_uuids or ())
        return any(team.uuid in wanted for team in self.teams)

    def translation_for(self, locale: str, fallback: str | None = None):
        by_locale = {t.locale: t for t in self.translations}
        found = by_locale.get(locale)
        if found is None and fallback:
            found = by_locale.get(fallback)
        return found


class EmailTranslation(Base, IdMixin, TimestampMixin):
    __tablename__ = "email_translations"
    __table_args__ = (UniqueConstraint("template_id", "locale", name="uq_email_translation_locale"),)

    template_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("email_templates.id", ondelete="CASCADE"), index=True, nullable=False
    )
    locale: Mapped[str] = mapped_column(String(10), nullable=False)
    subject: Mapped[str] = mapped_column(String(255), nullable=False)
    preheader: Mapped[str | None] = mapped_column(String(255), nullable=True)
    html_content: Mapped[str] = mapped_column(Text, nullable=False, default="")
    text_content: Mapped[str | None] = mapped_column(Text, nullable=True)

    template = relationship("EmailTemplate", back_populates="translations")
