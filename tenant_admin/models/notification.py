from datetime import datetime

from sqlalchemy import JSON, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tenant_admin.db.session import Base
from tenant_admin.models.common import IdMixin, SoftDeleteMixin, TimestampMixin, UuidMixin, utcnow


class Notification(Base, IdMixin, UuidMixin, TimestampMixin, SoftDeleteMixin):
    __tablename__ = "notifications"

    type: Mapped[str] = mapped_column(String(255), nullable=False, default="toast")
    notifiable_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False
    )
    data: Mapped[dict] = mapped_column(JSON, default=dict, nullable=False)
    read_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, index=True)

    notifiable = relationship("User")

    @property
    def is_read(self) -> bool:
        return self.read_at is not None

    def mark_as_read(self) -> None:
        if self.read_at is None:
            self.read_at = utcnow()

    def mark_as_unread(self) -> None:
        self.read_at = None
