from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.orm import Session

from tenant_admin.core.exceptions import NotificationError
from tenant_admin.models.notification import Notification
from tenant_admin.models.team import Team
from tenant_admin.models.user import User
from tenant_admin.services.notifications.broadcasting import EVENT_TOAST_RECEIVED, Broadcaster, get_broadcaster
from tenant_admin.services.notifications.channels import (
    TARGET_GLOBAL,
    TARGET_SESSION,
    TARGET_TEAM,
    TARGET_USER,
    NotificationTarget,
)
from tenant_admin.services.notifications.content import NotificationContent
from tenant_admin.services.notifications.payload import ToastAnimation, ToastPayload, ToastPosition, ToastType

_LOG = logging.getLogger("tenant_admin.notifications")

NOTIFICATION_TYPE_TOAST = "toast"


class NotificationBuilder:
    """Accumulates a toast and fans it out on ``send()``.

    ``send`` builds one payload, writes one row per recipient when
    ``persist()`` was called (flushed, not committed), then publishes
    ``toast.received`` on the target's channel. Failures propagate.
    """

    def __init__(self, broadcaster: Broadcaster | None = None):
        self._broadcaster = broadcaster
        self._title: str | None = None
        self._subtitle: str | None = None
        self._content: NotificationContent | None = None
        self._type = ToastType.SUCCESS
        self._position = ToastPosition.TOP_RIGHT
        self._animation = ToastAnimation.SLIDE
        self._link: str | None = None
        self._icon: str | None = None
        self._enable_sound = True
        self._persist = False
        self._target: NotificationTarget | None = None

    @classmethod
    def make(cls, broadcaster: Broadcaster | None = None) -> "NotificationBuilder":
        return cls(broadcaster)

    def title(self, title: str) -> "NotificationBuilder":
        self._title = title
        return self

    def subtitle(self, subtitle: str | None) -> "NotificationBuilder":
        self._subtitle = subtitle
        return self

    def content(self, text: str) -> "NotificationBuilder":
        self._content = NotificationContent.string(text)
        return self

    def html(self, html: str) -> "NotificationBuilder":
        self._content = NotificationContent.html(html)
        return self

    def translation(self, key: str, **params: Any) -> "NotificationBuilder":
        self._content = NotificationContent.translation(key, **params)
        return self

    def type(self, toast_type: ToastType | str) -> "NotificationBuilder":
        self._type = ToastType(toast_type)
        return self

    def success(self) -> "NotificationBuilder":
        return self.type(ToastType.SUCCESS)

    def info(self) -> "NotificationBuilder":
        return self.type(ToastType.INFO)

    def warning(self) -> "NotificationBuilder":
        return self.type(ToastType.WARNING)

    def error(self) -> "NotificationBuilder":
        return self.type(ToastType.ERROR)

    def neutral(self) -> "NotificationBuilder":
        return self.type(ToastType.NEUTRAL)

    def position(self, position: ToastPosition | str) -> "NotificationBuilder":
        self._position = ToastPosition(position)
        return self

    def animation(self, animation: ToastAnimation | str) -> "NotificationBuilder":
        self._animation = ToastAnimation(animation)
        return self

    def icon(self, icon: str) -> "NotificationBuilder":
        self._icon = icon
        return self

    def silent(self) -> "NotificationBuilder":
        self._enable_sound = False
        return self

    def link(self, link: str) -> "NotificationBuilder":
        self._link = link
        return self

    def persist(self, value: bool = True) -> "NotificationBuilder":
        self._persist = value
        return self

    def to_user(self, user: User | str) -> "NotificationBuilder":
        self._target = NotificationTarget(TARGET_USER, user.uuid if isinstance(user, User) else str(user))
        return self

    def to_team(self, team: Team | str) -> "NotificationBuilder":
        self._target = NotificationTarget(TARGET_TEAM, team.uuid if isinstance(team, Team) else str(team))
        return self

    def global_(self) -> "NotificationBuilder":
        self._target = NotificationTarget(TARGET_GLOBAL)
        return self

    def to_session(self, session_id: str) -> "NotificationBuilder":
        self._target = NotificationTarget(TARGET_SESSION, str(session_id))
        return self

    def build_payload(self, locale: str | None = None) -> ToastPayload:
        if self._title is None or not str(self._title).strip():
            raise NotificationError("Notification title is required.")
        return ToastPayload(
            title=self._title,
            subtitle=self._subtitle,
            content=self._content.render(locale) if self._content is not None else None,
            type=self._type,
            position=self._position,
            animation=self._animation,
            link=self._link,
            icon=self._icon,
            enable_sound=self._enable_sound,
            stored_content=self._content.to_storable() if self._content is not None else None,
        )

    def resolve_target(self, current_user: User | None = None) -> NotificationTarget:
        if self._target is not None:
            if self._target.kind != TARGET_GLOBAL and not self._target.identifier:
                raise NotificationError(f"Notification target '{self._target.kind}' has no identifier.")
            return self._target
        if current_user is not None:
            return NotificationTarget(TARGET_USER, current_user.uuid)
        raise NotificationError("Cannot determine notification channel: no target and no user context.")

    def recipients(self, db: Session, target: NotificationTarget) -> list[User]:
        if target.kind == TARGET_USER:
            user = db.query(User).filter(User.uuid == target.identifier, User.deleted_at.is_(None)).first()
            return [user] if user is not None else []
        if target.kind == TARGET_TEAM:
            team = db.query(Team).filter(Team.uuid == target.identifier, Team.deleted_at.is_(None)).first()
            if team is None:
                return []
            return [u for u in team.users if u.deleted_at is None]
        if target.kind == TARGET_GLOBAL:
            return db.query(User).filter(User.is_active.is_(True), User.deleted_at.is_(None)).order_by(User.id.asc()).all()
        return []

    def send(
        self,
        db: Session | None = None,
        current_user: User | None = None,
        locale: str | None = None,
    ) -> ToastPayload:
        payload = self.build_payload(locale)
        target = self.resolve_target(current_user)

        if self._persist:
            if db is None:
                raise NotificationError("A database session is required to persist notifications.")
            rows = [
                Notification(type=NOTIFICATION_TYPE_TOAST, notifiable_id=user.id, data=payload.to_database())
                for user in self.recipients(db, target)
            ]
            db.add_all(rows)
            db.flush()
            _LOG.debug("persisted %s notification(s) for %s", len(rows), target.channel)

        broadcaster = self._broadcaster or get_broadcaster()
        broadcaster.publish(target.channel, EVENT_TOAST_RECEIVED, payload.to_broadcast())
        return payload
