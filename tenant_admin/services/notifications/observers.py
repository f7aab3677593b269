from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import event, inspect
from sqlalchemy.orm import Session

from tenant_admin.models.notification import Notification
from tenant_admin.models.user import User
from tenant_admin.services.notifications.broadcasting import EVENT_NOTIFICATION_CHANGED, get_broadcaster
from tenant_admin.services.notifications.channels import user_channel

_LOG = logging.getLogger("tenant_admin.notifications")

ACTION_CREATED = "created"
ACTION_UPDATED = "updated"
ACTION_DELETED = "deleted"
ACTION_RESTORED = "restored"
ACTION_FORCE_DELETED = "forceDeleted"

_QUEUE_KEY = "notification_changes"

_registered = False


def _owner_uuid(session: Session, notification: Notification) -> str | None:
    state = inspect(notification)
    owner = state.dict.get("notifiable")
    if owner is None and notification.notifiable_id is not None:
        owner = session.get(User, notification.notifiable_id)
    return owner.uuid if owner is not None else None


def _soft_delete_action(notification: Notification) -> str | None:
    history = inspect(notification).attrs.deleted_at.history
    if not history.has_changes():
        return None
    before = history.deleted[0] if history.deleted else None
    after = history.added[0] if history.added else None
    if before is None and after is not None:
        return ACTION_DELETED
    if before is not None and after is None:
        return ACTION_RESTORED
    return None


def _queue(session: Session, notification: Notification, *actions: str) -> None:
    owner = _owner_uuid(session, notification)
    if owner is None:
        _LOG.debug("notification %s has no owner, change not broadcast", notification.uuid)
        return
    pending: list[dict[str, Any]] = session.info.setdefault(_QUEUE_KEY, [])
    for action in actions:
        pending.append({"channel": user_channel(owner), "notificationId": notification.uuid, "action": action})


def _after_flush(session: Session, flush_context) -> None:
    # new/dirty/deleted and attribute history still hold pre-flush state here
    for obj in session.new:
        if isinstance(obj, Notification):
            _queue(session, obj, ACTION_CREATED)
    for obj in session.dirty:
        if not isinstance(obj, Notification) or not session.is_modified(obj):
            continue
        _queue(session, obj, _soft_delete_action(obj) or ACTION_UPDATED)
    for obj in session.deleted:
        if isinstance(obj, Notification):
            _queue(session, obj, ACTION_DELETED, ACTION_FORCE_DELETED)


def _after_commit(session: Session) -> None:
    pending = session.info.pop(_QUEUE_KEY, None)
    if not pending:
        return
    broadcaster = get_broadcaster()
    for item in pending:
        broadcaster.publish(
            item["channel"],
            EVENT_NOTIFICATION_CHANGED,
            {"notificationId": item["notificationId"], "action": item["action"]},
        )


def _after_rollback(session: Session) -> None:
    dropped = session.info.pop(_QUEUE_KEY, None)
    if dropped:
        _LOG.debug("dropped %s notification change(s) on rollback", len(dropped))


def register_notification_observers() -> None:
    """Hook notification change broadcasts onto every ORM session.

    Only ORM unit-of-work changes are seen: bulk ``query.update()`` /
    ``query.delete()`` bypass these events.
    """
    global _registered
    if _registered:
        return
    event.listen(Session, "after_flush", _after_flush)
    event.listen(Session, "after_commit", _after_commit)
    event.listen(Session, "after_rollback", _after_rollback)
    _registered = True
