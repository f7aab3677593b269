from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy.orm import Session

from tenant_admin.models.team import Team
from tenant_admin.models.user import User

_LOG = logging.getLogger("tenant_admin.broadcast")

USER_CHANNEL_PREFIX = "private-notifications.user."
TEAM_CHANNEL_PREFIX = "private-notifications.team."
GLOBAL_CHANNEL = "private-notifications.global"
SESSION_CHANNEL_PREFIX = "public-notifications.session."

TARGET_USER = "user"
TARGET_TEAM = "team"
TARGET_GLOBAL = "global"
TARGET_SESSION = "session"


@dataclass(frozen=True)
class NotificationTarget:
    kind: str
    identifier: str | None = None

    @property
    def channel(self) -> str:
        if self.kind == TARGET_USER:
            return user_channel(self.identifier or "")
        if self.kind == TARGET_TEAM:
            return team_channel(self.identifier or "")
        if self.kind == TARGET_SESSION:
            return session_channel(self.identifier or "")
        return GLOBAL_CHANNEL


def user_channel(user_uuid: str) -> str:
    return f"{USER_CHANNEL_PREFIX}{user_uuid}"


def team_channel(team_uuid: str) -> str:
    return f"{TEAM_CHANNEL_PREFIX}{team_uuid}"


def session_channel(session_id: str) -> str:
    return f"{SESSION_CHANNEL_PREFIX}{session_id}"


def parse_channel(channel: str) -> NotificationTarget | None:
    name = str(channel or "").strip()
    if name == GLOBAL_CHANNEL:
        return NotificationTarget(TARGET_GLOBAL)
    for prefix, kind in (
        (USER_CHANNEL_PREFIX, TARGET_USER),
        (TEAM_CHANNEL_PREFIX, TARGET_TEAM),
        (SESSION_CHANNEL_PREFIX, TARGET_SESSION),
    ):
        if name.startswith(prefix):
            identifier = name[len(prefix):]
            if not identifier:
                return None
            return NotificationTarget(kind, identifier)
    return None


def is_public_channel(channel: str) -> bool:
    return str(channel or "").startswith("public-")


def authorize_channel(db: Session, user: User | None, channel: str) -> bool:
    """Subscription check for the websocket relay.

    Session channels are open: knowing the session id is the credential.
    Every private channel needs an authenticated user.
    """
    target = parse_channel(channel)
    if target is None:
        return False
    if target.kind == TARGET_SESSION:
        return True
    if user is None:
        return False
    if target.kind == TARGET_GLOBAL:
        return True
    if target.kind == TARGET_USER:
        return user.uuid == target.identifier
    if target.kind == TARGET_TEAM:
        team = db.query(Team).filter(Team.uuid == target.identifier, Team.deleted_at.is_(None)).first()
        if team is None:
            return False
        return user.belongs_to_team(team.uuid)
    _LOG.warning("unhandled channel kind %s", target.kind)
    return False
