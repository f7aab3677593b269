from __future__ import annotations

import logging
from typing import Any

from fastapi import HTTPException

from tenant_admin.auth import permissions as perms
from tenant_admin.core.config import settings
from tenant_admin.models.email_template import EmailTemplate
from tenant_admin.models.notification import Notification
from tenant_admin.models.role import Role
from tenant_admin.models.team import Team
from tenant_admin.models.user import User

_LOG = logging.getLogger("tenant_admin.auth")


def is_super_admin(user: User | None) -> bool:
    if user is None:
        return False
    if user.has_role(settings.SUPER_ADMIN_ROLE):
        return True
    return user.id == settings.SUPER_ADMIN_USER_ID


class Policy:
    """Base policy: the super-admin check runs before every ability.

    ``before`` returns True to grant, None to fall through to the ability
    method. Ability methods take ``(user)`` or ``(user, target)``.
    """

    def before(self, user: User, ability: str) -> bool | None:
        if is_super_admin(user):
            return True
        return None

    def check(self, user: User, ability: str, target: Any = None) -> bool:
        verdict = self.before(user, ability)
        if verdict is not None:
            return verdict
        method = getattr(self, ability, None)
        if method is None:
            return False
        if target is None:
            return bool(method(user))
        return bool(method(user, target))


class UserPolicy(Policy):
    def view_any(self, user: User) -> bool:
        return user.has_permission_to(perms.VIEW_USERS)

    def view(self, user: User, model: User) -> bool:
        return user.has_permission_to(perms.VIEW_USERS)

    def create(self, user: User) -> bool:
        return user.has_permission_to(perms.CREATE_USERS)

    def update(self, user: User, model: User) -> bool:
        # Own profile is edited through the account endpoints, never the admin panel.
        if user.id == model.id:
            return False
        return user.has_permission_to(perms.EDIT_USERS)

    def delete(self, user: User, model: User) -> bool:
        if user.id == model.id:
            return False
        if is_super_admin(model):
            return False
        return user.has_permission_to(perms.DELETE_USERS)

    def restore(self, user: User, model: User) -> bool:
        return user.has_permission_to(perms.RESTORE_USERS)

    def force_delete(self, user: User, model: User) -> bool:
        if user.id == model.id or is_super_admin(model):
            return False
        return user.has_permission_to(perms.FORCE_DELETE_USERS)

    def activate(self, user: User, model: User) -> bool:
        if user.id == model.id:
            return False
        return user.has_permission_to(perms.ACTIVATE_USERS)


class TeamPolicy(Policy):
    def view_any(self, user: User) -> bool:
        return user.has_permission_to(perms.VIEW_TEAMS)

    def view(self, user: User, team: Team) -> bool:
        return user.belongs_to_team(team.uuid) or user.has_permission_to(perms.VIEW_TEAMS)

    def create(self, user: User) -> bool:
        return user.has_permission_to(perms.CREATE_TEAMS)

    def update(self, user: User, team: Team) -> bool:
        return user.has_permission_to(perms.EDIT_TEAMS)

    def delete(self, user: User, team: Team) -> bool:
        return user.has_permission_to(perms.DELETE_TEAMS)

    def restore(self, user: User, team: Team) -> bool:
        return user.has_permission_to(perms.RESTORE_TEAMS)


class RolePolicy(Policy):
    def view_any(self, user: User) -> bool:
        return user.has_permission_to(perms.VIEW_ROLES)

    def view(self, user: User, role: Role) -> bool:
        return user.has_permission_to(perms.VIEW_ROLES)

    def create(self, user: User) -> bool:
        return user.has_permission_to(perms.CREATE_ROLES)

    def update(self, user: User, role: Role) -> bool:
        if role.name == settings.SUPER_ADMIN_ROLE:
            return False
        return user.has_permission_to(perms.EDIT_ROLES)

    def delete(self, user: User, role: Role) -> bool:
        if role.name == settings.SUPER_ADMIN_ROLE:
            return False
        return user.has_permission_to(perms.DELETE_ROLES)

    def restore(self, user: User, role: Role) -> bool:
        return user.has_permission_to(perms.RESTORE_ROLES)


class EmailTemplatePolicy(Policy):
    def view_any(self, user: User) -> bool:
        return user.has_permission_to(perms.VIEW_EMAIL_TEMPLATES)

    def view(self, user: User, template: EmailTemplate) -> bool:
        if not user.has_permission_to(perms.VIEW_EMAIL_TEMPLATES):
            return False
        return _template_visible_to(user, template)

    def create(self, user: User) -> bool:
        return user.has_permission_to(perms.CREATE_EMAIL_TEMPLATES)

    def update(self, user: User, template: EmailTemplate) -> bool:
        if not user.has_permission_to(perms.EDIT_EMAIL_TEMPLATES):
            return False
        return _template_visible_to(user, template)

    def delete(self, user: User, template: EmailTemplate) -> bool:
        if template.is_system:
            return False
        if not user.has_permission_to(perms.DELETE_EMAIL_TEMPLATES):
            return False
        return _template_visible_to(user, template)


def _template_visible_to(user: User, template: EmailTemplate) -> bool:
    return template.is_available_for(t.uuid for t in user.teams if t.deleted_at is None)


class NotificationPolicy(Policy):
    def view_any(self, user: User) -> bool:
        return True

    def view(self, user: User, notification: Notification) -> bool:
        return notification.notifiable_id == user.id

    def update(self, user: User, notification: Notification) -> bool:
        return notification.notifiable_id == user.id

    def delete(self, user: User, notification: Notification) -> bool:
        return notification.notifiable_id == user.id

    def restore(self, user: User, notification: Notification) -> bool:
        return notification.notifiable_id == user.id

    def send(self, user: User) -> bool:
        return user.has_permission_to(perms.SEND_NOTIFICATIONS)


POLICIES: dict[type, Policy] = {
    User: UserPolicy(),
    Team: TeamPolicy(),
    Role: RolePolicy(),
    EmailTemplate: EmailTemplatePolicy(),
    Notification: NotificationPolicy(),
}


def policy_for(subject: Any) -> Policy:
    model = subject if isinstance(subject, type) else type(subject)
    policy = POLICIES.get(model)
    if policy is None:
        raise LookupError(f"No policy registered for {model.__name__}")
    return policy


def can(user: User | None, ability: str, subject: Any) -> bool:
    """``subject`` is a model class for class-level abilities (view_any, create)
    or an instance for record-level ones."""
    if user is None:
        return False
    target = None if isinstance(subject, type) else subject
    return policy_for(subject).check(user, ability, target)


def authorize(user: User | None, ability: str, subject: Any) -> None:
    if not can(user, ability, subject):
        _LOG.info("denied ability=%s user_id=%s", ability, getattr(user, "id", None))
        raise HTTPException(status_code=403, detail="This action is unauthorized.")
