from __future__ import annotations

# Entity -> supported actions. Permission names follow "{action} {entity}".
PERMISSION_MATRIX: dict[str, list[str]] = {
    "users": ["view", "create", "edit", "delete", "activate", "export", "restore", "force_delete"],
    "roles": ["view", "create", "edit", "delete", "restore", "force_delete"],
    "teams": ["view", "create", "edit", "delete", "restore", "force_delete"],
    "email_templates": ["view", "create", "edit", "delete"],
    "notifications": ["send"],
    "dashboard": ["view"],
}


def permission_name(action: str, entity: str) -> str:
    return f"{action} {entity}"


VIEW_USERS = permission_name("view", "users")
CREATE_USERS = permission_name("create", "users")
EDIT_USERS = permission_name("edit", "users")
DELETE_USERS = permission_name("delete", "users")
ACTIVATE_USERS = permission_name("activate", "users")
RESTORE_USERS = permission_name("restore", "users")
FORCE_DELETE_USERS = permission_name("force_delete", "users")

VIEW_ROLES = permission_name("view", "roles")
CREATE_ROLES = permission_name("create", "roles")
EDIT_ROLES = permission_name("edit", "roles")
DELETE_ROLES = permission_name("delete", "roles")
RESTORE_ROLES = permission_name("restore", "roles")

VIEW_TEAMS = permission_name("view", "teams")
CREATE_TEAMS = permission_name("create", "teams")
EDIT_TEAMS = permission_name("edit", "teams")
DELETE_TEAMS = permission_name("delete", "teams")
RESTORE_TEAMS = permission_name("restore", "teams")

VIEW_EMAIL_TEMPLATES = permission_name("view", "email_templates")
CREATE_EMAIL_TEMPLATES = permission_name("create", "email_templates")
EDIT_EMAIL_TEMPLATES = permission_name("edit", "email_templates")
DELETE_EMAIL_TEMPLATES = permission_name("delete", "email_templates")

SEND_NOTIFICATIONS = permission_name("send", "notifications")
VIEW_DASHBOARD = permission_name("view", "dashboard")


def all_permission_names() -> list[str]:
    return [permission_name(action, entity) for entity, actions in PERMISSION_MATRIX.items() for action in actions]


def permissions_by_entity() -> dict[str, list[str]]:
    return {entity: [permission_name(action, entity) for action in actions] for entity, actions in PERMISSION_MATRIX.items()}
