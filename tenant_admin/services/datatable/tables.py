from __future__ import annotations

from functools import lru_cache

from sqlalchemy import extract

from tenant_admin.models.common import utcnow
from tenant_admin.models.email_template import EmailTemplate
from tenant_admin.models.role import Role
from tenant_admin.models.team import Team
from tenant_admin.models.user import User
from tenant_admin.services.datatable.actions import Action, BulkAction
from tenant_admin.services.datatable.columns import Column
from tenant_admin.services.datatable.definition import TableDefinition
from tenant_admin.services.datatable.filters import Filter, ModelOptionsProvider
from tenant_admin.services.datatable.types import FILTER_NOT_NULL, FILTER_NULL


def _user_stats(query) -> dict:
    now = utcnow()
    return {
        "active_users": query.filter(User.is_active.is_(True)).count(),
        "inactive_users": query.filter(User.is_active.is_(False)).count(),
        "new_this_month": query.filter(
            extract("year", User.created_at) == now.year,
            extract("month", User.created_at) == now.month,
        ).count(),
    }


def _active_members(obj) -> int:
    return len([u for u in obj.users if u.deleted_at is None])


def _soft_delete(db, rows, actor) -> None:
    for row in rows:
        row.soft_delete()


def _set_active(flag: bool):
    def handler(db, rows, actor) -> None:
        for row in rows:
            row.is_active = flag

    return handler


def _delete_templates(db, rows, actor) -> None:
    for template in rows:
        if template.is_layout():
            template.release_contents()
        db.delete(template)


def _crud_actions(base: str, edit_method: str = "PUT") -> list:
    return [
        Action.make("view", "View").icon("eye").route(base + "/{uuid}").can("view").build(),
        Action.make("edit", "Edit").icon("pencil").route(base + "/{uuid}", edit_method).can("update").build(),
        Action.make("delete", "Delete")
        .icon("trash")
        .route(base + "/{uuid}", "DELETE")
        .can("delete")
        .confirm("Are you sure you want to delete this item?")
        .danger()
        .build(),
    ]


def _bulk_delete():
    return (
        BulkAction.make("delete", "Delete selected")
        .icon("trash")
        .can("delete")
        .confirm("Are you sure you want to delete the selected items?")
        .danger()
    )


def _user_actions() -> list:
    view, edit, delete = _crud_actions("/api/admin/users", edit_method="PATCH")
    activation = "/api/admin/users/{uuid}/activation"
    return [
        view,
        edit,
        Action.make("activate", "Activate")
        .icon("check")
        .route(activation, "POST")
        .can("activate")
        .show(lambda u: not u.is_active)
        .build(),
        Action.make("deactivate", "Deactivate")
        .icon("ban")
        .route(activation, "POST")
        .can("activate")
        .show(lambda u: u.is_active)
        .build(),
        delete,
    ]


def _template_actions() -> list:
    view, edit, delete = _crud_actions("/api/admin/email-templates")
    preview = (
        Action.make("preview", "Preview")
        .icon("mail")
        .route("/api/admin/email-templates/{uuid}/preview", "POST")
        .can("view")
        .build()
    )
    return [view, edit, preview, delete]


@lru_cache(maxsize=None)
def users_table() -> TableDefinition:
    return TableDefinition(
        User,
        columns=[
            Column.make("name", "Name").avatar().sortable().searchable().build(),
            Column.make("email", "Email").sortable().searchable().build(),
            Column.make("username", "Username").searchable().hidden().build(),
            Column.make("roles", "Roles").field("roles.name").badge(variant="primary").searchable().build(),
            Column.make("teams", "Teams").field("teams.name").badge(variant="neutral").build(),
            Column.make("is_active", "Active").boolean().sortable().build(),
            Column.make("email_verified_at", "Verified").datetime().sortable().build(),
            Column.make("last_login_at", "Last login").datetime().sortable().build(),
            Column.make("created_at", "Created").date().sortable().build(),
        ],
        filters=[
            Filter.make("is_active", "Status").boolean().build(),
            Filter.make("role", "Role")
            .relationship("roles", "name")
            .options_provider(ModelOptionsProvider(Role, value_attr="name", label_attr="name"))
            .build(),
            Filter.make("team", "Team")
            .relationship("teams", "uuid")
            .options_provider(ModelOptionsProvider(Team, value_attr="uuid", label_attr="name"))
            .build(),
            Filter.make("verified", "Email verification")
            .field("email_verified_at")
            .options({"verified": "Verified", "unverified": "Unverified"})
            .value_mapping({"verified": FILTER_NOT_NULL, "unverified": FILTER_NULL})
            .build(),
            Filter.make("created_at", "Created").date_range().build(),
        ],
        default_sort=("created_at", "desc"),
        stats=_user_stats,
        name="users",
        actions=_user_actions(),
        bulk_actions=[
            BulkAction.make("activate", "Activate selected").icon("check").can("activate").execute(_set_active(True)).build(),
            BulkAction.make("deactivate", "Deactivate selected").icon("ban").can("activate").execute(_set_active(False)).build(),
            _bulk_delete().execute(_soft_delete).build(),
        ],
    )


@lru_cache(maxsize=None)
def teams_table() -> TableDefinition:
    return TableDefinition(
        Team,
        columns=[
            Column.make("name", "Name").sortable().searchable().build(),
            Column.make("display_name", "Display name").sortable().searchable().build(),
            Column.make("description", "Description").searchable().build(),
            Column.make("members", "Members").content(_active_members).number().build(),
            Column.make("created_at", "Created").date().sortable().build(),
        ],
        filters=[
            Filter.make("created_at", "Created").date_range().build(),
        ],
        default_sort=("name", "asc"),
        eager_load=["users"],
        name="teams",
        actions=_crud_actions("/api/admin/teams"),
        bulk_actions=[_bulk_delete().execute(_soft_delete).build()],
    )


@lru_cache(maxsize=None)
def roles_table() -> TableDefinition:
    return TableDefinition(
        Role,
        columns=[
            Column.make("name", "Name").sortable().searchable().build(),
            Column.make("display_name", "Display name").sortable().searchable().build(),
            Column.make("permissions", "Permissions").field("permissions.name").badge(variant="info", size="xs").build(),
            Column.make("users", "Users").content(_active_members).number().build(),
            Column.make("created_at", "Created").date().sortable().build(),
        ],
        filters=[
            Filter.make("permission", "Permission").relationship("permissions", "name").build(),
        ],
        default_sort=("name", "asc"),
        eager_load=["users"],
        name="roles",
        actions=_crud_actions("/api/admin/roles"),
        bulk_actions=[_bulk_delete().execute(_soft_delete).build()],
    )


@lru_cache(maxsize=None)
def email_templates_table() -> TableDefinition:
    return TableDefinition(
        EmailTemplate,
        columns=[
            Column.make("key", "Key").sortable().searchable().build(),
            Column.make("name", "Name").sortable().searchable().build(),
            Column.make("kind", "Kind").badge(colors={"layout": "info", "content": "neutral"}).sortable().build(),
            Column.make("is_active", "Active").boolean().sortable().build(),
            Column.make("is_system", "Type")
            .content(lambda t: "system" if t.is_system else "custom")
            .badge(colors={"system": "warning", "custom": "neutral"})
            .build(),
            Column.make("teams", "Teams").field("teams.name").badge().build(),
            Column.make("locales", "Locales").field("translations.locale").badge(size="xs").build(),
            Column.make("updated_at", "Updated").datetime().sortable().build(),
        ],
        filters=[
            Filter.make("is_active", "Active").boolean().build(),
            Filter.make("is_system", "System").boolean().build(),
            Filter.make("kind", "Kind").select().options({"content": "Content", "layout": "Layout"}).build(),
            Filter.make("team", "Team")
            .relationship("teams", "uuid")
            .options_provider(ModelOptionsProvider(Team, value_attr="uuid", label_attr="name"))
            .build(),
        ],
        default_sort=("key", "asc"),
        name="email_templates",
        actions=_template_actions(),
        bulk_actions=[
            BulkAction.make("activate", "Activate selected").icon("check").can("update").execute(_set_active(True)).build(),
            BulkAction.make("deactivate", "Deactivate selected").icon("ban").can("update").execute(_set_active(False)).build(),
            _bulk_delete().execute(_delete_templates).build(),
        ],
    )


def all_tables() -> dict[str, TableDefinition]:
    return {
        "users": users_table(),
        "teams": teams_table(),
        "roles": roles_table(),
        "email_templates": email_templates_table(),
    }
