"""init
Revision ID: 0001_init
Revises:
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa

revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None


def _base_columns(soft_delete: bool = True):
    cols = [
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("uuid", sa.String(length=36), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    ]
    if soft_delete:
        cols.append(sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True))
    return cols


def _pivot(name: str, left: tuple[str, str], right: tuple[str, str]):
    op.create_table(
        name,
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(left[0], sa.Integer(), sa.ForeignKey(f"{left[1]}.id", ondelete="CASCADE"), nullable=False),
        sa.Column(right[0], sa.Integer(), sa.ForeignKey(f"{right[1]}.id", ondelete="CASCADE"), nullable=False),
        sa.UniqueConstraint(left[0], right[0], name=f"uq_{name}"),
    )
    op.create_index(f"ix_{name}_{left[0]}", name, [left[0]])
    op.create_index(f"ix_{name}_{right[0]}", name, [right[0]])


def upgrade():
    op.create_table(
        "users",
        *_base_columns(),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("username", sa.String(length=100), nullable=True),
        sa.Column("email", sa.String(length=200), nullable=True, unique=True),
        sa.Column("pending_email", sa.String(length=200), nullable=True),
        sa.Column("pending_email_token", sa.String(length=64), nullable=True),
        sa.Column("pending_email_expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("email_verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("password_hash", sa.String(length=255), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("last_login_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("frontend_preferences", sa.JSON(), nullable=True),
    )
    op.create_index("ix_users_uuid", "users", ["uuid"], unique=True)
    op.create_index("ix_users_username", "users", ["username"], unique=True)
    op.create_index("ix_users_pending_email_token", "users", ["pending_email_token"])
    op.create_index("ix_users_is_active", "users", ["is_active"])
    op.create_index("ix_users_deleted_at", "users", ["deleted_at"])

    op.create_table(
        "teams",
        *_base_columns(),
        sa.Column("name", sa.String(length=200), nullable=False, unique=True),
        sa.Column("display_name", sa.String(length=200), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
    )
    op.create_index("ix_teams_uuid", "teams", ["uuid"], unique=True)
    op.create_index("ix_teams_deleted_at", "teams", ["deleted_at"])

    for table in ("roles", "permissions"):
        op.create_table(
            table,
            *_base_columns(),
            sa.Column("name", sa.String(length=150), nullable=False, unique=True),
            sa.Column("display_name", sa.String(length=200), nullable=True),
            sa.Column("description", sa.Text(), nullable=True),
        )
        op.create_index(f"ix_{table}_uuid", table, ["uuid"], unique=True)
        op.create_index(f"ix_{table}_deleted_at", table, ["deleted_at"])

    _pivot("team_user", ("team_id", "teams"), ("user_id", "users"))
    _pivot("role_user", ("role_id", "roles"), ("user_id", "users"))
    _pivot("permission_role", ("permission_id", "permissions"), ("role_id", "roles"))
    _pivot("permission_user", ("permission_id", "permissions"), ("user_id", "users"))

    op.create_table(
        "notifications",
        *_base_columns(),
        sa.Column("type", sa.String(length=255), nullable=False, server_default="toast"),
        sa.Column(
            "notifiable_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("data", sa.JSON(), nullable=False),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_notifications_uuid", "notifications", ["uuid"], unique=True)
    op.create_index("ix_notifications_notifiable_id", "notifications", ["notifiable_id"])
    op.create_index("ix_notifications_read_at", "notifications", ["read_at"])
    op.create_index("ix_notifications_deleted_at", "notifications", ["deleted_at"])

    op.create_table(
        "email_templates",
        *_base_columns(soft_delete=False),
        sa.Column("key", sa.String(length=150), nullable=False, unique=True),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("is_system", sa.Boolean(), nullable=False, server_default=sa.text("false")),
    )
    op.create_index("ix_email_templates_uuid", "email_templates", ["uuid"], unique=True)

    op.create_table(
        "email_translations",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "template_id",
            sa.Integer(),
            sa.ForeignKey("email_templates.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("locale", sa.String(length=10), nullable=False),
        sa.Column("subject", sa.String(length=255), nullable=False),
        sa.Column("html_content", sa.Text(), nullable=False),
        sa.Column("text_content", sa.Text(), nullable=True),
        sa.UniqueConstraint("template_id", "locale", name="uq_email_translation_locale"),
    )
    op.create_index("ix_email_translations_template_id", "email_translations", ["template_id"])

    _pivot("email_template_team", ("email_template_id", "email_templates"), ("team_id", "teams"))


def downgrade():
    op.drop_table("email_template_team")
    op.drop_table("email_translations")
    op.drop_table("email_templates")
    op.drop_table("notifications")
    op.drop_table("permission_user")
    op.drop_table("permission_role")
    op.drop_table("role_user")
    op.drop_table("team_user")
    op.drop_table("permissions")
    op.drop_table("roles")
    op.drop_table("teams")
    op.drop_table("users")
