"""add layouts, preheader and team availability to email templates

Revision ID: 0002_email_template_layouts
Revises: 0001_init
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa

revision = "0002_email_template_layouts"
down_revision = "0001_init"
branch_labels = None
depends_on = None


def upgrade():
    op.add_column("email_templates", sa.Column("kind", sa.String(length=20), nullable=False, server_default="content"))
    op.add_column(
        "email_templates",
        sa.Column(
            "layout_id",
            sa.Integer(),
            sa.ForeignKey("email_templates.id", name="fk_email_templates_layout_id", ondelete="SET NULL"),
            nullable=True,
        ),
    )
    op.add_column("email_templates", sa.Column("is_default", sa.Boolean(), nullable=False, server_default=sa.text("false")))
    op.add_column("email_templates", sa.Column("all_teams", sa.Boolean(), nullable=False, server_default=sa.text("true")))
    op.create_check_constraint("ck_email_templates_kind_allowed", "email_templates", "kind IN ('content', 'layout')")
    op.create_index("ix_email_templates_kind", "email_templates", ["kind"])
    op.create_index("ix_email_templates_layout_id", "email_templates", ["layout_id"])
    # team-bound templates used to be private to their teams
    op.execute(
        "UPDATE email_templates SET all_teams = false "
        "WHERE id IN (SELECT email_template_id FROM email_template_team)"
    )
    op.alter_column("email_templates", "kind", server_default=None)

    op.add_column("email_translations", sa.Column("preheader", sa.String(length=255), nullable=True))


def downgrade():
    op.drop_column("email_translations", "preheader")
    op.drop_index("ix_email_templates_layout_id", table_name="email_templates")
    op.drop_index("ix_email_templates_kind", table_name="email_templates")
    op.drop_constraint("ck_email_templates_kind_allowed", "email_templates", type_="check")
    op.drop_constraint("fk_email_templates_layout_id", "email_templates", type_="foreignkey")
    op.drop_column("email_templates", "all_teams")
    op.drop_column("email_templates", "is_default")
    op.drop_column("email_templates", "layout_id")
    op.drop_column("email_templates", "kind")
