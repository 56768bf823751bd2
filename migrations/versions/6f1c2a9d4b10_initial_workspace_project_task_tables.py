"""initial_workspace_project_task_tables

Creates the core schema:
  - users                 — people known to the hub (signed-in or invited)
  - workspaces            — isolation root
  - workspace_members     — (workspace, user) → role
  - projects              — task containers inside a workspace
  - project_tasks         — self-referential task forest per project
  - task_checklist_items  — ordered checklist rows per task
  - task_comments         — append-only discussion per task
  - task_attachments      — attachment metadata (bytes live in file storage)

Tables created conditionally (IF NOT EXISTS semantics) so the revision is
safe against databases that already received them via db.create_all().

Revision ID: 6f1c2a9d4b10
Revises:
Create Date: 2026-10-19 09:12:41.118305
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = '6f1c2a9d4b10'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    inspector = sa_inspect(bind)
    existing = set(inspector.get_table_names())

    # ── Users ─────────────────────────────────────────────────────────────
    if "users" not in existing:
        op.create_table(
            "users",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("external_id", sa.String(length=128), nullable=True,
                      comment="Subject id from the identity provider (null until first sign-in)"),
            sa.Column("email", sa.String(length=255), nullable=False),
            sa.Column("display_name", sa.String(length=200), nullable=False),
            sa.Column("avatar_url", sa.String(length=500), nullable=True),
            sa.Column("job_title", sa.String(length=200), nullable=True),
            sa.Column("department", sa.String(length=200), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("external_id"),
            sa.UniqueConstraint("email"),
        )

    # ── Workspaces ────────────────────────────────────────────────────────
    if "workspaces" not in existing:
        op.create_table(
            "workspaces",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("slug", sa.String(length=100), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("logo_url", sa.String(length=500), nullable=True),
            sa.Column("teams_team_id", sa.String(length=128), nullable=True),
            sa.Column("teams_channel_id", sa.String(length=128), nullable=True),
            sa.Column("sharepoint_site_id", sa.String(length=128), nullable=True),
            sa.Column("sharepoint_folder_id", sa.String(length=128), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("slug"),
        )

    # ── Workspace members ─────────────────────────────────────────────────
    if "workspace_members" not in existing:
        op.create_table(
            "workspace_members",
            sa.Column("workspace_id", sa.String(length=36), nullable=False),
            sa.Column("user_id", sa.String(length=36), nullable=False),
            sa.Column("role", sa.String(length=20), nullable=False,
                      server_default="member", comment="owner | admin | member | viewer"),
            sa.Column("joined_at", sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(["workspace_id"], ["workspaces.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("workspace_id", "user_id"),
        )
        op.create_index("ix_workspace_members_user_id", "workspace_members", ["user_id"])

    # ── Projects ──────────────────────────────────────────────────────────
    if "projects" not in existing:
        op.create_table(
            "projects",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("workspace_id", sa.String(length=36), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="active",
                      comment="planning | active | on_hold | completed | archived"),
            sa.Column("start_date", sa.Date(), nullable=True),
            sa.Column("target_date", sa.Date(), nullable=True),
            sa.Column("budget", sa.Numeric(14, 2), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(["workspace_id"], ["workspaces.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_projects_workspace_id", "projects", ["workspace_id"])

    # ── Project tasks ─────────────────────────────────────────────────────
    if "project_tasks" not in existing:
        op.create_table(
            "project_tasks",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("project_id", sa.String(length=36), nullable=False),
            sa.Column("parent_id", sa.String(length=36), nullable=True),
            sa.Column("creator_id", sa.String(length=36), nullable=False),
            sa.Column("assignee_id", sa.String(length=36), nullable=True),
            sa.Column("title", sa.String(length=500), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="todo",
                      comment="todo | in_progress | in_review | done | cancelled"),
            sa.Column("priority", sa.String(length=20), nullable=False, server_default="medium",
                      comment="low | medium | high | urgent"),
            sa.Column("type", sa.String(length=20), nullable=False, server_default="task",
                      comment="roadmap_phase | milestone | task | subtask (display only)"),
            sa.Column("due_date", sa.DateTime(timezone=True), nullable=True),
            sa.Column("estimated_hours", sa.Float(), nullable=True),
            sa.Column("actual_hours", sa.Float(), nullable=True),
            sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("is_milestone", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("calendar_event_id", sa.String(length=255), nullable=True),
            sa.Column("todo_item_id", sa.String(length=255), nullable=True),
            sa.Column("checklist_seq", sa.Integer(), nullable=False, server_default="0",
                      comment="Highest checklist sort_order ever issued for this task"),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["parent_id"], ["project_tasks.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["creator_id"], ["users.id"], ondelete="RESTRICT"),
            sa.ForeignKeyConstraint(["assignee_id"], ["users.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_project_tasks_project_id", "project_tasks", ["project_id"])
        op.create_index("ix_project_tasks_parent_id", "project_tasks", ["parent_id"])
        op.create_index("ix_project_tasks_assignee_id", "project_tasks", ["assignee_id"])

    # ── Checklist items ───────────────────────────────────────────────────
    if "task_checklist_items" not in existing:
        op.create_table(
            "task_checklist_items",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("task_id", sa.String(length=36), nullable=False),
            sa.Column("title", sa.String(length=500), nullable=False),
            sa.Column("is_completed", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(["task_id"], ["project_tasks.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_task_checklist_items_task_id", "task_checklist_items", ["task_id"])

    # ── Comments ──────────────────────────────────────────────────────────
    if "task_comments" not in existing:
        op.create_table(
            "task_comments",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("task_id", sa.String(length=36), nullable=False),
            sa.Column("author_id", sa.String(length=36), nullable=False),
            sa.Column("content", sa.Text(), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(["task_id"], ["project_tasks.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["author_id"], ["users.id"], ondelete="RESTRICT"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_task_comments_task_id", "task_comments", ["task_id"])

    # ── Attachments ───────────────────────────────────────────────────────
    if "task_attachments" not in existing:
        op.create_table(
            "task_attachments",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("task_id", sa.String(length=36), nullable=False),
            sa.Column("file_name", sa.String(length=500), nullable=False),
            sa.Column("file_url", sa.String(length=1000), nullable=False),
            sa.Column("file_size", sa.BigInteger(), nullable=False, server_default="0"),
            sa.Column("mime_type", sa.String(length=200), nullable=True),
            sa.Column("uploaded_by_id", sa.String(length=36), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(["task_id"], ["project_tasks.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["uploaded_by_id"], ["users.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_task_attachments_task_id", "task_attachments", ["task_id"])


def downgrade():
    op.drop_table("task_attachments")
    op.drop_table("task_comments")
    op.drop_table("task_checklist_items")
    op.drop_table("project_tasks")
    op.drop_table("projects")
    op.drop_table("workspace_members")
    op.drop_table("workspaces")
    op.drop_table("users")
