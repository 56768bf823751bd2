"""
Task hierarchy models — project_tasks and their owned rows.

    ProjectTask ─┬─ subtasks (self-referential via parent_id)
                 ├─ ChecklistItem
                 ├─ Comment
                 └─ Attachment

Tasks form a forest per project: roots have parent_id NULL and a parent
always lives in the same project as its children.
"""

from app.models import db
from app.models.base import iso, new_id, utcnow

TASK_STATUSES = ("todo", "in_progress", "in_review", "done", "cancelled")
TASK_PRIORITIES = ("low", "medium", "high", "urgent")
TASK_TYPES = ("roadmap_phase", "milestone", "task", "subtask")


class ProjectTask(db.Model):
    __tablename__ = "project_tasks"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    project_id = db.Column(
        db.String(36),
        db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    parent_id = db.Column(
        db.String(36),
        db.ForeignKey("project_tasks.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    creator_id = db.Column(
        db.String(36),
        db.ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
    )
    assignee_id = db.Column(
        db.String(36),
        db.ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    title = db.Column(db.String(500), nullable=False)
    description = db.Column(db.Text, nullable=True)
    status = db.Column(
        db.String(20), nullable=False, default="todo",
        comment="todo | in_progress | in_review | done | cancelled",
    )
    priority = db.Column(
        db.String(20), nullable=False, default="medium",
        comment="low | medium | high | urgent",
    )
    type = db.Column(
        db.String(20), nullable=False, default="task",
        comment="roadmap_phase | milestone | task | subtask (display only)",
    )
    due_date = db.Column(db.DateTime(timezone=True), nullable=True)
    estimated_hours = db.Column(db.Float, nullable=True)
    actual_hours = db.Column(db.Float, nullable=True)
    sort_order = db.Column(db.Integer, nullable=False, default=0)
    is_milestone = db.Column(db.Boolean, nullable=False, default=False)

    # ── External sync correlation ids ──
    calendar_event_id = db.Column(db.String(255), nullable=True)
    todo_item_id = db.Column(db.String(255), nullable=True)

    checklist_seq = db.Column(
        db.Integer, nullable=False, default=0,
        comment="Highest checklist sort_order ever issued for this task",
    )

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    project = db.relationship("Project", back_populates="tasks")
    parent = db.relationship("ProjectTask", remote_side=[id], back_populates="subtasks")
    subtasks = db.relationship(
        "ProjectTask", back_populates="parent", cascade="all",
        order_by="ProjectTask.sort_order",
    )
    creator = db.relationship("User", foreign_keys=[creator_id])
    assignee = db.relationship("User", foreign_keys=[assignee_id])

    checklist_items = db.relationship(
        "ChecklistItem", back_populates="task",
        cascade="all, delete-orphan",
        order_by="ChecklistItem.sort_order",
    )
    comments = db.relationship(
        "Comment", back_populates="task",
        cascade="all, delete-orphan",
        order_by="Comment.created_at",
    )
    attachments = db.relationship(
        "Attachment", back_populates="task",
        cascade="all, delete-orphan",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "parent_id": self.parent_id,
            "creator_id": self.creator_id,
            "assignee_id": self.assignee_id,
            "title": self.title,
            "description": self.description,
            "status": self.status,
            "priority": self.priority,
            "type": self.type,
            "due_date": iso(self.due_date),
            "estimated_hours": self.estimated_hours,
            "actual_hours": self.actual_hours,
            "sort_order": self.sort_order,
            "is_milestone": bool(self.is_milestone),
            "calendar_event_id": self.calendar_event_id,
            "todo_item_id": self.todo_item_id,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }

    def __repr__(self):
        return f"<ProjectTask {self.id}: {self.title[:40]}>"


class ChecklistItem(db.Model):
    __tablename__ = "task_checklist_items"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    task_id = db.Column(
        db.String(36),
        db.ForeignKey("project_tasks.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title = db.Column(db.String(500), nullable=False)
    is_completed = db.Column(db.Boolean, nullable=False, default=False)
    sort_order = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    task = db.relationship("ProjectTask", back_populates="checklist_items")

    def to_dict(self):
        return {
            "id": self.id,
            "task_id": self.task_id,
            "title": self.title,
            "is_completed": bool(self.is_completed),
            "sort_order": self.sort_order,
            "created_at": iso(self.created_at),
        }


class Comment(db.Model):
    """Append-only discussion entry on a task."""

    __tablename__ = "task_comments"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    task_id = db.Column(
        db.String(36),
        db.ForeignKey("project_tasks.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    author_id = db.Column(
        db.String(36),
        db.ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
    )
    content = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    task = db.relationship("ProjectTask", back_populates="comments")
    author = db.relationship("User")

    def to_dict(self):
        return {
            "id": self.id,
            "task_id": self.task_id,
            "author_id": self.author_id,
            "author": self.author.to_summary() if self.author else None,
            "content": self.content,
            "created_at": iso(self.created_at),
        }


class Attachment(db.Model):
    """Attachment metadata. ``file_url`` is an opaque storage locator."""

    __tablename__ = "task_attachments"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    task_id = db.Column(
        db.String(36),
        db.ForeignKey("project_tasks.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    file_name = db.Column(db.String(500), nullable=False)
    file_url = db.Column(db.String(1000), nullable=False)
    file_size = db.Column(db.BigInteger, nullable=False, default=0)
    mime_type = db.Column(db.String(200), nullable=True)
    uploaded_by_id = db.Column(
        db.String(36),
        db.ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    task = db.relationship("ProjectTask", back_populates="attachments")

    def to_dict(self):
        return {
            "id": self.id,
            "task_id": self.task_id,
            "file_name": self.file_name,
            "file_url": self.file_url,
            "file_size": self.file_size,
            "mime_type": self.mime_type,
            "uploaded_by_id": self.uploaded_by_id,
            "created_at": iso(self.created_at),
        }
