"""Project domain model for the Workspace -> Project hierarchy."""

from app.models import db
from app.models.base import iso, new_id, utcnow

PROJECT_STATUSES = ("planning", "active", "on_hold", "completed", "archived")


class Project(db.Model):
    """Container of tasks inside a workspace."""

    __tablename__ = "projects"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    workspace_id = db.Column(
        db.String(36),
        db.ForeignKey("workspaces.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    status = db.Column(
        db.String(20), nullable=False, default="active",
        comment="planning | active | on_hold | completed | archived",
    )
    start_date = db.Column(db.Date, nullable=True)
    target_date = db.Column(db.Date, nullable=True)
    budget = db.Column(db.Numeric(14, 2), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow,
    )

    workspace = db.relationship("Workspace", back_populates="projects")
    tasks = db.relationship(
        "ProjectTask", back_populates="project", lazy="dynamic",
        cascade="all, delete-orphan", passive_deletes=True,
    )

    def to_dict(self, include_task_count=False):
        d = {
            "id": self.id,
            "workspace_id": self.workspace_id,
            "name": self.name,
            "description": self.description,
            "status": self.status,
            "start_date": iso(self.start_date),
            "target_date": iso(self.target_date),
            "budget": float(self.budget) if self.budget is not None else None,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }
        if include_task_count:
            d["task_count"] = self.tasks.count()
        return d

    def __repr__(self):
        return f"<Project {self.name}>"
