"""Task comments — append-only."""

from app.core.exceptions import ValidationError
from app.models import db
from app.models.task import Comment, ProjectTask
from app.services.helpers.scoped_queries import get_or_raise


def list_comments(task_id: str) -> list[Comment]:
    get_or_raise(ProjectTask, task_id, resource="Task")
    return (
        Comment.query
        .filter_by(task_id=task_id)
        .order_by(Comment.created_at.asc())
        .all()
    )


def add_comment(task_id: str, author_id: str, content) -> Comment:
    task = get_or_raise(ProjectTask, task_id, resource="Task")
    content = str(content or "").strip()
    if not content:
        raise ValidationError("content is required", details={"content": "required"})
    comment = Comment(task_id=task.id, author_id=author_id, content=content)
    db.session.add(comment)
    db.session.commit()
    return comment
