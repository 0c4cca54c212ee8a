"""Task model.

``column_id`` + ``position`` are the single source of truth for where a task
sits. ``board_id`` is denormalized from the column for board-wide queries.
"""

import uuid

from taskboard.extensions import db
from taskboard.models.user import utcnow


task_assignees = db.Table(
    "task_assignees",
    db.Column(
        "task_id",
        db.String(36),
        db.ForeignKey("tasks.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    db.Column(
        "user_id",
        db.String(36),
        db.ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    ),
)


class Task(db.Model):
    __tablename__ = "tasks"

    # -- Valid priorities, in rank order --
    PRIORITIES = ["low", "medium", "high", "urgent"]

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    board_id = db.Column(
        db.String(36),
        db.ForeignKey("boards.id", ondelete="CASCADE"),
        nullable=False,
    )
    column_id = db.Column(
        db.String(36),
        db.ForeignKey("columns.id", ondelete="CASCADE"),
        nullable=False,
    )
    title = db.Column(db.String(500), nullable=False)
    description = db.Column(db.Text, nullable=True)
    priority = db.Column(
        db.String(16), default="medium", nullable=False
    )  # low | medium | high | urgent
    tags = db.Column(db.JSON, default=list)
    position = db.Column(db.Integer, nullable=False, default=0)
    due_date = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    # --- Relationships ---
    column = db.relationship("Column", back_populates="tasks")
    assignees = db.relationship("User", secondary=task_assignees, lazy="selectin")

    __table_args__ = (
        db.Index("ix_tasks_board_column_position", "board_id", "column_id", "position"),
    )

    def __repr__(self):
        return f"<Task {self.title[:40]}>"
