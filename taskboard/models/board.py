"""Board and column models.

- Board: owns an ordered list of columns and a set of member users.
- Column: a lane inside a board, ordered by ``position``.

Task membership of a column lives on ``Task.column_id`` / ``Task.position``;
columns never store their own task list.
"""

import uuid

from taskboard.extensions import db
from taskboard.models.user import utcnow


board_members = db.Table(
    "board_members",
    db.Column(
        "board_id",
        db.String(36),
        db.ForeignKey("boards.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    db.Column(
        "user_id",
        db.String(36),
        db.ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    ),
)


class Board(db.Model):
    __tablename__ = "boards"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    owner_id = db.Column(
        db.String(36), db.ForeignKey("users.id"), nullable=False
    )
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    # --- Relationships ---
    owner = db.relationship("User", foreign_keys=[owner_id])
    members = db.relationship("User", secondary=board_members, lazy="selectin")
    columns = db.relationship(
        "Column",
        back_populates="board",
        cascade="all, delete-orphan",
        order_by="Column.position",
    )

    def __repr__(self):
        return f"<Board {self.title}>"


class Column(db.Model):
    __tablename__ = "columns"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    board_id = db.Column(
        db.String(36),
        db.ForeignKey("boards.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title = db.Column(db.String(255), nullable=False)
    position = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    board = db.relationship("Board", back_populates="columns")
    tasks = db.relationship(
        "Task",
        back_populates="column",
        cascade="all, delete-orphan",
        order_by="Task.position",
    )

    def __repr__(self):
        return f"<Column {self.title}>"
