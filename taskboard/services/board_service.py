"""Board service — boards, membership and columns.

Column positions are kept contiguous (0..n-1) per board: creating appends,
deleting closes the gap, reordering renumbers from the given id list.

Functions flush but do NOT commit — the caller commits.
"""

import logging

from taskboard import repository
from taskboard.errors import NotFoundError, ValidationError
from taskboard.extensions import db
from taskboard.models.board import Board, Column
from taskboard.models.user import User
from taskboard.services.sanitize import sanitize

logger = logging.getLogger(__name__)


def _get_board(board_id):
    board = repository.find_board_by_id(board_id)
    if board is None:
        raise NotFoundError(f"Board {board_id} not found.")
    return board


def _get_column(column_id):
    column = repository.find_column_by_id(column_id)
    if column is None:
        raise NotFoundError(f"Column {column_id} not found.")
    return column


def _resolve_members(member_ids):
    if member_ids is None:
        return []
    if not isinstance(member_ids, (list, tuple)):
        raise ValidationError("Members must be a list of user ids.")
    users = repository.find_users_by_ids(member_ids)
    unknown = set(member_ids) - {u.id for u in users}
    if unknown:
        raise ValidationError(f"Unknown users: {', '.join(sorted(unknown))}")
    return users


# ─── Boards ──────────────────────────────────────────────────────

def list_boards(user_id):
    """Boards the user owns or is a member of, most recently updated first."""
    return (
        Board.query
        .outerjoin(Board.members)
        .filter(db.or_(Board.owner_id == user_id, User.id == user_id))
        .distinct()
        .order_by(Board.updated_at.desc())
        .all()
    )


def get_board(board_id):
    return _get_board(board_id)


def create_board(owner, title, description=None, member_ids=None):
    """Create a board owned by ``owner``; the owner is always a member.

    Raises:
        ValidationError: If the title is empty or a member id is unknown.
    """
    title = sanitize(title)
    if not title:
        raise ValidationError("Board title is required.")

    members = _resolve_members(member_ids)
    if owner not in members:
        members.insert(0, owner)

    board = Board(
        title=title,
        description=sanitize(description) or None,
        owner_id=owner.id,
        members=members,
    )
    db.session.add(board)
    db.session.flush()
    logger.info(f"Board {board.id} created by {owner.id}")
    return board


def update_board(board_id, fields):
    """Apply title/description/member_ids changes (last write wins)."""
    board = _get_board(board_id)
    if "title" in fields:
        title = sanitize(fields["title"])
        if not title:
            raise ValidationError("Board title is required.")
        board.title = title
    if "description" in fields:
        board.description = sanitize(fields["description"]) or None
    if "member_ids" in fields:
        members = _resolve_members(fields["member_ids"])
        owner = db.session.get(User, board.owner_id)
        if owner is not None and owner not in members:
            members.insert(0, owner)
        board.members = members
    db.session.flush()
    return board


def delete_board(board_id):
    board = _get_board(board_id)
    db.session.delete(board)
    db.session.flush()
    logger.info(f"Board {board_id} deleted")


# ─── Columns ─────────────────────────────────────────────────────

def create_column(board_id, title):
    """Append a column; its position is the current column count.

    Raises:
        NotFoundError: If the board does not exist.
        ValidationError: If the title is empty.
    """
    board = _get_board(board_id)
    title = sanitize(title)
    if not title:
        raise ValidationError("Column title is required.")

    column = Column(
        board_id=board.id,
        title=title,
        position=len(repository.find_columns_by_board(board.id)),
    )
    db.session.add(column)
    db.session.flush()
    return column


def update_column(column_id, fields):
    column = _get_column(column_id)
    if "title" in fields:
        title = sanitize(fields["title"])
        if not title:
            raise ValidationError("Column title is required.")
        column.title = title
    db.session.flush()
    return column


def delete_column(column_id):
    """Delete a column and its tasks, then close the gap in column positions."""
    column = _get_column(column_id)
    board_id = column.board_id
    db.session.delete(column)
    db.session.flush()
    for position, remaining in enumerate(repository.find_columns_by_board(board_id)):
        if remaining.position != position:
            remaining.position = position
    db.session.flush()
    return board_id


def reorder_columns(board_id, column_ids):
    """Renumber a board's columns to follow ``column_ids``.

    The list must be a permutation of the board's column ids.
    """
    board = _get_board(board_id)
    if not isinstance(column_ids, list):
        raise ValidationError("column_ids must be a list.")
    columns = {c.id: c for c in repository.find_columns_by_board(board.id)}
    if len(column_ids) != len(columns) or set(column_ids) != set(columns):
        raise ValidationError("column_ids must list every column of the board exactly once.")
    for position, cid in enumerate(column_ids):
        if columns[cid].position != position:
            columns[cid].position = position
    db.session.flush()
    db.session.refresh(board)
    return board
