"""JSON-safe dict views of the models.

These shapes are the wire format for both the RPC responses and the
broadcast events (see taskboard.events), so a client can replace a local
entity with either without translation.
"""

from taskboard.events import iso_utc


def user_dict(user):
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "avatar_url": user.avatar_url,
        "color": user.color,
    }


def task_dict(task):
    """Serialize a Task with its assignees resolved to user records."""
    return {
        "id": task.id,
        "board_id": task.board_id,
        "column_id": task.column_id,
        "title": task.title,
        "description": task.description,
        "priority": task.priority,
        "tags": list(task.tags or []),
        "assignees": [user_dict(u) for u in sorted(task.assignees, key=lambda u: u.name)],
        "position": task.position,
        "due_date": iso_utc(task.due_date),
        "created_at": iso_utc(task.created_at),
        "updated_at": iso_utc(task.updated_at),
    }


def column_dict(column, task_ids=None):
    """Serialize a Column.

    ``task_ids`` is a derived, read-only listing of the column's tasks in
    canonical order; it is never read back as a source of truth.
    """
    return {
        "id": column.id,
        "board_id": column.board_id,
        "title": column.title,
        "position": column.position,
        "task_ids": list(task_ids or []),
        "created_at": iso_utc(column.created_at),
        "updated_at": iso_utc(column.updated_at),
    }


def board_dict(board, task_ids_by_column=None):
    task_ids_by_column = task_ids_by_column or {}
    return {
        "id": board.id,
        "title": board.title,
        "description": board.description,
        "owner_id": board.owner_id,
        "members": [user_dict(u) for u in sorted(board.members, key=lambda u: u.name)],
        "columns": [
            column_dict(c, task_ids_by_column.get(c.id))
            for c in sorted(board.columns, key=lambda c: (c.position, c.id))
        ],
        "created_at": iso_utc(board.created_at),
        "updated_at": iso_utc(board.updated_at),
    }
