"""Storage access for boards, columns, tasks and users.

Thin query helpers over the SQLAlchemy session. They flush but do NOT
commit — the caller commits, so a multi-row reorder lands in one transaction.
"""

from taskboard.extensions import db
from taskboard.models.board import Board, Column
from taskboard.models.task import Task
from taskboard.models.user import User


def _canonical(query):
    return query.order_by(Task.position, Task.created_at, Task.id)


def find_tasks_by_column(column_id, lock=False):
    """Tasks of a column in canonical order.

    With ``lock=True`` the rows are selected FOR UPDATE on databases that
    support it, so two moves touching the same column serialize, and rows
    already in the session are refreshed from what the lock returned.
    """
    query = _canonical(Task.query.filter(Task.column_id == column_id))
    if lock:
        query = query.with_for_update().populate_existing()
    return query.all()


def find_tasks_by_board(board_id):
    """Tasks of a board grouped by column position, canonical inside each column."""
    return (
        Task.query
        .join(Column, Column.id == Task.column_id)
        .filter(Task.board_id == board_id)
        .order_by(Column.position, Task.position, Task.created_at, Task.id)
        .all()
    )


def find_task_by_id(task_id, lock=False):
    if lock:
        return (
            Task.query.filter(Task.id == task_id)
            .with_for_update()
            .populate_existing()
            .one_or_none()
        )
    return db.session.get(Task, task_id)


def insert_task(task):
    db.session.add(task)
    db.session.flush()
    return task


def update_task_fields(task_id, fields):
    """Set attributes on a task. Returns the task or None if unknown."""
    task = db.session.get(Task, task_id)
    if task is None:
        return None
    for key, value in fields.items():
        setattr(task, key, value)
    db.session.flush()
    return task


def delete_task(task_id):
    """Delete a task. Returns the deleted task or None if unknown."""
    task = db.session.get(Task, task_id)
    if task is None:
        return None
    db.session.delete(task)
    db.session.flush()
    return task


def bulk_increment_order(column_id, threshold, delta, exclude_id=None):
    """Add ``delta`` to the position of every task in a column at or above
    ``threshold``. Returns the number of rows touched.
    """
    query = Task.query.filter(
        Task.column_id == column_id,
        Task.position >= threshold,
    )
    if exclude_id is not None:
        query = query.filter(Task.id != exclude_id)
    count = query.update(
        {Task.position: Task.position + delta},
        synchronize_session="fetch",
    )
    db.session.flush()
    return count


def max_task_position(column_id):
    value = (
        db.session.query(db.func.max(Task.position))
        .filter(Task.column_id == column_id)
        .scalar()
    )
    return value if value is not None else -1


def find_board_by_id(board_id):
    return db.session.get(Board, board_id)


def find_column_by_id(column_id):
    return db.session.get(Column, column_id)


def lock_columns(column_ids):
    """Take row locks on columns in id order.

    Every move locks its columns this way before touching task rows, so two
    moves over the same pair of columns queue instead of deadlocking.
    """
    return (
        Column.query.filter(Column.id.in_(sorted(set(column_ids))))
        .order_by(Column.id)
        .with_for_update()
        .all()
    )


def find_columns_by_board(board_id):
    return (
        Column.query
        .filter_by(board_id=board_id)
        .order_by(Column.position, Column.created_at)
        .all()
    )


def find_users_by_ids(user_ids):
    ids = list(dict.fromkeys(user_ids or []))
    if not ids:
        return []
    return User.query.filter(User.id.in_(ids)).all()


def task_ids_by_column(board_id):
    """Derived column -> [task id] listing in canonical order."""
    grouped = {}
    for task in find_tasks_by_board(board_id):
        grouped.setdefault(task.column_id, []).append(task.id)
    return grouped
