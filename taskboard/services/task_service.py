"""Task service — CRUD and the authoritative move.

``move_task`` recomputes positions from the rows as they are persisted at the
moment it runs (never from a client snapshot), so two racing moves always
leave every column as a valid permutation. Whichever request commits last
wins; that outcome is accepted, not reported as an error.

Functions flush but do NOT commit — the caller commits once, which makes a
multi-row reorder atomic for concurrent readers.
"""

import logging
from collections import namedtuple
from datetime import datetime, timezone

from taskboard import repository
from taskboard.errors import NotFoundError, ValidationError
from taskboard.extensions import db
from taskboard.models.task import Task
from taskboard.ordering import Slot, canonical_key, compute_reorder
from taskboard.services.sanitize import sanitize, sanitize_tags

logger = logging.getLogger(__name__)

MoveOutcome = namedtuple("MoveOutcome", ["task", "affected_tasks", "source_column_id", "moved"])

UPDATABLE_FIELDS = ("title", "description", "priority", "tags", "assignee_ids", "due_date")


def _parse_due_date(value):
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str):
        raise ValidationError("due_date must be an ISO 8601 string.")
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        raise ValidationError(f"Invalid due_date '{value}'.")


def _check_priority(priority):
    if priority not in Task.PRIORITIES:
        raise ValidationError(
            f"Invalid priority '{priority}'. Must be one of: {', '.join(Task.PRIORITIES)}"
        )
    return priority


def _resolve_assignees(assignee_ids):
    if assignee_ids is None:
        return []
    if not isinstance(assignee_ids, (list, tuple)):
        raise ValidationError("assignee_ids must be a list of user ids.")
    users = repository.find_users_by_ids(assignee_ids)
    unknown = set(assignee_ids) - {u.id for u in users}
    if unknown:
        raise ValidationError(f"Unknown assignees: {', '.join(sorted(unknown))}")
    return users


def _check_index(name, value):
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{name} must be an integer.")
    return value


def get_task(task_id):
    task = repository.find_task_by_id(task_id)
    if task is None:
        raise NotFoundError(f"Task {task_id} not found.")
    return task


def list_board_tasks(board_id):
    if repository.find_board_by_id(board_id) is None:
        raise NotFoundError(f"Board {board_id} not found.")
    return repository.find_tasks_by_board(board_id)


def create_task(
    board_id,
    column_id,
    title,
    priority="medium",
    tags=None,
    assignee_ids=None,
    description=None,
    due_date=None,
):
    """Create a task at the end of its column.

    Raises:
        ValidationError: If the title is empty or a field is invalid.
        NotFoundError: If the column does not exist on the board.
    """
    title = sanitize(title)
    if not title:
        raise ValidationError("Title is required.")
    priority = _check_priority(priority or "medium")
    tags = sanitize_tags(tags)
    assignees = _resolve_assignees(assignee_ids)
    due = _parse_due_date(due_date)

    column = repository.find_column_by_id(column_id)
    if column is None or (board_id and column.board_id != board_id):
        raise NotFoundError(f"Column {column_id} not found on board {board_id}.")

    task = Task(
        board_id=column.board_id,
        column_id=column.id,
        title=title,
        description=sanitize(description) or None,
        priority=priority,
        tags=tags,
        assignees=assignees,
        position=repository.max_task_position(column.id) + 1,
        due_date=due,
    )
    repository.insert_task(task)
    logger.info(f"Task {task.id} created in column {column.id}")
    return task


def update_task(task_id, fields):
    """Apply a partial field update (last write wins).

    Column and position are not editable here; use move_task.
    """
    task = get_task(task_id)
    if "column_id" in fields or "position" in fields:
        raise ValidationError("Use the move operation to change column or position.")
    unknown = set(fields) - set(UPDATABLE_FIELDS) - {"id", "board_id"}
    if unknown:
        raise ValidationError(f"Unknown fields: {', '.join(sorted(unknown))}")

    changes = {}
    if "title" in fields:
        title = sanitize(fields["title"])
        if not title:
            raise ValidationError("Title is required.")
        changes["title"] = title
    if "description" in fields:
        changes["description"] = sanitize(fields["description"]) or None
    if "priority" in fields:
        changes["priority"] = _check_priority(fields["priority"])
    if "tags" in fields:
        changes["tags"] = sanitize_tags(fields["tags"])
    if "assignee_ids" in fields:
        changes["assignees"] = _resolve_assignees(fields["assignee_ids"])
    if "due_date" in fields:
        changes["due_date"] = _parse_due_date(fields["due_date"])

    if changes:
        changes["updated_at"] = datetime.now(timezone.utc)
        repository.update_task_fields(task.id, changes)
    return task


def delete_task(task_id):
    """Delete a task and close the gap it leaves in its column.

    Returns:
        (task_id, column_id, board_id) of the deleted task.
    """
    task = get_task(task_id)
    column_id, board_id, position = task.column_id, task.board_id, task.position
    repository.delete_task(task.id)
    repository.bulk_increment_order(column_id, position + 1, -1)
    logger.info(f"Task {task_id} deleted from column {column_id}")
    return task_id, column_id, board_id


def move_task(task_id, source_column_id, dest_column_id, source_index, dest_index):
    """Move a task to ``dest_index`` of ``dest_column_id``.

    Args:
        task_id: Task to move.
        source_column_id: Column the caller believes holds the task.
        dest_column_id: Destination column (same board).
        source_index: Caller's view of the task's current index.
        dest_index: Target index; beyond the end appends.

    Returns:
        MoveOutcome. ``affected_tasks`` is every task of the source and
        destination columns after the move, source column first, each in
        canonical order. ``source_column_id`` is the persisted column the
        task was taken from. ``moved`` is False for a no-op.

    Raises:
        NotFoundError: Unknown task or destination column.
        ValidationError: Bad indices or a destination on another board.
    """
    _check_index("source_index", source_index)
    _check_index("dest_index", dest_index)

    task = get_task(task_id)
    dest_column = repository.find_column_by_id(dest_column_id)
    if dest_column is None:
        raise NotFoundError(f"Column {dest_column_id} not found.")
    if dest_column.board_id != task.board_id:
        raise ValidationError("Cannot move a task to another board.")

    # Re-read the task once its columns are locked; another move may have
    # committed in between.
    locked = {task.column_id, dest_column.id}
    repository.lock_columns(locked)
    task = repository.find_task_by_id(task_id, lock=True)
    if task is None:
        raise NotFoundError(f"Task {task_id} not found.")
    if task.column_id not in locked:
        logger.warning(f"Task {task_id} moved to column {task.column_id} while waiting for locks")
        repository.lock_columns([task.column_id])

    actual_source = task.column_id
    if source_column_id != actual_source:
        logger.info(
            f"Stale move of task {task_id}: client says column {source_column_id}, "
            f"persisted column is {actual_source}"
        )

    columns = {
        cid: repository.find_tasks_by_column(cid, lock=True)
        for cid in sorted({actual_source, dest_column.id})
    }
    by_id = {t.id: t for tasks in columns.values() for t in tasks}
    plan = compute_reorder(
        task.id,
        actual_source,
        dest_column.id,
        source_index,
        dest_index,
        {cid: [Slot(t.id, t.position) for t in tasks] for cid, tasks in columns.items()},
    )

    if not plan.is_noop:
        for tid, placement in plan.placements.items():
            moved = by_id[tid]
            moved.column_id = placement.column_id
            moved.position = placement.position
        task.updated_at = datetime.now(timezone.utc)
        db.session.flush()
        logger.info(
            f"Moved task {task_id} to column {dest_column.id} index {plan.dest_index} "
            f"({len(plan.placements)} tasks repositioned)"
        )

    affected = sorted(
        by_id.values(),
        key=lambda t: (
            0 if t.column_id == actual_source else 1,
            canonical_key(t.position, t.created_at, t.id),
        ),
    )
    return MoveOutcome(task, affected, actual_source, not plan.is_noop)
