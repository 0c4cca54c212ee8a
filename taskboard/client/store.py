"""Optimistic mutation store.

A client-side replica of boards, columns and tasks (flat dicts keyed by id)
that applies the user's own mutations immediately and reconciles them when
the server answers:

    issue_*()  -> action ISSUED, replica already shows the change
    confirm()  -> action CONFIRMED, replica takes the server's version
    rollback() -> action ROLLED_BACK, replica restored from the pre-image

Each action captures a per-task pre-image and post-image (None = absent).
Rollback only restores a task that still equals its post-image; if an
authoritative event from another user overwrote it in the meantime, that
newer state wins.

All methods take the store lock because broadcast events arrive on the
Socket.IO client's background thread.
"""

import copy
import logging
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Optional

from taskboard.errors import NotFoundError, ValidationError
from taskboard.events import iso_utc, now_ms
from taskboard.ordering import Slot, compute_reorder
from taskboard.client.views import (
    FilterOptions,
    SortOptions,
    filter_and_sort,
    group_by_column,
    task_sort_key,
)

logger = logging.getLogger(__name__)

PLACEHOLDER_PREFIX = "temp-"
EDITABLE_FIELDS = ("title", "description", "priority", "tags", "assignee_ids", "due_date")
PRIORITIES = ("low", "medium", "high", "urgent")


class ActionKind(str, Enum):
    CREATE = "create-task"
    UPDATE = "update-task"
    DELETE = "delete-task"
    MOVE = "move-task"


class ActionState(str, Enum):
    ISSUED = "issued"
    CONFIRMED = "confirmed"
    ROLLED_BACK = "rolled-back"


@dataclass
class OptimisticAction:
    id: str
    kind: ActionKind
    task_id: str
    pre_image: Dict[str, Optional[dict]] = field(default_factory=dict)
    post_image: Dict[str, Optional[dict]] = field(default_factory=dict)
    placeholder_id: Optional[str] = None
    source_column_id: Optional[str] = None
    dest_column_id: Optional[str] = None
    timestamp: int = field(default_factory=now_ms)
    state: ActionState = ActionState.ISSUED
    error: Optional[Exception] = None


@dataclass
class Notification:
    level: str  # success | error | info
    message: str
    action_id: Optional[str] = None
    timestamp: int = field(default_factory=now_ms)


def is_placeholder(task_id):
    return isinstance(task_id, str) and task_id.startswith(PLACEHOLDER_PREFIX)


def _iso_now():
    return iso_utc(datetime.now(timezone.utc))


class OptimisticStore:
    """Replica of one user's boards with optimistic task mutations.

    Subscribers register with ``subscribe(event_type, callback)``:
      changed       (revision)      replica or view options changed
      notification  (notification)  a mutation succeeded or failed
      presence      (board_id)      viewer set changed
      typing        (task_id)       typing set changed
    """

    def __init__(self, user_id=None):
        self.user_id = user_id
        self._lock = threading.RLock()
        self._boards = {}
        self._columns = {}
        self._tasks = {}
        self._actions = {}
        self._viewers = {}
        self._typing = {}
        self._filter = FilterOptions()
        self._sort = SortOptions()
        self._revision = 0
        self._view_cache = {}
        self._subscribers = {}
        self._closed = False
        self.notifications = []

    # ─── Subscriptions ───────────────────────────────────────────

    def subscribe(self, event_type, callback):
        """Register a callback. Returns a function that unregisters it."""
        with self._lock:
            self._subscribers.setdefault(event_type, []).append(callback)

        def unsubscribe():
            with self._lock:
                callbacks = self._subscribers.get(event_type, [])
                if callback in callbacks:
                    callbacks.remove(callback)

        return unsubscribe

    def _emit(self, event_type, *args):
        for callback in list(self._subscribers.get(event_type, [])):
            try:
                callback(*args)
            except Exception as e:
                logger.error(f"Error in {event_type} subscriber: {e}")

    def _touch(self):
        self._revision += 1
        self._view_cache.clear()
        self._emit("changed", self._revision)

    def notify(self, level, message, action_id=None):
        note = Notification(level=level, message=message, action_id=action_id)
        with self._lock:
            self.notifications.append(note)
            self._emit("notification", note)
        return note

    # ─── Lifecycle ───────────────────────────────────────────────

    @property
    def closed(self):
        return self._closed

    @property
    def revision(self):
        return self._revision

    def close(self):
        """Unmount the store. Late confirms/rollbacks are dropped afterwards."""
        with self._lock:
            self._closed = True
            self._subscribers.clear()
            logger.debug(f"Store closed with {len(self._actions)} pending actions")

    # ─── Read access ─────────────────────────────────────────────

    def get_task(self, task_id):
        with self._lock:
            task = self._tasks.get(task_id)
            return copy.deepcopy(task) if task is not None else None

    def get_column(self, column_id):
        with self._lock:
            column = self._columns.get(column_id)
            return copy.deepcopy(column) if column is not None else None

    def get_board(self, board_id):
        with self._lock:
            board = self._boards.get(board_id)
            return copy.deepcopy(board) if board is not None else None

    def tasks(self, board_id=None):
        with self._lock:
            return [
                copy.deepcopy(t) for t in sorted(self._tasks.values(), key=task_sort_key)
                if board_id is None or t["board_id"] == board_id
            ]

    def columns(self, board_id):
        with self._lock:
            return [
                copy.deepcopy(c)
                for c in sorted(self._columns.values(), key=lambda c: (c["position"], c["id"]))
                if c["board_id"] == board_id
            ]

    def column_task_ids(self, column_id):
        with self._lock:
            return [t["id"] for t in self._column_tasks(column_id)]

    def snapshot(self):
        """Deep copy of the replica (boards, columns, tasks)."""
        with self._lock:
            return copy.deepcopy({
                "boards": self._boards,
                "columns": self._columns,
                "tasks": self._tasks,
            })

    def pending_actions(self):
        with self._lock:
            return list(self._actions.values())

    def is_pending(self, task_id):
        """True while an issued action touches ``task_id``."""
        with self._lock:
            return any(
                a.task_id == task_id or a.placeholder_id == task_id
                for a in self._actions.values()
            )

    def _column_tasks(self, column_id):
        return sorted(
            (t for t in self._tasks.values() if t["column_id"] == column_id),
            key=task_sort_key,
        )

    # ─── Authoritative writes (RPC results and broadcast events) ──

    def load_board(self, board, tasks):
        """Replace everything known about a board with server state.

        Placeholders of still-pending creates on that board are kept.
        """
        with self._lock:
            board = copy.deepcopy(board)
            columns = board.pop("columns", [])
            board_id = board["id"]
            self._boards[board_id] = board

            for cid in [c for c, col in self._columns.items() if col["board_id"] == board_id]:
                del self._columns[cid]
            for column in columns:
                self._columns[column["id"]] = dict(column)

            self._replace_board_tasks(board_id, tasks)
            self._touch()

    def replace_tasks(self, board_id, tasks):
        with self._lock:
            self._replace_board_tasks(board_id, tasks)
            self._touch()

    def _replace_board_tasks(self, board_id, tasks):
        pending = self._pending_placeholders()
        for tid in [t for t, task in self._tasks.items() if task["board_id"] == board_id]:
            if tid not in pending:
                del self._tasks[tid]
        for task in tasks:
            self._tasks[task["id"]] = copy.deepcopy(task)

    def _pending_placeholders(self):
        return {a.placeholder_id for a in self._actions.values() if a.placeholder_id}

    def _pending_moves(self):
        return {a.task_id for a in self._actions.values() if a.kind == ActionKind.MOVE}

    def upsert_task(self, task):
        with self._lock:
            self._tasks[task["id"]] = copy.deepcopy(task)
            self._touch()

    def remove_task(self, task_id, close_gap=False):
        """Drop a task. With ``close_gap`` later tasks of its column move up one."""
        with self._lock:
            task = self._tasks.pop(task_id, None)
            if task is None:
                return False
            if close_gap:
                for other in self._tasks.values():
                    if other["column_id"] == task["column_id"] and other["position"] > task["position"]:
                        other["position"] -= 1
            self._touch()
            return True

    def replace_column_slices(self, column_ids, tasks):
        """Overwrite the listed columns with ``tasks``.

        Pending placeholders survive, and so does the task of a pending local
        move when ``tasks`` does not mention it.
        """
        with self._lock:
            self._replace_slices(column_ids, tasks)
            self._touch()

    def _replace_slices(self, column_ids, tasks):
        column_ids = set(column_ids)
        pending = self._pending_placeholders() | self._pending_moves()
        incoming = {t["id"] for t in tasks}
        for tid, task in list(self._tasks.items()):
            if tid in incoming or (task["column_id"] in column_ids and tid not in pending):
                del self._tasks[tid]
        for task in tasks:
            self._tasks[task["id"]] = copy.deepcopy(task)

    def upsert_column(self, column):
        with self._lock:
            self._columns[column["id"]] = dict(column)
            self._touch()

    def remove_column(self, column_id):
        """Drop a column, its tasks, and renumber the board's remaining columns."""
        with self._lock:
            column = self._columns.pop(column_id, None)
            if column is None:
                return False
            for tid in [t for t, task in self._tasks.items() if task["column_id"] == column_id]:
                del self._tasks[tid]
            remaining = sorted(
                (c for c in self._columns.values() if c["board_id"] == column["board_id"]),
                key=lambda c: (c["position"], c["id"]),
            )
            for position, other in enumerate(remaining):
                other["position"] = position
            self._touch()
            return True

    def upsert_board(self, board):
        """Overwrite a board; its column list is authoritative when present."""
        with self._lock:
            board = copy.deepcopy(board)
            columns = board.pop("columns", None)
            self._boards[board["id"]] = board
            if columns is not None:
                listed = {c["id"] for c in columns}
                for cid in [c for c, col in self._columns.items()
                            if col["board_id"] == board["id"] and c not in listed]:
                    del self._columns[cid]
                for column in columns:
                    self._columns[column["id"]] = dict(column)
            self._touch()

    def remove_board(self, board_id):
        with self._lock:
            self._boards.pop(board_id, None)
            for cid in [c for c, col in self._columns.items() if col["board_id"] == board_id]:
                del self._columns[cid]
            for tid in [t for t, task in self._tasks.items() if task["board_id"] == board_id]:
                del self._tasks[tid]
            self._touch()

    # ─── Presence and typing ─────────────────────────────────────

    def set_viewers(self, board_id, user_ids):
        with self._lock:
            self._viewers[board_id] = set(user_ids)
            self._emit("presence", board_id)

    def add_viewer(self, board_id, user_id):
        with self._lock:
            self._viewers.setdefault(board_id, set()).add(user_id)
            self._emit("presence", board_id)

    def remove_viewer(self, board_id, user_id):
        with self._lock:
            self._viewers.get(board_id, set()).discard(user_id)
            for task_id in list(self._typing):
                if user_id in self._typing[task_id]:
                    self._set_typing(task_id, user_id, False)
            self._emit("presence", board_id)

    def viewers(self, board_id):
        with self._lock:
            return sorted(self._viewers.get(board_id, ()))

    def set_typing(self, task_id, user_id, active):
        with self._lock:
            self._set_typing(task_id, user_id, active)

    def _set_typing(self, task_id, user_id, active):
        users = self._typing.setdefault(task_id, set())
        if active:
            users.add(user_id)
        else:
            users.discard(user_id)
            if not users:
                del self._typing[task_id]
        self._emit("typing", task_id)

    def typing_users(self, task_id):
        with self._lock:
            return sorted(self._typing.get(task_id, ()))

    # ─── Optimistic issue ────────────────────────────────────────

    def _new_action(self, kind, task_id, **kwargs):
        action = OptimisticAction(id=str(uuid.uuid4()), kind=kind, task_id=task_id, **kwargs)
        self._actions[action.id] = action
        return action

    def _board_users(self, board_id, user_ids):
        members = {m["id"]: m for m in (self._boards.get(board_id) or {}).get("members", [])}
        return sorted(
            (copy.deepcopy(members[uid]) for uid in dict.fromkeys(user_ids or []) if uid in members),
            key=lambda u: u["name"],
        )

    def _apply_changes(self, task, changes):
        """Return a copy of ``task`` with editable ``changes`` applied."""
        if "column_id" in changes or "position" in changes:
            raise ValidationError("Use the move operation to change column or position.")
        unknown = set(changes) - set(EDITABLE_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown fields: {', '.join(sorted(unknown))}")
        updated = copy.deepcopy(task)
        for key, value in changes.items():
            if key == "assignee_ids":
                updated["assignees"] = self._board_users(task["board_id"], value)
            elif key == "title":
                if not (value or "").strip():
                    raise ValidationError("Title is required.")
                updated["title"] = value.strip()
            elif key == "priority":
                if value not in PRIORITIES:
                    raise ValidationError(f"Invalid priority '{value}'.")
                updated["priority"] = value
            elif key == "tags":
                updated["tags"] = list(dict.fromkeys(value or []))
            else:
                updated[key] = value
        updated["updated_at"] = _iso_now()
        return updated

    def issue_create(self, data):
        """Insert a placeholder task at the end of its column.

        ``data`` needs board_id, column_id and title; optional description,
        priority, tags, assignee_ids, due_date.
        """
        with self._lock:
            title = (data.get("title") or "").strip()
            if not title:
                raise ValidationError("Title is required.")
            column = self._columns.get(data.get("column_id"))
            if column is None:
                raise NotFoundError(f"Column {data.get('column_id')} not found.")

            placeholder_id = f"{PLACEHOLDER_PREFIX}{uuid.uuid4()}"
            existing = self._column_tasks(column["id"])
            now = _iso_now()
            task = {
                "id": placeholder_id,
                "board_id": column["board_id"],
                "column_id": column["id"],
                "title": title,
                "description": data.get("description"),
                "priority": data.get("priority") or "medium",
                "tags": list(dict.fromkeys(data.get("tags") or [])),
                "assignees": self._board_users(column["board_id"], data.get("assignee_ids")),
                "position": (existing[-1]["position"] + 1) if existing else 0,
                "due_date": data.get("due_date"),
                "created_at": now,
                "updated_at": now,
            }
            if task["priority"] not in PRIORITIES:
                raise ValidationError(f"Invalid priority '{task['priority']}'.")

            self._tasks[placeholder_id] = task
            action = self._new_action(
                ActionKind.CREATE,
                placeholder_id,
                placeholder_id=placeholder_id,
                pre_image={placeholder_id: None},
                post_image={placeholder_id: copy.deepcopy(task)},
                dest_column_id=column["id"],
            )
            self._touch()
            return action

    def issue_update(self, task_id, changes):
        with self._lock:
            task = self._tasks.get(task_id)
            if task is None:
                raise NotFoundError(f"Task {task_id} not found.")
            updated = self._apply_changes(task, changes)
            self._tasks[task_id] = updated
            action = self._new_action(
                ActionKind.UPDATE,
                task_id,
                pre_image={task_id: copy.deepcopy(task)},
                post_image={task_id: copy.deepcopy(updated)},
            )
            self._touch()
            return action

    def issue_delete(self, task_id):
        """Remove a task and close the gap in its column, as the server will."""
        with self._lock:
            task = self._tasks.get(task_id)
            if task is None:
                raise NotFoundError(f"Task {task_id} not found.")
            pre, post = {task_id: copy.deepcopy(task)}, {task_id: None}
            del self._tasks[task_id]
            for other in self._column_tasks(task["column_id"]):
                if other["position"] > task["position"]:
                    pre[other["id"]] = copy.deepcopy(other)
                    other["position"] -= 1
                    post[other["id"]] = copy.deepcopy(other)
            action = self._new_action(
                ActionKind.DELETE,
                task_id,
                pre_image=pre,
                post_image=post,
                source_column_id=task["column_id"],
            )
            self._touch()
            return action

    def issue_move(self, task_id, source_column_id, dest_column_id, source_index, dest_index):
        """Speculatively reorder using the same algorithm as the server."""
        with self._lock:
            task = self._tasks.get(task_id)
            if task is None:
                raise NotFoundError(f"Task {task_id} not found.")
            dest = self._columns.get(dest_column_id)
            if dest is None:
                raise NotFoundError(f"Column {dest_column_id} not found.")
            if dest["board_id"] != task["board_id"]:
                raise ValidationError("Cannot move a task to another board.")

            actual_source = task["column_id"]
            sequences = {
                cid: [Slot(t["id"], t["position"]) for t in self._column_tasks(cid)]
                for cid in {actual_source, dest_column_id}
            }
            plan = compute_reorder(
                task_id, actual_source, dest_column_id, source_index, dest_index, sequences
            )

            pre, post = {}, {}
            for tid, placement in plan.placements.items():
                current = self._tasks[tid]
                pre[tid] = copy.deepcopy(current)
                current["column_id"] = placement.column_id
                current["position"] = placement.position
                post[tid] = copy.deepcopy(current)

            action = self._new_action(
                ActionKind.MOVE,
                task_id,
                pre_image=pre,
                post_image=post,
                source_column_id=actual_source,
                dest_column_id=dest_column_id,
            )
            if not plan.is_noop:
                self._touch()
            return action

    # ─── Reconcile ───────────────────────────────────────────────

    def _take(self, action_id, verb):
        if self._closed:
            logger.debug(f"Dropped late {verb} of action {action_id}: store closed")
            return None
        action = self._actions.pop(action_id, None)
        if action is None:
            logger.debug(f"Dropped {verb} of unknown action {action_id}")
        return action

    def confirm(self, action_id, result):
        """Adopt the server's answer for an issued action."""
        with self._lock:
            action = self._take(action_id, "confirm")
            if action is None:
                return None

            if action.kind == ActionKind.CREATE:
                self._tasks.pop(action.placeholder_id, None)
                self._tasks[result["id"]] = copy.deepcopy(result)
                action.task_id = result["id"]
                message = f"Task \"{result['title']}\" created"
            elif action.kind == ActionKind.UPDATE:
                self._tasks[result["id"]] = copy.deepcopy(result)
                message = f"Task \"{result['title']}\" updated"
            elif action.kind == ActionKind.DELETE:
                self._tasks.pop(action.task_id, None)
                message = "Task deleted"
            else:
                affected = result["affected_tasks"]
                columns = {t["column_id"] for t in affected} | {action.dest_column_id}
                self._replace_slices(columns, affected)
                self._tasks[result["task"]["id"]] = copy.deepcopy(result["task"])
                message = "Task moved"

            action.state = ActionState.CONFIRMED
            self._touch()
        self.notify("success", message, action.id)
        return action

    def rollback(self, action_id, error=None):
        """Undo an issued action from its pre-image.

        A task is restored only if it still equals the optimistic post-image.
        """
        with self._lock:
            action = self._take(action_id, "rollback")
            if action is None:
                return None

            for tid, before in action.pre_image.items():
                expected = action.post_image.get(tid)
                if self._tasks.get(tid) != expected:
                    logger.debug(f"Rollback of {action.kind.value} skipped task {tid}: changed since")
                    continue
                if before is None:
                    self._tasks.pop(tid, None)
                else:
                    self._tasks[tid] = copy.deepcopy(before)

            action.state = ActionState.ROLLED_BACK
            action.error = error
            self._touch()
            logger.info(f"Rolled back {action.kind.value} of {action.task_id}: {error}")
        self.notify("error", f"Could not {action.kind.value.replace('-', ' ')}: {error}", action.id)
        return action

    # ─── Views ───────────────────────────────────────────────────

    @property
    def filter_options(self):
        return self._filter

    @property
    def sort_options(self):
        return self._sort

    def set_filter(self, options):
        with self._lock:
            if options != self._filter:
                self._filter = options
                self._touch()

    def set_sort(self, options):
        with self._lock:
            if options != self._sort:
                self._sort = options
                self._touch()

    def visible_tasks(self):
        """Filtered and sorted tasks; recomputed only when inputs change."""
        with self._lock:
            key = ("visible", self._revision, self._filter, self._sort)
            if key not in self._view_cache:
                self._view_cache[key] = filter_and_sort(
                    self._tasks.values(), self._filter, self._sort
                )
            return copy.deepcopy(self._view_cache[key])

    def tasks_by_column(self, board_id):
        """Visible tasks grouped per column of ``board_id``, canonical order."""
        with self._lock:
            key = ("columns", board_id, self._revision, self._filter, self._sort)
            if key not in self._view_cache:
                visible = [
                    t for t in filter_and_sort(self._tasks.values(), self._filter, self._sort)
                    if t["board_id"] == board_id
                ]
                column_ids = [c["id"] for c in self.columns(board_id)]
                self._view_cache[key] = group_by_column(visible, column_ids)
            return copy.deepcopy(self._view_cache[key])

    def view_cache_size(self):
        with self._lock:
            return len(self._view_cache)
