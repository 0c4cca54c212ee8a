"""Derived task views: filter, sort and group a replica's tasks.

Pure functions over task dicts shaped like taskboard.serializers.task_dict.
"""

from dataclasses import dataclass, field
from typing import FrozenSet, Optional

from taskboard.ordering import canonical_key

PRIORITY_RANK = {"low": 1, "medium": 2, "high": 3, "urgent": 4}
SORT_FIELDS = ("created_at", "updated_at", "priority", "due_date", "title")


@dataclass(frozen=True)
class FilterOptions:
    """AND-combined task filter. Empty fields do not filter."""

    search: str = ""
    assignee_ids: FrozenSet[str] = field(default_factory=frozenset)
    tags: FrozenSet[str] = field(default_factory=frozenset)
    priorities: FrozenSet[str] = field(default_factory=frozenset)
    board_id: Optional[str] = None

    def __post_init__(self):
        # Accept lists/sets from callers; keep the instance hashable.
        for name in ("assignee_ids", "tags", "priorities"):
            object.__setattr__(self, name, frozenset(getattr(self, name) or ()))


@dataclass(frozen=True)
class SortOptions:
    field: str = "created_at"
    direction: str = "desc"

    def __post_init__(self):
        if self.field not in SORT_FIELDS:
            raise ValueError(f"Unknown sort field '{self.field}'. Must be one of: {', '.join(SORT_FIELDS)}")
        if self.direction not in ("asc", "desc"):
            raise ValueError("Sort direction must be 'asc' or 'desc'.")


def task_sort_key(task):
    return canonical_key(task.get("position", 0), task.get("created_at"), task["id"])


def matches(task, options):
    if options.board_id and task.get("board_id") != options.board_id:
        return False

    if options.search:
        needle = options.search.strip().lower()
        haystack = [task.get("title") or "", task.get("description") or ""]
        haystack.extend(task.get("tags") or [])
        if needle and not any(needle in text.lower() for text in haystack):
            return False

    if options.assignee_ids:
        assigned = {a["id"] for a in task.get("assignees") or []}
        if not assigned & options.assignee_ids:
            return False

    if options.tags and not set(task.get("tags") or []) & options.tags:
        return False

    if options.priorities and task.get("priority") not in options.priorities:
        return False

    return True


def _sort_value(task, field_name):
    if field_name == "priority":
        return PRIORITY_RANK.get(task.get("priority"), 0)
    if field_name == "title":
        return (task.get("title") or "").lower()
    return task.get(field_name)


def sort_tasks(tasks, options):
    """Sort by ``options.field``; tasks without a value go last either way."""
    ordered = sorted(tasks, key=task_sort_key)
    present = [t for t in ordered if _sort_value(t, options.field) is not None]
    missing = [t for t in ordered if _sort_value(t, options.field) is None]
    present.sort(
        key=lambda t: _sort_value(t, options.field),
        reverse=options.direction == "desc",
    )
    return present + missing


def filter_and_sort(tasks, filter_options=None, sort_options=None):
    filter_options = filter_options or FilterOptions()
    sort_options = sort_options or SortOptions()
    return sort_tasks([t for t in tasks if matches(t, filter_options)], sort_options)


def group_by_column(tasks, column_ids=()):
    """column_id -> tasks in canonical order. Listed columns are always present."""
    grouped = {cid: [] for cid in column_ids}
    for task in tasks:
        grouped.setdefault(task["column_id"], []).append(task)
    for cid in grouped:
        grouped[cid].sort(key=task_sort_key)
    return grouped
