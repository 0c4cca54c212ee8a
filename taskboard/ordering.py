"""Ordered list model for tasks inside columns.

Each task carries an integer ``position`` scoped to its column; the canonical
sequence of a column is the ascending sort by ``(position, created_at, id)``.

Moves are applied as a full renumbering of every affected column rather than
with fractional keys: column sizes are small, so renumbering is cheap and the
integers never run out of room. On a contiguous column the result is exactly
the classic shift rule:

    cross-column:  source tasks after the removed index move up by one slot
                   (position - 1), destination tasks at or after the target
                   index move down by one slot (position + 1)
    same column:   only the tasks between the old and new index shift, by one,
                   opposite to the direction of the move

The same function runs on the server (authoritative) and on the client
(optimistic), which keeps both sides' arithmetic identical.
"""

from collections import namedtuple
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence

Slot = namedtuple("Slot", ["id", "position"])
Placement = namedtuple("Placement", ["column_id", "position"])


@dataclass
class ReorderPlan:
    task_id: str
    source_column_id: str
    dest_column_id: str
    dest_index: int
    # task id -> new placement, only for tasks whose column or position changed
    placements: Dict[str, Placement] = field(default_factory=dict)
    # final id sequence of each affected column
    sequences: Dict[str, List[str]] = field(default_factory=dict)

    @property
    def is_noop(self) -> bool:
        return not self.placements


def canonical_key(position, created_at, task_id):
    """Sort key defining a column's canonical sequence."""
    return (position, created_at or "", task_id)


def clamp_index(index: int, length: int) -> int:
    """Clamp a target index into ``[0, length]``; past the end means append."""
    if index < 0:
        return 0
    if index > length:
        return length
    return index


def compute_reorder(
    task_id: str,
    source_column_id: str,
    dest_column_id: str,
    source_index: Optional[int],
    dest_index: int,
    columns: Mapping[str, Sequence[Slot]],
) -> ReorderPlan:
    """Compute the placements produced by moving ``task_id``.

    Args:
        task_id: The task being moved.
        source_column_id: Column currently holding the task.
        dest_column_id: Column receiving the task (may equal the source).
        source_index: Caller's view of the task's index. Only a hint: the
            task's actual index in ``columns[source_column_id]`` wins.
        dest_index: Zero-based target index in the destination sequence
            (with the moved task removed). Clamped to the valid range.
        columns: Column id -> canonical sequence of ``Slot``s. Must contain
            both the source and destination columns.

    Returns:
        A ReorderPlan listing only the tasks whose placement changed.

    Raises:
        ValueError: If the task is not in the source column.
    """
    source = list(columns.get(source_column_id, ()))
    source_ids = [slot.id for slot in source]
    if task_id not in source_ids:
        raise ValueError(
            f"Task {task_id} is not in column {source_column_id}."
        )
    actual_index = source_ids.index(task_id)
    before = {
        slot.id: Placement(source_column_id, slot.position) for slot in source
    }

    if source_column_id == dest_column_id:
        remaining = [tid for tid in source_ids if tid != task_id]
        target = clamp_index(dest_index, len(remaining))
        plan = ReorderPlan(task_id, source_column_id, dest_column_id, target)
        if target == actual_index:
            plan.sequences[source_column_id] = source_ids
            return plan
        remaining.insert(target, task_id)
        plan.sequences[source_column_id] = remaining
    else:
        dest = list(columns.get(dest_column_id, ()))
        for slot in dest:
            before[slot.id] = Placement(dest_column_id, slot.position)
        remaining = [tid for tid in source_ids if tid != task_id]
        dest_ids = [slot.id for slot in dest if slot.id != task_id]
        target = clamp_index(dest_index, len(dest_ids))
        dest_ids.insert(target, task_id)
        plan = ReorderPlan(task_id, source_column_id, dest_column_id, target)
        plan.sequences[source_column_id] = remaining
        plan.sequences[dest_column_id] = dest_ids

    for column_id, ids in plan.sequences.items():
        for position, tid in enumerate(ids):
            placement = Placement(column_id, position)
            if before.get(tid) != placement:
                plan.placements[tid] = placement
    return plan
