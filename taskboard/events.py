"""Broadcast event schemas.

Every message on the realtime channel is one of the tagged models below,
discriminated by ``kind``. The server builds them before emitting and the
client validates raw payloads with ``parse_event`` before applying them, so
a malformed payload never reaches the store.

Entity snapshots mirror taskboard.serializers exactly; RPC responses are run
through the same models on the client so both paths yield identical dicts.
"""

import time
from datetime import timezone
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


def now_ms() -> int:
    return int(time.time() * 1000)


def iso_utc(value) -> Optional[str]:
    """Fixed-width UTC ISO 8601 with a trailing Z; naive datetimes are taken as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds").replace("+00:00", "Z")


# === Entity snapshots ===


class UserSnapshot(BaseModel):
    id: str
    name: str
    email: str
    avatar_url: Optional[str] = None
    color: str


class TaskSnapshot(BaseModel):
    id: str
    board_id: str
    column_id: str
    title: str
    description: Optional[str] = None
    priority: Literal["low", "medium", "high", "urgent"] = "medium"
    tags: List[str] = Field(default_factory=list)
    assignees: List[UserSnapshot] = Field(default_factory=list)
    position: int
    due_date: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class ColumnSnapshot(BaseModel):
    id: str
    board_id: str
    title: str
    position: int
    task_ids: List[str] = Field(default_factory=list)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class BoardSnapshot(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    owner_id: str
    members: List[UserSnapshot] = Field(default_factory=list)
    columns: List[ColumnSnapshot] = Field(default_factory=list)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class MoveResult(BaseModel):
    task: TaskSnapshot
    affected_tasks: List[TaskSnapshot]


# === Events ===


class _Event(BaseModel):
    model_config = ConfigDict(frozen=True)

    board_id: str
    user_id: str
    timestamp: int = Field(default_factory=now_ms)


class TaskCreated(_Event):
    kind: Literal["task-created"] = "task-created"
    task: TaskSnapshot


class TaskUpdated(_Event):
    kind: Literal["task-updated"] = "task-updated"
    task: TaskSnapshot


class TaskDeleted(_Event):
    kind: Literal["task-deleted"] = "task-deleted"
    task_id: str
    column_id: str


class TaskMoved(_Event):
    kind: Literal["task-moved"] = "task-moved"
    task_id: str
    source_column_id: str
    dest_column_id: str
    source_index: int
    dest_index: int
    task: TaskSnapshot
    affected_tasks: List[TaskSnapshot]


class ColumnCreated(_Event):
    kind: Literal["column-created"] = "column-created"
    column: ColumnSnapshot


class ColumnUpdated(_Event):
    kind: Literal["column-updated"] = "column-updated"
    column: ColumnSnapshot


class ColumnDeleted(_Event):
    kind: Literal["column-deleted"] = "column-deleted"
    column_id: str


class BoardUpdated(_Event):
    kind: Literal["board-updated"] = "board-updated"
    board: BoardSnapshot


# Presence and typing carry no durable state.


class UserJoined(_Event):
    kind: Literal["user-joined"] = "user-joined"


class UserLeft(_Event):
    kind: Literal["user-left"] = "user-left"


class BoardUsers(_Event):
    kind: Literal["board-users"] = "board-users"
    users: List[str]


class UserTyping(_Event):
    kind: Literal["user-typing"] = "user-typing"
    task_id: str


class UserStoppedTyping(_Event):
    kind: Literal["user-stopped-typing"] = "user-stopped-typing"
    task_id: str


BoardEvent = Annotated[
    Union[
        TaskCreated,
        TaskUpdated,
        TaskDeleted,
        TaskMoved,
        ColumnCreated,
        ColumnUpdated,
        ColumnDeleted,
        BoardUpdated,
        UserJoined,
        UserLeft,
        BoardUsers,
        UserTyping,
        UserStoppedTyping,
    ],
    Field(discriminator="kind"),
]

MUTATION_KINDS = (
    "task-created",
    "task-updated",
    "task-deleted",
    "task-moved",
    "column-created",
    "column-updated",
    "column-deleted",
    "board-updated",
)
PRESENCE_KINDS = (
    "user-joined",
    "user-left",
    "board-users",
    "user-typing",
    "user-stopped-typing",
)
EVENT_KINDS = MUTATION_KINDS + PRESENCE_KINDS

_event_adapter = TypeAdapter(BoardEvent)


def parse_event(payload):
    """Validate a raw payload into its tagged event model.

    Raises:
        pydantic.ValidationError: If the payload matches no event schema.
    """
    return _event_adapter.validate_python(payload)


# === Client -> server control messages ===


class JoinRequest(BaseModel):
    board_id: str = Field(min_length=1)
    user_id: str = Field(min_length=1)


class TypingSignal(BaseModel):
    board_id: str = Field(min_length=1)
    user_id: str = Field(min_length=1)
    task_id: str = Field(min_length=1)
    active: bool = True
