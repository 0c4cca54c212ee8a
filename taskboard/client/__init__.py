"""Python client for a taskboard server.

- api: blocking JSON RPC over requests
- store: local replica with optimistic mutations and rollback
- views: filtering, sorting and per-column grouping of the replica
- convergence: applies broadcast events from other users to the store
- channel: Socket.IO connection to the board rooms
- session: ties the above together for one user
"""

from taskboard.client.api import TaskboardAPI
from taskboard.client.channel import BoardChannel
from taskboard.client.convergence import ConvergenceHandler
from taskboard.client.session import BoardSession
from taskboard.client.store import ActionKind, ActionState, OptimisticAction, OptimisticStore
from taskboard.client.views import FilterOptions, SortOptions

__all__ = [
    "ActionKind",
    "ActionState",
    "BoardChannel",
    "BoardSession",
    "ConvergenceHandler",
    "FilterOptions",
    "OptimisticAction",
    "OptimisticStore",
    "SortOptions",
    "TaskboardAPI",
]
