"""Applies broadcast events from other users to an OptimisticStore.

Mutation events are whole-entity overwrites: whatever the server says last
is what the replica shows. Events caused by the local user are discarded;
their effect already arrived through the RPC response (and the server skips
the origin's connections anyway, so this only matters for other tabs of the
same user).
"""

import logging

from pydantic import ValidationError as SchemaError

from taskboard.events import MUTATION_KINDS, parse_event

TYPING_KINDS = ("user-typing", "user-stopped-typing")

logger = logging.getLogger(__name__)


class ConvergenceHandler:
    def __init__(self, store, local_user_id):
        self.store = store
        self.local_user_id = local_user_id

    def handle(self, payload):
        """Validate and apply one event payload.

        Returns:
            The applied event model, or None if it was dropped.
        """
        try:
            event = parse_event(payload)
        except SchemaError as e:
            kind = payload.get("kind") if isinstance(payload, dict) else None
            logger.warning(f"Dropped invalid {kind or 'unknown'} event: {e.error_count()} errors")
            return None

        if self.store.closed:
            logger.debug(f"Dropped {event.kind} event: store closed")
            return None

        own = event.user_id == self.local_user_id
        if own and (event.kind in MUTATION_KINDS or event.kind in TYPING_KINDS):
            logger.debug(f"Discarded own {event.kind} event")
            return None

        apply = getattr(self, "_on_" + event.kind.replace("-", "_"))
        apply(event)
        return event

    # ─── Tasks ───────────────────────────────────────────────────

    def _on_task_created(self, event):
        self.store.upsert_task(event.task.model_dump())

    def _on_task_updated(self, event):
        self.store.upsert_task(event.task.model_dump())

    def _on_task_deleted(self, event):
        self.store.remove_task(event.task_id, close_gap=True)

    def _on_task_moved(self, event):
        self.store.replace_column_slices(
            {event.source_column_id, event.dest_column_id},
            [t.model_dump() for t in event.affected_tasks],
        )

    # ─── Columns and boards ──────────────────────────────────────

    def _on_column_created(self, event):
        self.store.upsert_column(event.column.model_dump())

    def _on_column_updated(self, event):
        self.store.upsert_column(event.column.model_dump())

    def _on_column_deleted(self, event):
        self.store.remove_column(event.column_id)

    def _on_board_updated(self, event):
        self.store.upsert_board(event.board.model_dump())

    # ─── Presence and typing ─────────────────────────────────────

    def _on_user_joined(self, event):
        self.store.add_viewer(event.board_id, event.user_id)

    def _on_user_left(self, event):
        self.store.remove_viewer(event.board_id, event.user_id)

    def _on_board_users(self, event):
        self.store.set_viewers(event.board_id, event.users)

    def _on_user_typing(self, event):
        self.store.set_typing(event.task_id, event.user_id, True)

    def _on_user_stopped_typing(self, event):
        self.store.set_typing(event.task_id, event.user_id, False)
