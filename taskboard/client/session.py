"""One user's working session: API + store + (optional) realtime channel.

Each task mutation follows the same path:

    action = store.issue_*(...)          # replica shows the change now
    try:    result = api.<call>(...)
    except: store.rollback(action) and re-raise
    else:   store.confirm(action, result)

The store emits the success/error notification; callers still see the
exception so they can react (for example by keeping a dialog open).
"""

import logging

logger = logging.getLogger(__name__)


class BoardSession:
    def __init__(self, api, store, channel=None):
        self.api = api
        self.store = store
        self.channel = channel

    def _run(self, action, call):
        try:
            result = call()
        except Exception as e:
            self.store.rollback(action.id, e)
            raise
        self.store.confirm(action.id, result)
        return result

    # ─── Loading ─────────────────────────────────────────────────

    def load(self, board_id):
        """Fetch a board and its tasks into the store and join its room."""
        self.resync(board_id)
        if self.channel is not None:
            self.channel.join(board_id)

    def resync(self, board_id):
        board = self.api.get_board(board_id)
        tasks = self.api.list_tasks(board_id)
        self.store.load_board(board, tasks)
        logger.info(f"Loaded board {board_id} with {len(tasks)} tasks")

    def close(self):
        self.store.close()
        if self.channel is not None:
            self.channel.disconnect()

    # ─── Task mutations ──────────────────────────────────────────

    def create_task(self, board_id, column_id, title, **fields):
        action = self.store.issue_create(
            {"board_id": board_id, "column_id": column_id, "title": title, **fields}
        )
        return self._run(
            action,
            lambda: self.api.create_task(board_id, column_id, title, **fields),
        )

    def update_task(self, task_id, **changes):
        action = self.store.issue_update(task_id, changes)
        return self._run(action, lambda: self.api.update_task(task_id, changes))

    def delete_task(self, task_id):
        action = self.store.issue_delete(task_id)
        return self._run(action, lambda: self.api.delete_task(task_id))

    def move_task(self, task_id, source_column_id, dest_column_id, source_index, dest_index):
        action = self.store.issue_move(
            task_id, source_column_id, dest_column_id, source_index, dest_index
        )
        return self._run(
            action,
            lambda: self.api.move_task(
                task_id, source_column_id, dest_column_id, source_index, dest_index
            ),
        )

    # ─── Columns (not optimistic) ────────────────────────────────

    def create_column(self, board_id, title):
        column = self.api.create_column(board_id, title)
        self.store.upsert_column(column)
        return column

    def typing(self, board_id, task_id, active=True):
        if self.channel is not None:
            self.channel.typing(board_id, task_id, active)
