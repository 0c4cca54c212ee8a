"""Socket.IO connection to the board rooms.

Every event kind is routed to one handler (normally a ConvergenceHandler).
The server keeps no backlog, so after a reconnect the channel re-joins its
boards and asks the owner to re-fetch them through ``on_resync``.
"""

import logging

import socketio

from taskboard.events import EVENT_KINDS

logger = logging.getLogger(__name__)


class BoardChannel:
    def __init__(self, url, handler, user_id, sio=None, on_resync=None):
        self.url = url
        self.handler = handler
        self.user_id = user_id
        self.on_resync = on_resync
        self.boards = set()
        self._connected_before = False
        self.sio = sio or socketio.Client(reconnection=True)

        for kind in EVENT_KINDS:
            self.sio.on(kind, self._dispatch)
        self.sio.on("connect", self._on_connect)
        self.sio.on("disconnect", self._on_disconnect)

    def _dispatch(self, payload):
        self.handler.handle(payload)

    def _on_connect(self):
        if not self._connected_before:
            self._connected_before = True
            logger.info(f"Connected to {self.url} as {self.user_id}")
            return

        logger.info(f"Reconnected to {self.url}; rejoining {len(self.boards)} boards")
        for board_id in sorted(self.boards):
            self._emit_join(board_id)
            if self.on_resync is not None:
                try:
                    self.on_resync(board_id)
                except Exception as e:
                    logger.error(f"Resync of board {board_id} failed: {e}")

    def _on_disconnect(self, reason=None):
        logger.warning(f"Disconnected from {self.url} ({reason or 'unknown reason'})")

    def _emit_join(self, board_id):
        self.sio.emit("join", {"board_id": board_id, "user_id": self.user_id})

    # ─── Public API ──────────────────────────────────────────────

    def connect(self, wait_timeout=5):
        self.sio.connect(
            self.url,
            headers={"Authorization": f"Bearer {self.user_id}"},
            wait_timeout=wait_timeout,
        )

    def join(self, board_id):
        self.boards.add(board_id)
        if self.sio.connected:
            self._emit_join(board_id)

    def leave(self, board_id):
        self.boards.discard(board_id)
        if self.sio.connected:
            self.sio.emit("leave", {"board_id": board_id, "user_id": self.user_id})

    def typing(self, board_id, task_id, active=True):
        if self.sio.connected:
            self.sio.emit("typing", {
                "board_id": board_id,
                "user_id": self.user_id,
                "task_id": task_id,
                "active": active,
            })

    def disconnect(self):
        for board_id in sorted(self.boards):
            self.leave(board_id)
        self.sio.disconnect()
