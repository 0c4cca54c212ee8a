"""In-memory presence registry.

Tracks which users are viewing which board, and through which Socket.IO
connections (sids). A user with two tabs open has two sids on the same board;
they stay present until the last one leaves. Presence is process-local and is
rebuilt from scratch on restart.
"""

import threading


class PresenceRegistry:
    """board_id -> user_id -> {sid} with a reverse sid index."""

    def __init__(self):
        self._lock = threading.Lock()
        self._boards = {}
        self._sids = {}  # sid -> {(board_id, user_id)}

    def join(self, board_id, user_id, sid):
        """Register a connection. Returns True if the user was not present before."""
        with self._lock:
            users = self._boards.setdefault(board_id, {})
            first = user_id not in users
            users.setdefault(user_id, set()).add(sid)
            self._sids.setdefault(sid, set()).add((board_id, user_id))
            return first

    def leave(self, board_id, user_id, sid):
        """Unregister a connection. Returns True if that was the user's last one."""
        with self._lock:
            return self._discard(board_id, user_id, sid)

    def drop_sid(self, sid):
        """Forget every registration of a closed connection.

        Returns:
            List of (board_id, user_id) pairs whose user is now absent.
        """
        with self._lock:
            departed = []
            for board_id, user_id in sorted(self._sids.get(sid, ())):
                if self._discard(board_id, user_id, sid):
                    departed.append((board_id, user_id))
            self._sids.pop(sid, None)
            return departed

    def _discard(self, board_id, user_id, sid):
        users = self._boards.get(board_id)
        if not users or user_id not in users:
            return False
        sids = users[user_id]
        sids.discard(sid)
        entries = self._sids.get(sid)
        if entries is not None:
            entries.discard((board_id, user_id))
            if not entries:
                del self._sids[sid]
        if sids:
            return False
        del users[user_id]
        if not users:
            del self._boards[board_id]
        return True

    def users(self, board_id):
        with self._lock:
            return sorted(self._boards.get(board_id, {}))

    def sids_for(self, board_id, user_id):
        with self._lock:
            return sorted(self._boards.get(board_id, {}).get(user_id, ()))

    def is_present(self, board_id, user_id):
        with self._lock:
            return user_id in self._boards.get(board_id, {})

    def stats(self):
        with self._lock:
            return {
                "active_boards": len(self._boards),
                "connections": len(self._sids),
                "viewers": sum(len(u) for u in self._boards.values()),
            }

    def clear(self):
        with self._lock:
            self._boards.clear()
            self._sids.clear()


presence = PresenceRegistry()
