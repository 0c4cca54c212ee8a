"""Server-side publish of board events.

Events are emitted only after the mutation has been committed, to the
board's room, skipping every connection of the user who caused it. The
origin already applied the change optimistically and will confirm it from
its own RPC response.
"""

import logging

from taskboard.extensions import socketio
from taskboard.realtime.presence import presence

logger = logging.getLogger(__name__)


def board_room(board_id):
    return f"board:{board_id}"


def publish(event, include_origin=False):
    """Emit a taskboard.events model to everyone viewing its board.

    A failed emit is logged, never raised: the write it reports is already
    durable and clients resync on reconnect.
    """
    skip = None
    if not include_origin:
        skip = presence.sids_for(event.board_id, event.user_id) or None
    try:
        socketio.emit(
            event.kind,
            event.model_dump(mode="json"),
            to=board_room(event.board_id),
            skip_sid=skip,
        )
    except Exception as e:
        logger.error(f"Failed to emit {event.kind} for board {event.board_id}: {e}")
        return False
    logger.debug(f"Emitted {event.kind} to {board_room(event.board_id)}")
    return True
