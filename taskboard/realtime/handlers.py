"""Socket.IO handlers for board rooms, presence and typing.

Inbound messages:
  join    {board_id, user_id}                 — enter a board room
  leave   {board_id, user_id}                 — leave a board room
  typing  {board_id, user_id, task_id, active} — relayed as user-typing /
                                                 user-stopped-typing

Clients never send mutation events; those are published by the HTTP routes.
"""

import logging

from flask import request
from flask_socketio import emit, join_room, leave_room
from pydantic import ValidationError as SchemaError

from taskboard.events import (
    BoardUsers,
    JoinRequest,
    TypingSignal,
    UserJoined,
    UserLeft,
    UserStoppedTyping,
    UserTyping,
)
from taskboard.extensions import socketio
from taskboard.realtime.channel import board_room
from taskboard.realtime.presence import presence

logger = logging.getLogger(__name__)


def _validated(model, payload, message):
    try:
        return model.model_validate(payload or {})
    except SchemaError as e:
        logger.warning(f"Dropped malformed {message} from {request.sid}: {e.error_count()} errors")
        return None


def _announce_departure(board_id, user_id):
    left = UserLeft(board_id=board_id, user_id=user_id)
    socketio.emit(left.kind, left.model_dump(mode="json"), to=board_room(board_id))


@socketio.on("join")
def on_join(payload):
    req = _validated(JoinRequest, payload, "join")
    if req is None:
        return {"ok": False, "error": "board_id and user_id are required"}

    join_room(board_room(req.board_id))
    first = presence.join(req.board_id, req.user_id, request.sid)

    snapshot = BoardUsers(
        board_id=req.board_id,
        user_id=req.user_id,
        users=presence.users(req.board_id),
    )
    emit(snapshot.kind, snapshot.model_dump(mode="json"))

    if first:
        joined = UserJoined(board_id=req.board_id, user_id=req.user_id)
        emit(
            joined.kind,
            joined.model_dump(mode="json"),
            to=board_room(req.board_id),
            include_self=False,
        )
    logger.info(f"User {req.user_id} joined board {req.board_id} ({request.sid})")
    return {"ok": True}


@socketio.on("leave")
def on_leave(payload):
    req = _validated(JoinRequest, payload, "leave")
    if req is None:
        return {"ok": False, "error": "board_id and user_id are required"}

    leave_room(board_room(req.board_id))
    if presence.leave(req.board_id, req.user_id, request.sid):
        _announce_departure(req.board_id, req.user_id)
    logger.info(f"User {req.user_id} left board {req.board_id} ({request.sid})")
    return {"ok": True}


@socketio.on("typing")
def on_typing(payload):
    signal = _validated(TypingSignal, payload, "typing")
    if signal is None:
        return
    if not presence.is_present(signal.board_id, signal.user_id):
        logger.warning(f"Typing signal from {signal.user_id} outside board {signal.board_id}")
        return

    model = UserTyping if signal.active else UserStoppedTyping
    event = model(board_id=signal.board_id, user_id=signal.user_id, task_id=signal.task_id)
    emit(
        event.kind,
        event.model_dump(mode="json"),
        to=board_room(signal.board_id),
        include_self=False,
    )


@socketio.on("disconnect")
def on_disconnect(reason=None):
    for board_id, user_id in presence.drop_sid(request.sid):
        _announce_departure(board_id, user_id)
    logger.info(f"Socket {request.sid} disconnected ({reason})")
