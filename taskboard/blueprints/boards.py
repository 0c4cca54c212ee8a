"""Boards blueprint — /api/boards/* and /api/columns/*

Route Map:
  GET    /api/boards                        — Boards the caller owns or belongs to
  POST   /api/boards                        — Create board
  GET    /api/boards/<id>                   — Board with columns and task ids
  PUT    /api/boards/<id>                   — Update title/description/members
  DELETE /api/boards/<id>                   — Delete board (cascades)
  POST   /api/boards/<id>/columns           — Append column
  PUT    /api/boards/<id>/columns/reorder   — Reorder columns
  PUT    /api/columns/<id>                  — Rename column
  DELETE /api/columns/<id>                  — Delete column and its tasks
"""

from flask import Blueprint, jsonify
from flask_login import current_user, login_required

from taskboard import repository
from taskboard.blueprints import json_payload, mutation_limit
from taskboard.events import BoardUpdated, ColumnCreated, ColumnDeleted, ColumnUpdated
from taskboard.extensions import db, limiter
from taskboard.realtime.channel import publish
from taskboard.serializers import board_dict, column_dict
from taskboard.services import board_service

boards_bp = Blueprint("boards", __name__, url_prefix="/api")


def _board_body(board):
    return board_dict(board, repository.task_ids_by_column(board.id))


def _column_body(column):
    return column_dict(column, repository.task_ids_by_column(column.board_id).get(column.id))


# ─── Boards ──────────────────────────────────────────────────────

@boards_bp.route("/boards")
@login_required
def list_boards():
    boards = board_service.list_boards(current_user.id)
    return jsonify([_board_body(b) for b in boards])


@boards_bp.route("/boards", methods=["POST"])
@limiter.limit(mutation_limit)
@login_required
def create_board():
    data = json_payload()
    board = board_service.create_board(
        current_user,
        data.get("title"),
        description=data.get("description"),
        member_ids=data.get("member_ids"),
    )
    db.session.commit()
    return jsonify(_board_body(board)), 201


@boards_bp.route("/boards/<board_id>")
@login_required
def get_board(board_id):
    return jsonify(_board_body(board_service.get_board(board_id)))


@boards_bp.route("/boards/<board_id>", methods=["PUT"])
@limiter.limit(mutation_limit)
@login_required
def update_board(board_id):
    board = board_service.update_board(board_id, json_payload())
    db.session.commit()

    body = _board_body(board)
    publish(BoardUpdated(board_id=board.id, user_id=current_user.id, board=body))
    return jsonify(body)


@boards_bp.route("/boards/<board_id>", methods=["DELETE"])
@limiter.limit(mutation_limit)
@login_required
def delete_board(board_id):
    board_service.delete_board(board_id)
    db.session.commit()
    return jsonify({"success": True, "id": board_id})


# ─── Columns ─────────────────────────────────────────────────────

@boards_bp.route("/boards/<board_id>/columns", methods=["POST"])
@limiter.limit(mutation_limit)
@login_required
def create_column(board_id):
    data = json_payload()
    column = board_service.create_column(board_id, data.get("title"))
    db.session.commit()

    body = column_dict(column)
    publish(ColumnCreated(board_id=column.board_id, user_id=current_user.id, column=body))
    return jsonify(body), 201


@boards_bp.route("/boards/<board_id>/columns/reorder", methods=["PUT"])
@limiter.limit(mutation_limit)
@login_required
def reorder_columns(board_id):
    data = json_payload()
    board = board_service.reorder_columns(board_id, data.get("column_ids"))
    db.session.commit()

    body = _board_body(board)
    publish(BoardUpdated(board_id=board.id, user_id=current_user.id, board=body))
    return jsonify(body)


@boards_bp.route("/columns/<column_id>", methods=["PUT"])
@limiter.limit(mutation_limit)
@login_required
def update_column(column_id):
    column = board_service.update_column(column_id, json_payload())
    db.session.commit()

    body = _column_body(column)
    publish(ColumnUpdated(board_id=column.board_id, user_id=current_user.id, column=body))
    return jsonify(body)


@boards_bp.route("/columns/<column_id>", methods=["DELETE"])
@limiter.limit(mutation_limit)
@login_required
def delete_column(column_id):
    board_id = board_service.delete_column(column_id)
    db.session.commit()

    publish(ColumnDeleted(board_id=board_id, user_id=current_user.id, column_id=column_id))
    return jsonify({"success": True, "id": column_id})
