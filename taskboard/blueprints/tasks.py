"""Tasks blueprint — /api/tasks/*

Route Map:
  POST   /api/tasks                 — Create task
  PUT    /api/tasks/<id>            — Update task fields
  DELETE /api/tasks/<id>            — Delete task
  PUT    /api/tasks/<id>/move       — Move task (authoritative reorder)
  GET    /api/boards/<id>/tasks     — All tasks of a board

Every mutation commits once, then publishes its event to the board room,
skipping the connections of the user who made it.
"""

from flask import Blueprint, jsonify
from flask_login import current_user, login_required

from taskboard.blueprints import json_payload, mutation_limit
from taskboard.errors import ValidationError
from taskboard.events import TaskCreated, TaskDeleted, TaskMoved, TaskUpdated
from taskboard.extensions import db, limiter
from taskboard.realtime.channel import publish
from taskboard.serializers import task_dict
from taskboard.services import task_service

tasks_bp = Blueprint("tasks", __name__, url_prefix="/api")


# ─── Reads ───────────────────────────────────────────────────────

@tasks_bp.route("/boards/<board_id>/tasks")
@login_required
def list_tasks(board_id):
    tasks = task_service.list_board_tasks(board_id)
    return jsonify([task_dict(t) for t in tasks])


# ─── Mutations ───────────────────────────────────────────────────

@tasks_bp.route("/tasks", methods=["POST"])
@limiter.limit(mutation_limit)
@login_required
def create_task():
    data = json_payload()
    if not data.get("column_id"):
        raise ValidationError("column_id is required.")
    task = task_service.create_task(
        board_id=data.get("board_id"),
        column_id=data["column_id"],
        title=data.get("title"),
        priority=data.get("priority") or "medium",
        tags=data.get("tags"),
        assignee_ids=data.get("assignee_ids"),
        description=data.get("description"),
        due_date=data.get("due_date"),
    )
    db.session.commit()

    body = task_dict(task)
    publish(TaskCreated(board_id=task.board_id, user_id=current_user.id, task=body))
    return jsonify(body), 201


@tasks_bp.route("/tasks/<task_id>", methods=["PUT"])
@limiter.limit(mutation_limit)
@login_required
def update_task(task_id):
    task = task_service.update_task(task_id, json_payload())
    db.session.commit()

    body = task_dict(task)
    publish(TaskUpdated(board_id=task.board_id, user_id=current_user.id, task=body))
    return jsonify(body)


@tasks_bp.route("/tasks/<task_id>", methods=["DELETE"])
@limiter.limit(mutation_limit)
@login_required
def delete_task(task_id):
    deleted_id, column_id, board_id = task_service.delete_task(task_id)
    db.session.commit()

    publish(TaskDeleted(
        board_id=board_id,
        user_id=current_user.id,
        task_id=deleted_id,
        column_id=column_id,
    ))
    return jsonify({"success": True, "id": deleted_id})


@tasks_bp.route("/tasks/<task_id>/move", methods=["PUT"])
@limiter.limit(mutation_limit)
@login_required
def move_task(task_id):
    """Body: {source_column_id, dest_column_id, source_index, dest_index}."""
    data = json_payload()
    missing = [
        key for key in ("source_column_id", "dest_column_id", "source_index", "dest_index")
        if key not in data
    ]
    if missing:
        raise ValidationError(f"Missing fields: {', '.join(missing)}")

    outcome = task_service.move_task(
        task_id,
        data["source_column_id"],
        data["dest_column_id"],
        data["source_index"],
        data["dest_index"],
    )
    db.session.commit()

    task = outcome.task
    body = {
        "task": task_dict(task),
        "affected_tasks": [task_dict(t) for t in outcome.affected_tasks],
    }
    if outcome.moved:
        publish(TaskMoved(
            board_id=task.board_id,
            user_id=current_user.id,
            task_id=task.id,
            source_column_id=outcome.source_column_id,
            dest_column_id=data["dest_column_id"],
            source_index=data["source_index"],
            dest_index=data["dest_index"],
            **body,
        ))
    return jsonify(body)
