"""Users blueprint — /api/users

  GET  /api/users   — All user profiles, by name
  POST /api/users   — Create a profile (name, email, avatar_url)
"""

from flask import Blueprint, jsonify
from flask_login import login_required

from taskboard.blueprints import json_payload, mutation_limit
from taskboard.extensions import db, limiter
from taskboard.serializers import user_dict
from taskboard.services import user_service

users_bp = Blueprint("users", __name__, url_prefix="/api")


@users_bp.route("/users")
@login_required
def list_users():
    return jsonify([user_dict(u) for u in user_service.list_users()])


@users_bp.route("/users", methods=["POST"])
@limiter.limit(mutation_limit)
def create_user():
    """Open endpoint: a new client has no identity to present yet."""
    data = json_payload()
    user = user_service.create_user(
        data.get("name"),
        data.get("email"),
        avatar_url=data.get("avatar_url"),
    )
    db.session.commit()
    return jsonify(user_dict(user)), 201
