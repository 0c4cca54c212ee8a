import os
import logging

import click
from flask import Flask, jsonify

from taskboard.config import config_by_name
from taskboard.errors import TaskboardError
from taskboard.extensions import db, migrate, login_manager, limiter, socketio


def create_app(config_name=None):
    """Application factory."""

    if config_name is None:
        config_name = os.environ.get("FLASK_ENV", "development")

    app = Flask(__name__)
    app.config.from_object(config_by_name[config_name])

    try:
        config_by_name[config_name].validate()
    except RuntimeError as e:
        app.logger.warning(f"Config validation: {e}")

    # --- Init extensions ---
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    limiter.init_app(app)
    socketio.init_app(
        app,
        async_mode=app.config["SOCKETIO_ASYNC_MODE"],
        cors_allowed_origins=app.config["SOCKETIO_CORS_ORIGINS"],
        message_queue=app.config["SOCKETIO_MESSAGE_QUEUE"],
    )

    # --- Import models so Alembic can discover them ---
    with app.app_context():
        from taskboard import models  # noqa: F401

    # --- Register blueprints ---
    from taskboard.blueprints.boards import boards_bp
    from taskboard.blueprints.tasks import tasks_bp
    from taskboard.blueprints.users import users_bp
    from taskboard.blueprints.health import health_bp

    app.register_blueprint(boards_bp)
    app.register_blueprint(tasks_bp)
    app.register_blueprint(users_bp)
    app.register_blueprint(health_bp)

    # --- Socket.IO handlers (join/leave/typing/disconnect) ---
    from taskboard.realtime import handlers  # noqa: F401

    # --- Error handlers ---
    @app.errorhandler(TaskboardError)
    def taskboard_error(e):
        db.session.rollback()
        return jsonify({"error": e.message}), e.status_code

    @app.errorhandler(400)
    def bad_request(e):
        return jsonify({"error": "Bad request"}), 400

    @app.errorhandler(404)
    def not_found(e):
        return jsonify({"error": "Not found"}), 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return jsonify({"error": "Method not allowed"}), 405

    @app.errorhandler(429)
    def rate_limited(e):
        return jsonify({"error": f"Rate limit exceeded: {e.description}"}), 429

    @app.errorhandler(500)
    def server_error(e):
        return jsonify({"error": "Internal server error"}), 500

    # --- CLI commands ---
    register_cli(app)

    # --- Logging ---
    if not app.debug:
        logging.basicConfig(level=logging.INFO)

    return app


def register_cli(app):
    """Register custom CLI commands with the Flask app."""

    @app.cli.command("seed-demo")
    @click.option("--users", "user_count", default=3, show_default=True,
                  help="Number of demo users to create (max 5).")
    def seed_demo(user_count):
        """Create demo users, a board with three columns and sample tasks.

        Usage:
            flask seed-demo
            flask seed-demo --users 5
        """
        from datetime import datetime, timedelta, timezone

        from taskboard.models.user import User
        from taskboard.services import board_service, task_service, user_service

        people = [
            ("Ada Lovelace", "ada@taskboard.local"),
            ("Grace Hopper", "grace@taskboard.local"),
            ("Alan Turing", "alan@taskboard.local"),
            ("Katherine Johnson", "katherine@taskboard.local"),
            ("Edsger Dijkstra", "edsger@taskboard.local"),
        ]

        # --- 1. Users ---
        users = []
        for name, email in people[:max(1, min(user_count, len(people)))]:
            existing = User.query.filter_by(email=email).first()
            if existing:
                click.echo(f"User already exists: {email}")
                users.append(existing)
            else:
                users.append(user_service.create_user(name, email))
                click.echo(f"Created user: {email}")

        # --- 2. Board + columns ---
        owner = users[0]
        board = board_service.create_board(
            owner,
            "Product Launch",
            description="Demo board seeded by flask seed-demo",
            member_ids=[u.id for u in users],
        )
        todo = board_service.create_column(board.id, "Todo")
        doing = board_service.create_column(board.id, "In Progress")
        done = board_service.create_column(board.id, "Done")

        # --- 3. Tasks ---
        now = datetime.now(timezone.utc)
        samples = [
            (todo, "Write release notes", "medium", ["docs"], 5),
            (todo, "Fix login redirect", "urgent", ["bug", "auth"], 1),
            (todo, "Design onboarding emails", "low", ["marketing"], None),
            (doing, "Load test the move endpoint", "high", ["backend"], 2),
            (doing, "Polish drag and drop", "medium", ["frontend"], 3),
            (done, "Set up CI pipeline", "high", ["infra"], None),
        ]
        for i, (column, title, priority, tags, due_in) in enumerate(samples):
            task_service.create_task(
                board.id,
                column.id,
                title,
                priority=priority,
                tags=tags,
                assignee_ids=[users[i % len(users)].id],
                due_date=(now + timedelta(days=due_in)).isoformat() if due_in else None,
            )

        db.session.commit()

        click.echo("")
        click.echo("=" * 60)
        click.echo("Demo data created successfully!")
        click.echo("=" * 60)
        for user in users:
            click.echo(f"  User:   {user.name:<20} bearer {user.id}")
        click.echo(f"  Board:  {board.title} (id: {board.id})")
        click.echo(f"  Tasks:  {len(samples)} across Todo / In Progress / Done")
        click.echo("=" * 60)
