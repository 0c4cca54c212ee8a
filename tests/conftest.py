"""Shared test fixtures for the taskboard test suite.

Provides:
- app: Flask app configured for testing (in-memory SQLite, rate limiting off)
- client: Flask test client (identity re-resolved on every request)
- db_session: clean database per test (tables created/dropped)
- seed_data: two users, a board with Todo/Done columns, tasks A/B/C/D
- auth: Authorization headers per seeded user
- socket_client: factory for Flask-SocketIO test clients
"""

from datetime import datetime, timedelta, timezone
from urllib.parse import urlsplit

import pytest
import requests
from flask import g
from flask.testing import FlaskClient

from taskboard import create_app
from taskboard.client.api import TaskboardAPI
from taskboard.extensions import db as _db, socketio
from taskboard.models.board import Board, Column
from taskboard.models.task import Task
from taskboard.models.user import User, color_for_email
from taskboard.realtime.presence import presence


class BearerClient(FlaskClient):
    """Test client that drops the cached Flask-Login user before each request.

    Tests run every request inside one long-lived app context, so ``g``
    would otherwise carry the first request's identity into the next one.
    """

    def open(self, *args, **kwargs):
        g.pop("_login_user", None)
        return super().open(*args, **kwargs)


@pytest.fixture(scope="session")
def app():
    """Create the Flask application configured for testing."""
    app = create_app("testing")
    app.test_client_class = BearerClient
    yield app


@pytest.fixture(autouse=True)
def db_session(app):
    """Create all tables before each test, drop after."""
    with app.app_context():
        _db.create_all()
        yield _db.session
        _db.session.rollback()
        _db.drop_all()


@pytest.fixture(autouse=True)
def clean_presence():
    presence.clear()
    yield
    presence.clear()


@pytest.fixture
def client(app):
    """Flask test client."""
    return app.test_client()


@pytest.fixture
def socket_client(app, client):
    """Factory for Socket.IO test clients; all are disconnected at teardown."""
    created = []

    def make():
        sc = socketio.test_client(app, flask_test_client=client)
        created.append(sc)
        return sc

    yield make
    for sc in created:
        if sc.is_connected():
            sc.disconnect()


def make_user(name, email):
    user = User(name=name, email=email, color=color_for_email(email))
    _db.session.add(user)
    _db.session.flush()
    return user


def make_task(column, title, position, **kwargs):
    task = Task(
        board_id=column.board_id,
        column_id=column.id,
        title=title,
        position=position,
        **kwargs,
    )
    _db.session.add(task)
    _db.session.flush()
    return task


@pytest.fixture
def seed_data(app, db_session):
    """Seed two users, a shared board, Todo [A, B, C] and Done [D].

    Committed, so a rolled-back request cannot take the seed with it.
    Returns plain ids alongside the objects.
    """
    alice = make_user("Alice", "alice@example.com")
    bob = make_user("Bob", "bob@example.com")

    board = Board(title="Sprint", owner_id=alice.id, members=[alice, bob])
    _db.session.add(board)
    _db.session.flush()

    todo = Column(board_id=board.id, title="Todo", position=0)
    done = Column(board_id=board.id, title="Done", position=1)
    _db.session.add_all([todo, done])
    _db.session.flush()

    base = datetime(2026, 1, 5, 9, 0, tzinfo=timezone.utc)
    a = make_task(todo, "A", 0, created_at=base, priority="low", tags=["backend"])
    b = make_task(todo, "B", 1, created_at=base + timedelta(minutes=1), priority="high")
    c = make_task(todo, "C", 2, created_at=base + timedelta(minutes=2), tags=["frontend"])
    d = make_task(done, "D", 0, created_at=base + timedelta(minutes=3), assignees=[bob])

    _db.session.commit()

    return {
        "alice": alice,
        "alice_id": alice.id,
        "bob": bob,
        "bob_id": bob.id,
        "board": board,
        "board_id": board.id,
        "todo_id": todo.id,
        "done_id": done.id,
        "a_id": a.id,
        "b_id": b.id,
        "c_id": c.id,
        "d_id": d.id,
    }


@pytest.fixture
def auth(seed_data):
    """Authorization headers keyed by seeded user name."""
    return {
        "alice": {"Authorization": f"Bearer {seed_data['alice_id']}"},
        "bob": {"Authorization": f"Bearer {seed_data['bob_id']}"},
    }


def column_titles(column_id):
    """Titles of a column's tasks in canonical order, with their positions."""
    tasks = (
        Task.query.filter_by(column_id=column_id)
        .order_by(Task.position, Task.created_at, Task.id)
        .all()
    )
    return [(t.title, t.position) for t in tasks]


class FlaskTransport:
    """``requests.Session`` stand-in that sends requests to the Flask test client."""

    def __init__(self, client):
        self.client = client
        self.calls = []

    def request(self, method, url, json=None, headers=None, timeout=None):
        path = urlsplit(url).path
        self.calls.append((method, path))
        flask_resp = self.client.open(path, method=method, json=json, headers=headers)

        response = requests.Response()
        response.status_code = flask_resp.status_code
        response._content = flask_resp.data
        response.headers.update(flask_resp.headers)
        response.reason = flask_resp.status.split(" ", 1)[-1]
        response.url = url
        return response


@pytest.fixture
def api_for(client):
    """Build a TaskboardAPI for a user id, wired to the Flask test client."""
    def make(user_id):
        return TaskboardAPI("http://testserver", user_id, session=FlaskTransport(client))

    return make
