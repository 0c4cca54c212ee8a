"""Tests for the user routes and the display-color assignment."""

from taskboard.models.user import USER_COLORS, color_for_email


def test_create_user_assigns_deterministic_color(client, db_session):
    resp = client.post("/api/users", json={"name": "Dana", "email": "Dana@Example.com"})

    assert resp.status_code == 201
    body = resp.get_json()
    assert body["email"] == "dana@example.com"
    assert body["color"] == color_for_email("dana@example.com")
    assert body["color"] in USER_COLORS


def test_duplicate_email_is_400(client, seed_data):
    resp = client.post("/api/users", json={"name": "Alice 2", "email": "alice@example.com"})
    assert resp.status_code == 400
    assert "already exists" in resp.get_json()["error"]


def test_create_user_requires_email(client, db_session):
    resp = client.post("/api/users", json={"name": "No Mail"})
    assert resp.status_code == 400


def test_list_users_sorted_by_name(client, seed_data, auth):
    resp = client.get("/api/users", headers=auth["bob"])
    assert [u["name"] for u in resp.get_json()] == ["Alice", "Bob"]


def test_color_is_case_insensitive():
    assert color_for_email("X@Y.io") == color_for_email("x@y.io")
