"""Tests for the realtime board channel.

Covers:
- join: board-users snapshot to the joiner, user-joined to the others
- presence with several connections per user; leave and disconnect
- mutation events reach other viewers but not the origin user
- no broadcast for a no-op move
- typing relay and malformed payloads
- /api/health presence counters
"""

from taskboard.events import parse_event
from taskboard.realtime.presence import PresenceRegistry, presence


# ─── Helpers ───────────────────────────────────────────────

def _events(sc, name=None):
    received = sc.get_received()
    return [
        (pkt["name"], pkt["args"][0] if pkt["args"] else None)
        for pkt in received
        if name is None or pkt["name"] == name
    ]


def _join(sc, board_id, user_id):
    return sc.emit("join", {"board_id": board_id, "user_id": user_id}, callback=True)


class TestPresenceRegistry:
    def test_user_present_until_last_connection_leaves(self):
        registry = PresenceRegistry()
        assert registry.join("b1", "u1", "s1") is True
        assert registry.join("b1", "u1", "s2") is False

        assert registry.leave("b1", "u1", "s1") is False
        assert registry.users("b1") == ["u1"]
        assert registry.leave("b1", "u1", "s2") is True
        assert registry.users("b1") == []
        assert registry.stats() == {"active_boards": 0, "connections": 0, "viewers": 0}

    def test_drop_sid_reports_departures_on_every_board(self):
        registry = PresenceRegistry()
        registry.join("b1", "u1", "s1")
        registry.join("b2", "u1", "s1")
        registry.join("b2", "u1", "s2")

        assert registry.drop_sid("s1") == [("b1", "u1")]
        assert registry.users("b2") == ["u1"]
        assert registry.sids_for("b2", "u1") == ["s2"]


class TestJoinLeave:
    def test_join_sends_snapshot_and_announces(self, socket_client, seed_data):
        board = seed_data["board_id"]
        alice_sc, bob_sc = socket_client(), socket_client()

        assert _join(alice_sc, board, seed_data["alice_id"]) == {"ok": True}
        alice_sc.get_received()
        _join(bob_sc, board, seed_data["bob_id"])

        snapshot = _events(bob_sc, "board-users")
        assert len(snapshot) == 1
        assert snapshot[0][1]["users"] == sorted([seed_data["alice_id"], seed_data["bob_id"]])

        joined = _events(alice_sc, "user-joined")
        assert [payload["user_id"] for _, payload in joined] == [seed_data["bob_id"]]

    def test_second_tab_does_not_reannounce(self, socket_client, seed_data):
        board = seed_data["board_id"]
        alice_sc, bob_tab1, bob_tab2 = socket_client(), socket_client(), socket_client()
        _join(alice_sc, board, seed_data["alice_id"])
        _join(bob_tab1, board, seed_data["bob_id"])
        alice_sc.get_received()

        _join(bob_tab2, board, seed_data["bob_id"])
        assert _events(alice_sc, "user-joined") == []

    def test_leave_announces_when_last_connection_goes(self, socket_client, seed_data):
        board = seed_data["board_id"]
        alice_sc, bob_sc = socket_client(), socket_client()
        _join(alice_sc, board, seed_data["alice_id"])
        _join(bob_sc, board, seed_data["bob_id"])
        alice_sc.get_received()

        bob_sc.emit("leave", {"board_id": board, "user_id": seed_data["bob_id"]})

        left = _events(alice_sc, "user-left")
        assert [payload["user_id"] for _, payload in left] == [seed_data["bob_id"]]
        assert presence.users(board) == [seed_data["alice_id"]]

    def test_disconnect_prunes_presence(self, socket_client, seed_data):
        board = seed_data["board_id"]
        alice_sc, bob_sc = socket_client(), socket_client()
        _join(alice_sc, board, seed_data["alice_id"])
        _join(bob_sc, board, seed_data["bob_id"])
        alice_sc.get_received()

        bob_sc.disconnect()

        assert presence.users(board) == [seed_data["alice_id"]]
        assert [p["user_id"] for _, p in _events(alice_sc, "user-left")] == [seed_data["bob_id"]]

    def test_malformed_join_is_rejected(self, socket_client, seed_data):
        sc = socket_client()
        ack = sc.emit("join", {"board_id": seed_data["board_id"]}, callback=True)
        assert ack["ok"] is False
        assert presence.stats()["viewers"] == 0


class TestMutationBroadcast:
    def test_move_reaches_others_but_not_origin(self, client, socket_client, seed_data, auth):
        board = seed_data["board_id"]
        alice_sc, bob_sc = socket_client(), socket_client()
        _join(alice_sc, board, seed_data["alice_id"])
        _join(bob_sc, board, seed_data["bob_id"])
        alice_sc.get_received()
        bob_sc.get_received()

        client.put(f"/api/tasks/{seed_data['b_id']}/move", json={
            "source_column_id": seed_data["todo_id"],
            "dest_column_id": seed_data["todo_id"],
            "source_index": 1,
            "dest_index": 0,
        }, headers=auth["alice"])

        assert _events(alice_sc) == []
        moved = _events(bob_sc, "task-moved")
        assert len(moved) == 1
        event = parse_event(moved[0][1])
        assert event.user_id == seed_data["alice_id"]
        assert event.board_id == board
        assert [t.title for t in event.affected_tasks] == ["B", "A", "C"]

    def test_noop_move_is_not_broadcast(self, client, socket_client, seed_data, auth):
        board = seed_data["board_id"]
        bob_sc = socket_client()
        _join(bob_sc, board, seed_data["bob_id"])
        bob_sc.get_received()

        resp = client.put(f"/api/tasks/{seed_data['a_id']}/move", json={
            "source_column_id": seed_data["todo_id"],
            "dest_column_id": seed_data["todo_id"],
            "source_index": 0,
            "dest_index": 0,
        }, headers=auth["alice"])

        assert resp.status_code == 200
        assert _events(bob_sc) == []

    def test_create_update_delete_events(self, client, socket_client, seed_data, auth):
        board = seed_data["board_id"]
        bob_sc = socket_client()
        _join(bob_sc, board, seed_data["bob_id"])
        bob_sc.get_received()

        created = client.post("/api/tasks", json={
            "board_id": board, "column_id": seed_data["todo_id"], "title": "E",
        }, headers=auth["alice"]).get_json()
        client.put(f"/api/tasks/{created['id']}", json={"priority": "urgent"}, headers=auth["alice"])
        client.delete(f"/api/tasks/{created['id']}", headers=auth["alice"])

        events = _events(bob_sc)
        assert [name for name, _ in events] == ["task-created", "task-updated", "task-deleted"]
        assert events[0][1]["task"] == created
        assert events[1][1]["task"]["priority"] == "urgent"
        assert events[2][1]["task_id"] == created["id"]
        assert events[2][1]["column_id"] == seed_data["todo_id"]

    def test_failed_mutation_is_not_broadcast(self, client, socket_client, seed_data, auth):
        bob_sc = socket_client()
        _join(bob_sc, seed_data["board_id"], seed_data["bob_id"])
        bob_sc.get_received()

        resp = client.post("/api/tasks", json={
            "board_id": seed_data["board_id"], "column_id": seed_data["todo_id"], "title": "",
        }, headers=auth["alice"])

        assert resp.status_code == 400
        assert _events(bob_sc) == []

    def test_column_events(self, client, socket_client, seed_data, auth):
        bob_sc = socket_client()
        _join(bob_sc, seed_data["board_id"], seed_data["bob_id"])
        bob_sc.get_received()

        column = client.post(f"/api/boards/{seed_data['board_id']}/columns",
                             json={"title": "Review"}, headers=auth["alice"]).get_json()
        client.delete(f"/api/columns/{column['id']}", headers=auth["alice"])

        events = _events(bob_sc)
        assert [name for name, _ in events] == ["column-created", "column-deleted"]
        assert events[1][1]["column_id"] == column["id"]

    def test_events_stay_in_their_board_room(self, client, socket_client, seed_data, auth):
        outsider = socket_client()
        _join(outsider, "another-board", seed_data["bob_id"])
        outsider.get_received()

        client.delete(f"/api/tasks/{seed_data['a_id']}", headers=auth["alice"])
        assert _events(outsider) == []


class TestTyping:
    def test_typing_is_relayed_to_others(self, socket_client, seed_data):
        board = seed_data["board_id"]
        alice_sc, bob_sc = socket_client(), socket_client()
        _join(alice_sc, board, seed_data["alice_id"])
        _join(bob_sc, board, seed_data["bob_id"])
        alice_sc.get_received()
        bob_sc.get_received()

        payload = {"board_id": board, "user_id": seed_data["alice_id"], "task_id": seed_data["a_id"]}
        alice_sc.emit("typing", {**payload, "active": True})
        alice_sc.emit("typing", {**payload, "active": False})

        names = [name for name, _ in _events(bob_sc)]
        assert names == ["user-typing", "user-stopped-typing"]
        assert _events(alice_sc) == []

    def test_typing_from_non_member_of_room_is_dropped(self, socket_client, seed_data):
        board = seed_data["board_id"]
        bob_sc, stranger = socket_client(), socket_client()
        _join(bob_sc, board, seed_data["bob_id"])
        bob_sc.get_received()

        stranger.emit("typing", {
            "board_id": board, "user_id": "stranger", "task_id": seed_data["a_id"], "active": True,
        })
        assert _events(bob_sc) == []


def test_health_reports_presence(client, socket_client, seed_data):
    sc = socket_client()
    _join(sc, seed_data["board_id"], seed_data["alice_id"])

    body = client.get("/api/health").get_json()
    assert body["status"] == "ok"
    assert body["active_boards"] == 1
    assert body["viewers"] == 1
    assert body["connections"] == 1
