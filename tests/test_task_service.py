"""Tests for the task service: CRUD and the authoritative move.

Covers:
- Concrete Todo/Done scenarios against the database
- No-op move leaves position and updated_at untouched
- Round trip A -> B -> A restores column A
- Stale source column / index hints are corrected from storage
- Validation and not-found errors
- Create appends, delete closes the gap, update rejects placement fields
"""

import pytest
from sqlalchemy import update

from taskboard import repository
from taskboard.errors import NotFoundError, ValidationError
from taskboard.extensions import db
from taskboard.models.board import Board, Column
from taskboard.models.task import Task
from taskboard.services import task_service

from conftest import column_titles, make_task


class TestMoveTask:
    def test_same_column_scenario(self, seed_data):
        outcome = task_service.move_task(
            seed_data["b_id"], seed_data["todo_id"], seed_data["todo_id"], 1, 0
        )
        db.session.commit()

        assert outcome.moved is True
        assert column_titles(seed_data["todo_id"]) == [("B", 0), ("A", 1), ("C", 2)]

    def test_cross_column_scenario(self, seed_data, db_session):
        board = Board(title="Scenario", owner_id=seed_data["alice_id"])
        db_session.add(board)
        db_session.flush()
        todo = Column(board_id=board.id, title="Todo", position=0)
        done = Column(board_id=board.id, title="Done", position=1)
        db_session.add_all([todo, done])
        db_session.flush()
        a = make_task(todo, "A", 0)
        make_task(todo, "B", 1)
        make_task(done, "C", 0)

        outcome = task_service.move_task(a.id, todo.id, done.id, 0, 1)
        db_session.commit()

        assert column_titles(todo.id) == [("B", 0)]
        assert column_titles(done.id) == [("C", 0), ("A", 1)]
        assert [t.title for t in outcome.affected_tasks] == ["B", "C", "A"]
        assert outcome.source_column_id == todo.id

    def test_noop_changes_nothing(self, seed_data):
        before = {
            t.id: (t.position, t.updated_at)
            for t in Task.query.filter_by(column_id=seed_data["todo_id"]).all()
        }

        outcome = task_service.move_task(
            seed_data["b_id"], seed_data["todo_id"], seed_data["todo_id"], 1, 1
        )
        db.session.commit()

        after = {
            t.id: (t.position, t.updated_at)
            for t in Task.query.filter_by(column_id=seed_data["todo_id"]).all()
        }
        assert outcome.moved is False
        assert after == before

    def test_round_trip_restores_source_column(self, seed_data):
        todo, done = seed_data["todo_id"], seed_data["done_id"]
        original = [title for title, _ in column_titles(todo)]

        task_service.move_task(seed_data["a_id"], todo, done, 0, 0)
        db.session.commit()
        assert column_titles(done) == [("A", 0), ("D", 1)]

        task_service.move_task(seed_data["a_id"], done, todo, 0, 0)
        db.session.commit()

        assert [title for title, _ in column_titles(todo)] == original
        assert column_titles(todo) == [("A", 0), ("B", 1), ("C", 2)]
        assert column_titles(done) == [("D", 0)]

    def test_stale_source_column_uses_persisted_column(self, seed_data):
        # Caller claims C lives in Done; it is in Todo.
        outcome = task_service.move_task(
            seed_data["c_id"], seed_data["done_id"], seed_data["todo_id"], 0, 0
        )
        db.session.commit()

        assert outcome.source_column_id == seed_data["todo_id"]
        assert column_titles(seed_data["todo_id"]) == [("C", 0), ("A", 1), ("B", 2)]
        assert column_titles(seed_data["done_id"]) == [("D", 0)]

    def test_move_committed_elsewhere_before_locks_is_recomputed(self, seed_data, monkeypatch):
        real_lock = repository.lock_columns
        locked = []

        def lock_after_competing_move(column_ids):
            if not locked:
                # Another request commits A into Done while this one waits.
                db.session.execute(
                    update(Task)
                    .where(Task.id == seed_data["a_id"])
                    .values(column_id=seed_data["done_id"], position=1)
                    .execution_options(synchronize_session=False)
                )
            locked.append(sorted(column_ids))
            return real_lock(column_ids)

        monkeypatch.setattr(repository, "lock_columns", lock_after_competing_move)

        outcome = task_service.move_task(
            seed_data["a_id"], seed_data["todo_id"], seed_data["todo_id"], 0, 2
        )
        db.session.commit()

        assert outcome.moved is True
        assert outcome.source_column_id == seed_data["done_id"]
        assert locked == [[seed_data["todo_id"]], [seed_data["done_id"]]]
        assert column_titles(seed_data["todo_id"]) == [("B", 0), ("C", 1), ("A", 2)]
        assert column_titles(seed_data["done_id"]) == [("D", 0)]

    def test_opposite_moves_lock_columns_in_the_same_order(self, seed_data, monkeypatch):
        real_find = repository.find_tasks_by_column
        seen = []

        def recording_find(column_id, lock=False):
            seen.append(column_id)
            return real_find(column_id, lock=lock)

        monkeypatch.setattr(repository, "find_tasks_by_column", recording_find)

        task_service.move_task(seed_data["a_id"], seed_data["todo_id"], seed_data["done_id"], 0, 0)
        task_service.move_task(seed_data["d_id"], seed_data["done_id"], seed_data["todo_id"], 1, 0)
        db.session.commit()

        expected = sorted([seed_data["todo_id"], seed_data["done_id"]])
        assert seen == expected + expected

    def test_dest_index_beyond_end_appends(self, seed_data):
        task_service.move_task(seed_data["a_id"], seed_data["todo_id"], seed_data["done_id"], 0, 50)
        db.session.commit()
        assert column_titles(seed_data["done_id"]) == [("D", 0), ("A", 1)]
        assert column_titles(seed_data["todo_id"]) == [("B", 0), ("C", 1)]

    def test_moved_task_gets_new_updated_at(self, seed_data):
        task = db.session.get(Task, seed_data["a_id"])
        before = task.updated_at

        task_service.move_task(seed_data["a_id"], seed_data["todo_id"], seed_data["todo_id"], 0, 2)
        db.session.commit()

        assert db.session.get(Task, seed_data["a_id"]).updated_at != before

    def test_unknown_task(self, seed_data):
        with pytest.raises(NotFoundError):
            task_service.move_task("nope", seed_data["todo_id"], seed_data["done_id"], 0, 0)

    def test_unknown_dest_column(self, seed_data):
        with pytest.raises(NotFoundError):
            task_service.move_task(seed_data["a_id"], seed_data["todo_id"], "nope", 0, 0)

    def test_dest_on_another_board(self, seed_data, db_session):
        other = Board(title="Other", owner_id=seed_data["alice_id"])
        db_session.add(other)
        db_session.flush()
        foreign = Column(board_id=other.id, title="Elsewhere", position=0)
        db_session.add(foreign)
        db_session.flush()

        with pytest.raises(ValidationError):
            task_service.move_task(seed_data["a_id"], seed_data["todo_id"], foreign.id, 0, 0)

    @pytest.mark.parametrize("bad", ["1", 1.5, None, True])
    def test_non_integer_index_rejected(self, seed_data, bad):
        with pytest.raises(ValidationError):
            task_service.move_task(seed_data["a_id"], seed_data["todo_id"], seed_data["done_id"], 0, bad)


class TestCreateUpdateDelete:
    def test_create_appends_to_column(self, seed_data):
        task = task_service.create_task(
            seed_data["board_id"],
            seed_data["todo_id"],
            "  <b>New</b> task ",
            tags=["ops", "ops", " "],
            assignee_ids=[seed_data["bob_id"]],
        )
        db.session.commit()

        assert task.title == "New task"
        assert task.position == 3
        assert task.tags == ["ops"]
        assert [u.id for u in task.assignees] == [seed_data["bob_id"]]
        assert task.priority == "medium"

    def test_create_requires_title(self, seed_data):
        with pytest.raises(ValidationError):
            task_service.create_task(seed_data["board_id"], seed_data["todo_id"], "   ")

    def test_create_unknown_column(self, seed_data):
        with pytest.raises(NotFoundError):
            task_service.create_task(seed_data["board_id"], "missing", "Title")

    def test_create_bad_priority(self, seed_data):
        with pytest.raises(ValidationError):
            task_service.create_task(seed_data["board_id"], seed_data["todo_id"], "T", priority="critical")

    def test_create_unknown_assignee(self, seed_data):
        with pytest.raises(ValidationError):
            task_service.create_task(
                seed_data["board_id"], seed_data["todo_id"], "T", assignee_ids=["ghost"]
            )

    def test_update_fields(self, seed_data):
        task = task_service.update_task(seed_data["a_id"], {
            "title": "A+",
            "priority": "urgent",
            "due_date": "2026-03-01T12:00:00Z",
            "assignee_ids": [seed_data["alice_id"]],
        })
        db.session.commit()

        assert task.title == "A+"
        assert task.priority == "urgent"
        assert task.due_date.year == 2026
        assert [u.name for u in task.assignees] == ["Alice"]
        assert task.position == 0

    def test_update_rejects_placement_fields(self, seed_data):
        with pytest.raises(ValidationError):
            task_service.update_task(seed_data["a_id"], {"position": 5})
        with pytest.raises(ValidationError):
            task_service.update_task(seed_data["a_id"], {"column_id": seed_data["done_id"]})

    def test_update_rejects_unknown_fields(self, seed_data):
        with pytest.raises(ValidationError):
            task_service.update_task(seed_data["a_id"], {"colour": "red"})

    def test_update_bad_due_date(self, seed_data):
        with pytest.raises(ValidationError):
            task_service.update_task(seed_data["a_id"], {"due_date": "next tuesday"})

    def test_delete_closes_gap(self, seed_data):
        task_id, column_id, board_id = task_service.delete_task(seed_data["a_id"])
        db.session.commit()

        assert task_id == seed_data["a_id"]
        assert column_id == seed_data["todo_id"]
        assert board_id == seed_data["board_id"]
        assert column_titles(seed_data["todo_id"]) == [("B", 0), ("C", 1)]

    def test_delete_unknown(self, seed_data):
        with pytest.raises(NotFoundError):
            task_service.delete_task("missing")

    def test_list_board_tasks_orders_by_column_then_position(self, seed_data):
        titles = [t.title for t in task_service.list_board_tasks(seed_data["board_id"])]
        assert titles == ["A", "B", "C", "D"]
