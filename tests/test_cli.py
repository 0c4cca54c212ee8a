"""Tests for the flask seed-demo command."""

from taskboard.models.board import Board, Column
from taskboard.models.task import Task
from taskboard.models.user import User


class TestSeedDemo:
    def test_creates_board_columns_and_tasks(self, app):
        result = app.test_cli_runner().invoke(args=["seed-demo"])

        assert result.exit_code == 0, result.output
        assert "Demo data created successfully!" in result.output
        assert User.query.count() == 3

        board = Board.query.filter_by(title="Product Launch").one()
        titles = [c.title for c in Column.query.filter_by(board_id=board.id).order_by(Column.position)]
        assert titles == ["Todo", "In Progress", "Done"]
        assert Task.query.filter_by(board_id=board.id).count() == 6

    def test_positions_are_contiguous_per_column(self, app):
        app.test_cli_runner().invoke(args=["seed-demo"])

        for column in Column.query.all():
            positions = [t.position for t in Task.query.filter_by(column_id=column.id).order_by(Task.position)]
            assert positions == list(range(len(positions)))

    def test_user_count_is_capped(self, app):
        result = app.test_cli_runner().invoke(args=["seed-demo", "--users", "9"])

        assert result.exit_code == 0, result.output
        assert User.query.count() == 5

    def test_rerun_reuses_existing_users(self, app):
        runner = app.test_cli_runner()
        runner.invoke(args=["seed-demo", "--users", "2"])
        result = runner.invoke(args=["seed-demo", "--users", "2"])

        assert "User already exists: ada@taskboard.local" in result.output
        assert User.query.count() == 2
        assert Board.query.count() == 2
