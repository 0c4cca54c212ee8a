# Models package — import all models here so Alembic can discover them.

from taskboard.models.user import User  # noqa: F401
from taskboard.models.board import Board, Column, board_members  # noqa: F401
from taskboard.models.task import Task, task_assignees  # noqa: F401
