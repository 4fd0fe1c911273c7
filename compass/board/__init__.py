"""Compass Board — kanban tasks, roles, transitions, review and analytics."""

from compass.board.models import MemberRole, TaskStatus  # noqa: F401
from compass.board.service import BoardService  # noqa: F401
from compass.board.store import BoardStore, InMemoryBoardStore  # noqa: F401
from compass.board.transitions import TransitionDecision, TransitionOutcome, decide  # noqa: F401

__all__ = [
    "BoardService",
    "BoardStore",
    "InMemoryBoardStore",
    "MemberRole",
    "TaskStatus",
    "TransitionDecision",
    "TransitionOutcome",
    "decide",
]
