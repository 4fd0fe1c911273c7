"""
Review workflow — owner approval or rejection of tasks waiting in review.

Rejection is two writes in a fixed order:
    1. append the reason as a comment on the task
    2. move the task back to todo
If step 1 fails the status is left untouched, so a task never silently
drops back to todo without a recorded reason.
"""

from __future__ import annotations

import logging
from typing import Union

from compass.board.models import Comment, MemberRole, Task, TaskStatus
from compass.board.permissions import Capability, require
from compass.board.store import BoardStore
from compass.board.validation import REJECT_REASON_MAX_LENGTH
from compass.engine.errors import CompassValidationError
from compass.engine.logging import log, log_transition_decision

logger = logging.getLogger("compass.board.review")

APPROVED_NOTICE = "Task approved!"
REJECTED_NOTICE = "Task rejected and sent back for revision."


class ReviewWorkflow:
    def __init__(self, store: BoardStore):
        self._store = store

    def approve(self, task_id: str, actor_role: Union[str, MemberRole], actor_id: str) -> Task:
        task = self._reviewable(task_id, actor_role, actor_id)
        updated = self._store.set_status(task.id, TaskStatus.DONE)
        self._log(task, TaskStatus.DONE, actor_id)
        logger.info(f"Task {task.id} approved by {actor_id}")
        return updated

    def reject(
        self,
        task_id: str,
        actor_role: Union[str, MemberRole],
        actor_id: str,
        reason: str,
    ) -> Task:
        """
        Send a reviewed task back to todo with a comment explaining why.

        Raises:
            CompassValidationError: empty or over-long reason (nothing written).
            Any store error from the comment write propagates, and the status
            write is not attempted.
        """
        task = self._reviewable(task_id, actor_role, actor_id)

        reason = (reason or "").strip()
        if not reason:
            raise CompassValidationError("A rejection reason is required", task_id=task_id)
        if len(reason) > REJECT_REASON_MAX_LENGTH:
            raise CompassValidationError(
                f"Rejection reason must be {REJECT_REASON_MAX_LENGTH} characters or fewer",
                task_id=task_id,
            )

        self._store.insert_comment(Comment(task_id=task.id, user_id=actor_id, content=reason))
        updated = self._store.set_status(task.id, TaskStatus.TODO)

        self._log(task, TaskStatus.TODO, actor_id)
        logger.info(f"Task {task.id} rejected by {actor_id}")
        return updated

    def _reviewable(self, task_id: str, actor_role, actor_id: str) -> Task:
        require(actor_role, Capability.REVIEW_TASK, user_id=actor_id, task_id=task_id)
        task = self._store.get_task(task_id)
        if task.status is not TaskStatus.REVIEW:
            raise CompassValidationError(
                f"Task is not awaiting review (status: {task.status.value})",
                task_id=task_id,
            )
        return task

    def _log(self, task: Task, to_status: TaskStatus, actor_id: str) -> None:
        log(log_transition_decision(
            task_id=task.id,
            from_status=task.status.value,
            to_status=to_status.value,
            actor_role=MemberRole.OWNER.value,
            outcome="allowed",
            effective_status=to_status.value,
            user_id=actor_id,
        ))
