"""
Board service — entry point for board UI events.

Every method takes the acting member's role; capability checks and the
transition authorizer run before any write reaches the store.
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Union

from compass.board.models import Comment, MemberRole, Task, TaskPriority, TaskStatus
from compass.board.permissions import Capability, require
from compass.board.review import ReviewWorkflow
from compass.board.store import BoardStore
from compass.board.transitions import (
    APPROVED_LOCKED,
    TransitionDecision,
    TransitionOutcome,
    decide,
)
from compass.board.validation import COMMENT_MAX_LENGTH, validate_task
from compass.engine.errors import CompassValidationError
from compass.engine.logging import log, log_transition_decision

logger = logging.getLogger("compass.board.service")

EDITABLE_FIELDS = frozenset({
    "title", "description", "priority", "assignee_id", "executor_id", "deadline",
})


class BoardService:
    def __init__(self, store: BoardStore):
        self._store = store
        self.review = ReviewWorkflow(store)

    @property
    def store(self) -> BoardStore:
        return self._store

    def move_task(
        self,
        task_id: str,
        to_status: Union[str, TaskStatus],
        actor_role: Union[str, MemberRole],
        actor_id: Optional[str] = None,
    ) -> TransitionDecision:
        """
        Apply a drag-and-drop move.

        The effective status is written only when the decision allows it;
        a rejected decision leaves the store untouched. An approved task
        stays locked for non-owners even when the drop would be redirected.
        """
        require(actor_role, Capability.MOVE_TASK, user_id=actor_id, task_id=task_id)
        task = self._store.get_task(task_id)
        decision = decide(task.status, to_status, actor_role)
        if (
            decision.allowed
            and task.status is TaskStatus.DONE
            and MemberRole(actor_role) is not MemberRole.OWNER
        ):
            decision = TransitionDecision(
                outcome=TransitionOutcome.REJECTED,
                effective_status=task.status,
                error=APPROVED_LOCKED,
            )

        log(log_transition_decision(
            task_id=task_id,
            from_status=task.status.value,
            to_status=TaskStatus(to_status).value,
            actor_role=MemberRole(actor_role).value,
            outcome=decision.outcome.value,
            effective_status=decision.effective_status.value,
            user_id=actor_id,
        ))

        if not decision.allowed:
            logger.info(f"Move of task {task_id} rejected: {decision.error}")
            return decision

        if decision.effective_status is not task.status:
            self._store.set_status(task_id, decision.effective_status)
        return decision

    def create_task(
        self,
        project_id: str,
        actor_role: Union[str, MemberRole],
        creator_id: str,
        /,
        **fields: Any,
    ) -> Task:
        """New tasks always start in todo; status and ids are not caller-supplied."""
        require(actor_role, Capability.CREATE_TASK, user_id=creator_id, project_id=project_id)
        unknown = set(fields) - EDITABLE_FIELDS
        if unknown:
            raise CompassValidationError(
                f"Fields cannot be set on create: {', '.join(sorted(unknown))}",
                project_id=project_id,
            )

        fields["project_id"] = project_id
        errors = validate_task(fields)
        if errors:
            raise CompassValidationError(
                errors[0], validation_errors=errors, project_id=project_id
            )

        fields["title"] = fields["title"].strip()
        if "description" in fields and fields["description"] is not None:
            fields["description"] = fields["description"].strip()
        task = Task(creator_id=creator_id, status=TaskStatus.TODO, **fields)
        return self._store.insert_task(task)

    def edit_task(
        self,
        task_id: str,
        actor_role: Union[str, MemberRole],
        actor_id: Optional[str] = None,
        **changes: Any,
    ) -> Task:
        require(actor_role, Capability.EDIT_TASK, user_id=actor_id, task_id=task_id)
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise CompassValidationError(
                f"Fields cannot be edited here: {', '.join(sorted(unknown))}",
                task_id=task_id,
            )

        task = self._store.get_task(task_id)
        merged = task.model_dump()
        merged.update(changes)
        errors = validate_task(merged)
        if errors:
            raise CompassValidationError(errors[0], validation_errors=errors, task_id=task_id)
        if "priority" in changes:
            changes["priority"] = TaskPriority(changes["priority"])
        if "title" in changes:
            changes["title"] = changes["title"].strip()
        return self._store.update_task(task_id, **changes)

    def delete_task(
        self,
        task_id: str,
        actor_role: Union[str, MemberRole],
        actor_id: Optional[str] = None,
    ) -> None:
        require(actor_role, Capability.DELETE_TASK, user_id=actor_id, task_id=task_id)
        self._store.delete_task(task_id)

    def add_comment(
        self,
        task_id: str,
        actor_role: Union[str, MemberRole],
        user_id: str,
        content: str,
    ) -> Comment:
        require(actor_role, Capability.COMMENT, user_id=user_id, task_id=task_id)
        content = (content or "").strip()
        if not content:
            raise CompassValidationError("Comment cannot be empty", task_id=task_id)
        if len(content) > COMMENT_MAX_LENGTH:
            raise CompassValidationError(
                f"Comment must be {COMMENT_MAX_LENGTH} characters or fewer",
                task_id=task_id,
            )
        return self._store.insert_comment(Comment(task_id=task_id, user_id=user_id, content=content))

    def approve(self, task_id: str, actor_role, actor_id: str) -> Task:
        return self.review.approve(task_id, actor_role, actor_id)

    def reject(self, task_id: str, actor_role, actor_id: str, reason: str) -> Task:
        return self.review.reject(task_id, actor_role, actor_id, reason)
