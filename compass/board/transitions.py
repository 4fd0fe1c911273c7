"""
Task transition authorizer — decides what happens when a card is dropped
on another column.

Rules, first match wins:
    1. worker → done          redirected to review, with a notice
    2. review → done          rejected unless owner
    3. done → anything        rejected unless owner
    4. everything else        allowed as requested

The decision is pure; writing the effective status is the caller's job.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from compass.board.models import MemberRole, TaskStatus
from compass.engine.errors import CompassValidationError

REVIEW_NOTICE = "Task sent for review. Waiting for owner approval."
APPROVAL_REQUIRED = "Only the project owner can approve tasks."
APPROVED_LOCKED = "Approved tasks can only be moved by the owner."


class TransitionOutcome(str, Enum):
    ALLOWED = "allowed"
    REDIRECTED = "redirected"
    REJECTED = "rejected"


@dataclass(frozen=True)
class TransitionDecision:
    outcome: TransitionOutcome
    effective_status: TaskStatus
    notice: Optional[str] = None
    error: Optional[str] = None

    @property
    def allowed(self) -> bool:
        return self.outcome is not TransitionOutcome.REJECTED

    def to_dict(self) -> dict:
        d = {
            "allowed": self.allowed,
            "outcome": self.outcome.value,
            "effective_status": self.effective_status.value,
        }
        if self.notice:
            d["notice"] = self.notice
        if self.error:
            d["error"] = self.error
        return d


def coerce_status(value: Union[str, TaskStatus]) -> TaskStatus:
    try:
        return TaskStatus(value)
    except ValueError:
        raise CompassValidationError(f"Invalid task status: {value!r}", field="status") from None


def coerce_role(value: Union[str, MemberRole]) -> MemberRole:
    try:
        return MemberRole(value)
    except ValueError:
        raise CompassValidationError(f"Invalid member role: {value!r}", field="role") from None


def decide(
    from_status: Union[str, TaskStatus],
    to_status: Union[str, TaskStatus],
    actor_role: Union[str, MemberRole],
) -> TransitionDecision:
    """
    Decide one proposed move. Accepts enum members or their string values;
    unknown strings raise CompassValidationError before any rule runs.
    """
    from_status = coerce_status(from_status)
    to_status = coerce_status(to_status)
    actor_role = coerce_role(actor_role)

    if actor_role is MemberRole.WORKER and to_status is TaskStatus.DONE:
        return TransitionDecision(
            outcome=TransitionOutcome.REDIRECTED,
            effective_status=TaskStatus.REVIEW,
            notice=REVIEW_NOTICE,
        )

    is_owner = actor_role is MemberRole.OWNER

    if from_status is TaskStatus.REVIEW and to_status is TaskStatus.DONE and not is_owner:
        return _reject(from_status, APPROVAL_REQUIRED)

    if from_status is TaskStatus.DONE and not is_owner:
        return _reject(from_status, APPROVED_LOCKED)

    return TransitionDecision(outcome=TransitionOutcome.ALLOWED, effective_status=to_status)


def _reject(current: TaskStatus, error: str) -> TransitionDecision:
    # Nothing moves: the effective status stays where the task is.
    return TransitionDecision(
        outcome=TransitionOutcome.REJECTED,
        effective_status=current,
        error=error,
    )
