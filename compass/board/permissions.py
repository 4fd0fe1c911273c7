"""
Compass Role Permissions — what each project role may do on a board.

    capability        owner  member  worker
    create_task         ✓      ✓
    delete_task         ✓      ✓
    edit_task           ✓      ✓
    move_task           ✓      ✓       ✓
    view_task           ✓      ✓       ✓   (worker: read-only detail)
    comment             ✓      ✓       ✓
    review_task         ✓
    manage_members      ✓
    delete_project      ✓

Status moves are further gated by ``compass.board.transitions.decide``.
A user with no membership (role None) can do nothing.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional, Union

from compass.board.models import MemberRole
from compass.engine.errors import CompassSecurityError
from compass.engine.logging import log, log_security_event

logger = logging.getLogger("compass.board.permissions")


class Capability(str, Enum):
    CREATE_TASK = "create_task"
    DELETE_TASK = "delete_task"
    EDIT_TASK = "edit_task"
    MOVE_TASK = "move_task"
    VIEW_TASK = "view_task"
    COMMENT = "comment"
    REVIEW_TASK = "review_task"
    MANAGE_MEMBERS = "manage_members"
    DELETE_PROJECT = "delete_project"


_WRITERS = frozenset({MemberRole.OWNER, MemberRole.MEMBER})
_EVERYONE = frozenset(MemberRole)
_OWNER_ONLY = frozenset({MemberRole.OWNER})

ROLE_CAPABILITIES: Dict[Capability, FrozenSet[MemberRole]] = {
    Capability.CREATE_TASK: _WRITERS,
    Capability.DELETE_TASK: _WRITERS,
    Capability.EDIT_TASK: _WRITERS,
    Capability.MOVE_TASK: _EVERYONE,
    Capability.VIEW_TASK: _EVERYONE,
    Capability.COMMENT: _EVERYONE,
    Capability.REVIEW_TASK: _OWNER_ONLY,
    Capability.MANAGE_MEMBERS: _OWNER_ONLY,
    Capability.DELETE_PROJECT: _OWNER_ONLY,
}

_DENIED_MESSAGES = {
    Capability.CREATE_TASK: "Only owners and members can create tasks.",
    Capability.DELETE_TASK: "Only owners and members can delete tasks.",
    Capability.EDIT_TASK: "Only owners and members can edit tasks.",
    Capability.REVIEW_TASK: "Only the project owner can approve or reject tasks.",
    Capability.MANAGE_MEMBERS: "Only the project owner can manage members.",
    Capability.DELETE_PROJECT: "Only the project owner can delete this project",
}


def _as_role(role: Union[str, MemberRole, None]) -> Optional[MemberRole]:
    if role is None:
        return None
    try:
        return MemberRole(role)
    except ValueError:
        return None


def can(role: Union[str, MemberRole, None], capability: Capability) -> bool:
    """Check if ``role`` grants ``capability``."""
    resolved = _as_role(role)
    if resolved is None:
        return False
    return resolved in ROLE_CAPABILITIES[capability]


def require(role: Union[str, MemberRole, None], capability: Capability, **context: Any) -> None:
    """
    Raise CompassSecurityError unless ``role`` grants ``capability``.
    Denials are written to the security activity log.
    """
    if can(role, capability):
        return

    resolved = _as_role(role)
    role_name = resolved.value if resolved else None
    message = _DENIED_MESSAGES.get(capability, "You are not a member of this project.")
    if resolved is None:
        message = "You are not a member of this project."

    log(log_security_event(
        event="permission_denied",
        object_type="members" if capability is Capability.MANAGE_MEMBERS else "transitions",
        permission_needed=capability.value,
        actor_role=role_name,
        user_id=context.get("user_id"),
    ))
    logger.info(f"Denied {capability.value} for role={role_name}")
    raise CompassSecurityError(
        message,
        actor_role=role_name,
        required_permission=capability.value,
        **context,
    )


def is_read_only(role: Union[str, MemberRole, None]) -> bool:
    """True when the role may open a task but not edit it (worker detail view)."""
    return can(role, Capability.VIEW_TASK) and not can(role, Capability.EDIT_TASK)
