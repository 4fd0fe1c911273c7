"""
Project membership — create projects, invite by email, change roles, remove.

The owner is the project's creator and the only owner; ``member`` and
``worker`` are the roles an owner can hand out. The owner row itself can
be neither re-roled nor removed.
"""

from __future__ import annotations

import logging
from typing import Optional, Union

from compass.board.models import ASSIGNABLE_ROLES, MemberRole, Project, ProjectMember
from compass.board.permissions import Capability, require
from compass.board.store import BoardStore
from compass.board.transitions import coerce_role
from compass.board.validation import is_valid_email, normalize_email
from compass.engine.errors import CompassSecurityError, CompassValidationError
from compass.engine.logging import log, log_member_event

logger = logging.getLogger("compass.board.membership")


def create_project(store: BoardStore, name: str, owner_id: str, description: str = "") -> Project:
    name = (name or "").strip()
    if not name:
        raise CompassValidationError("Project name is required")
    project = store.insert_project(
        Project(name=name, description=(description or "").strip(), owner_id=owner_id)
    )
    store.insert_member(ProjectMember(project_id=project.id, user_id=owner_id, role=MemberRole.OWNER))
    log(log_member_event("member_added", project.id, owner_id, MemberRole.OWNER.value))
    return project


def delete_project(store: BoardStore, project_id: str, actor_role: Union[str, MemberRole, None]) -> None:
    require(actor_role, Capability.DELETE_PROJECT, project_id=project_id)
    store.delete_project(project_id)
    logger.info(f"Project {project_id} deleted")


def _assignable(role: Union[str, MemberRole]) -> MemberRole:
    resolved = coerce_role(role)
    if resolved not in ASSIGNABLE_ROLES:
        raise CompassValidationError(
            f"Role '{resolved.value}' cannot be assigned", field="role"
        )
    return resolved


async def invite_member(
    lookup,
    store: BoardStore,
    project_id: str,
    email: str,
    role: Union[str, MemberRole],
    actor_role: Union[str, MemberRole, None],
    credential: Optional[str] = None,
) -> ProjectMember:
    """
    Add a registered user to a project by email.

    ``lookup`` is a LookupClient (or anything with the same
    ``find_user_by_email(email, credential)`` coroutine).

    Raises:
        CompassSecurityError: actor is not the owner.
        CompassValidationError: bad email or non-assignable role.
        CompassNotFoundError: no registered user with this email.
        CompassConflictError: user already in the project.
    """
    require(actor_role, Capability.MANAGE_MEMBERS, project_id=project_id)
    new_role = _assignable(role)

    if not is_valid_email(email):
        raise CompassValidationError("Please enter a valid email address", field="email")

    user = await lookup.find_user_by_email(normalize_email(email), credential)
    member = store.insert_member(
        ProjectMember(project_id=project_id, user_id=user.id, role=new_role)
    )
    log(log_member_event("member_added", project_id, user.id, new_role.value))
    logger.info(f"{user.name} added to project {project_id} as {new_role.value}")
    return member


def change_role(
    store: BoardStore,
    member_id: str,
    new_role: Union[str, MemberRole],
    actor_role: Union[str, MemberRole, None],
) -> ProjectMember:
    member = store.get_member(member_id)
    require(actor_role, Capability.MANAGE_MEMBERS, project_id=member.project_id)
    if member.role is MemberRole.OWNER:
        raise CompassSecurityError(
            "The project owner's role cannot be changed",
            project_id=member.project_id,
            user_id=member.user_id,
        )
    updated = store.update_member_role(member_id, _assignable(new_role))
    log(log_member_event("member_role_changed", member.project_id, member.user_id, updated.role.value))
    return updated


def remove_member(
    store: BoardStore,
    member_id: str,
    actor_role: Union[str, MemberRole, None],
) -> None:
    member = store.get_member(member_id)
    require(actor_role, Capability.MANAGE_MEMBERS, project_id=member.project_id)
    if member.role is MemberRole.OWNER:
        raise CompassSecurityError(
            "The project owner cannot be removed",
            project_id=member.project_id,
            user_id=member.user_id,
        )
    store.delete_member(member_id)
    log(log_member_event("member_removed", member.project_id, member.user_id))
