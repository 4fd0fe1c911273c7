"""
Board storage — the data store the board writes through.

``BoardStore`` is the contract; production deployments back it with the
hosted relational store (whose row-level policies are an independent check).
``InMemoryBoardStore`` keeps everything in dicts and is what the CLI demo
and the test suite run against.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from compass.board.models import (
    Comment,
    MemberRole,
    Profile,
    Project,
    ProjectMember,
    Task,
    TaskStatus,
)
from compass.engine.errors import CompassConflictError, CompassNotFoundError

logger = logging.getLogger("compass.board.store")


class BoardStore(ABC):
    """Generic CRUD over projects, members, tasks and comments."""

    # ── Projects ──

    @abstractmethod
    def insert_project(self, project: Project) -> Project: ...

    @abstractmethod
    def get_project(self, project_id: str) -> Project: ...

    @abstractmethod
    def delete_project(self, project_id: str) -> None: ...

    # ── Members ──

    @abstractmethod
    def insert_member(self, member: ProjectMember) -> ProjectMember:
        """Raises CompassConflictError when the user is already in the project."""

    @abstractmethod
    def get_member(self, member_id: str) -> ProjectMember: ...

    @abstractmethod
    def list_members(self, project_id: str) -> List[ProjectMember]: ...

    @abstractmethod
    def update_member_role(self, member_id: str, role: MemberRole) -> ProjectMember: ...

    @abstractmethod
    def delete_member(self, member_id: str) -> None: ...

    # ── Tasks ──

    @abstractmethod
    def insert_task(self, task: Task) -> Task: ...

    @abstractmethod
    def get_task(self, task_id: str) -> Task: ...

    @abstractmethod
    def list_tasks(self, project_id: Optional[str] = None) -> List[Task]: ...

    @abstractmethod
    def update_task(self, task_id: str, **changes: Any) -> Task: ...

    @abstractmethod
    def delete_task(self, task_id: str) -> None: ...

    # ── Comments ──

    @abstractmethod
    def insert_comment(self, comment: Comment) -> Comment: ...

    @abstractmethod
    def list_comments(self, task_id: str) -> List[Comment]: ...

    # ── Profiles ──

    @abstractmethod
    def list_profiles(self) -> List[Profile]: ...

    # ── Derived helpers ──

    def get_role(self, project_id: str, user_id: str) -> Optional[MemberRole]:
        """The user's role in the project, or None when not a member."""
        for m in self.list_members(project_id):
            if m.user_id == user_id:
                return m.role
        return None

    def set_status(self, task_id: str, status: TaskStatus) -> Task:
        """Status write; reaching done also stamps the completion markers."""
        changes: Dict[str, Any] = {"status": status}
        if status is TaskStatus.DONE:
            changes["was_completed"] = True
            changes["completed_at"] = datetime.now(timezone.utc)
        return self.update_task(task_id, **changes)


class InMemoryBoardStore(BoardStore):
    """Dict-backed store. Not shared across processes."""

    def __init__(self, profiles: Optional[List[Profile]] = None):
        self._projects: Dict[str, Project] = {}
        self._members: Dict[str, ProjectMember] = {}
        self._tasks: Dict[str, Task] = {}
        self._comments: Dict[str, Comment] = {}
        self._profiles: Dict[str, Profile] = {p.id: p for p in (profiles or [])}

    def insert_project(self, project: Project) -> Project:
        self._projects[project.id] = project
        return project

    def get_project(self, project_id: str) -> Project:
        project = self._projects.get(project_id)
        if project is None:
            raise CompassNotFoundError(f"Project {project_id} not found", project_id=project_id)
        return project

    def delete_project(self, project_id: str) -> None:
        self.get_project(project_id)
        del self._projects[project_id]
        task_ids = [t.id for t in self._tasks.values() if t.project_id == project_id]
        for task_id in task_ids:
            self.delete_task(task_id)
        for member_id in [m.id for m in self._members.values() if m.project_id == project_id]:
            del self._members[member_id]

    def insert_member(self, member: ProjectMember) -> ProjectMember:
        for existing in self._members.values():
            if existing.project_id == member.project_id and existing.user_id == member.user_id:
                raise CompassConflictError(
                    "User is already a project member",
                    project_id=member.project_id,
                    user_id=member.user_id,
                )
        self._members[member.id] = member
        return member

    def get_member(self, member_id: str) -> ProjectMember:
        member = self._members.get(member_id)
        if member is None:
            raise CompassNotFoundError(f"Member {member_id} not found", member_id=member_id)
        return member

    def list_members(self, project_id: str) -> List[ProjectMember]:
        return [m for m in self._members.values() if m.project_id == project_id]

    def update_member_role(self, member_id: str, role: MemberRole) -> ProjectMember:
        member = self.get_member(member_id).model_copy(update={"role": role})
        self._members[member_id] = member
        return member

    def delete_member(self, member_id: str) -> None:
        self.get_member(member_id)
        del self._members[member_id]

    def insert_task(self, task: Task) -> Task:
        self._tasks[task.id] = task
        return task

    def get_task(self, task_id: str) -> Task:
        task = self._tasks.get(task_id)
        if task is None:
            raise CompassNotFoundError(f"Task {task_id} not found", task_id=task_id)
        return task

    def list_tasks(self, project_id: Optional[str] = None) -> List[Task]:
        tasks = list(self._tasks.values())
        if project_id is not None:
            tasks = [t for t in tasks if t.project_id == project_id]
        return sorted(tasks, key=lambda t: t.created_at, reverse=True)

    def update_task(self, task_id: str, **changes: Any) -> Task:
        task = self.get_task(task_id).model_copy(update=changes)
        self._tasks[task_id] = task
        return task

    def delete_task(self, task_id: str) -> None:
        self.get_task(task_id)
        del self._tasks[task_id]
        for comment_id in [c.id for c in self._comments.values() if c.task_id == task_id]:
            del self._comments[comment_id]

    def insert_comment(self, comment: Comment) -> Comment:
        self.get_task(comment.task_id)
        self._comments[comment.id] = comment
        return comment

    def list_comments(self, task_id: str) -> List[Comment]:
        comments = [c for c in self._comments.values() if c.task_id == task_id]
        return sorted(comments, key=lambda c: c.created_at)

    def add_profile(self, profile: Profile) -> None:
        self._profiles[profile.id] = profile

    def list_profiles(self) -> List[Profile]:
        return list(self._profiles.values())
