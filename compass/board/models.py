"""Board records — projects, members, tasks and comments."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TaskStatus(str, Enum):
    """Kanban column a task occupies."""

    TODO = "todo"
    IN_PROGRESS = "in_progress"
    REVIEW = "review"
    DONE = "done"


class MemberRole(str, Enum):
    """Exactly one role per (project, user)."""

    OWNER = "owner"
    MEMBER = "member"
    WORKER = "worker"


class TaskPriority(str, Enum):
    URGENT = "urgent"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


ASSIGNABLE_ROLES = frozenset({MemberRole.MEMBER, MemberRole.WORKER})


class Project(BaseModel):
    id: str = Field(default_factory=_new_id)
    name: str = Field(max_length=200)
    description: str = ""
    owner_id: str
    created_at: datetime = Field(default_factory=_utcnow)


class ProjectMember(BaseModel):
    id: str = Field(default_factory=_new_id)
    project_id: str
    user_id: str
    role: MemberRole = MemberRole.MEMBER


class Task(BaseModel):
    """
    Work item on a project board.

    ``assignee_id`` is who the task is for; ``executor_id`` is who does it.
    ``was_completed`` sticks once a task has reached done, even if the owner
    later moves it back.
    """

    id: str = Field(default_factory=_new_id)
    project_id: str
    title: str = Field(max_length=200)
    description: str = ""
    status: TaskStatus = TaskStatus.TODO
    priority: TaskPriority = TaskPriority.MEDIUM
    creator_id: Optional[str] = None
    assignee_id: Optional[str] = None
    executor_id: Optional[str] = None
    deadline: Optional[datetime] = None
    was_completed: bool = False
    completed_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=_utcnow)


class Comment(BaseModel):
    id: str = Field(default_factory=_new_id)
    task_id: str
    user_id: str
    content: str = Field(max_length=4000)
    created_at: datetime = Field(default_factory=_utcnow)


class Profile(BaseModel):
    id: str
    name: str
    avatar_url: Optional[str] = None
