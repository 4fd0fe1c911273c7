"""Validation rules for task data and email input."""

from __future__ import annotations

import re
from typing import Any, Dict, List

from compass.board.models import TaskPriority

# local@domain.tld, no whitespace anywhere
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

TITLE_MAX_LENGTH = 200
REJECT_REASON_MAX_LENGTH = 1000
COMMENT_MAX_LENGTH = 4000


def normalize_email(email: str) -> str:
    return email.strip().lower()


def is_valid_email(email: Any) -> bool:
    """True for a string that matches the email pattern once normalized."""
    if not isinstance(email, str):
        return False
    return bool(EMAIL_PATTERN.match(normalize_email(email)))


def validate_task(fields: Dict[str, Any]) -> List[str]:
    """
    Validate task data before creation.
    Returns the list of problems; empty means valid.
    """
    title = fields.get("title") or ""
    priority = fields.get("priority") or TaskPriority.MEDIUM.value
    project_id = fields.get("project_id")
    assignee_id = fields.get("assignee_id")
    executor_id = fields.get("executor_id")

    errors = []
    if not str(title).strip():
        errors.append("Title is required")
    if len(str(title).strip()) > TITLE_MAX_LENGTH:
        errors.append(f"Title must be {TITLE_MAX_LENGTH} characters or fewer")
    if priority not in [p.value for p in TaskPriority]:
        errors.append(f"Invalid priority: {priority}")
    if not project_id:
        errors.append("Project ID is required")
    if assignee_id and executor_id and assignee_id == executor_id:
        errors.append("Assignee and Executor cannot be the same person")
    return errors
