"""
Compass Error Hierarchy — Structured exceptions shared by the board and lookup service.

Every error carries a message plus free-form context, serializes to JSON for
the activity log, and knows the HTTP status it maps to at the service boundary.

Hierarchy:
    CompassError                 — 500  Internal
    ├── CompassSessionError      — 401  Missing / invalid credential
    ├── CompassSecurityError     — 403  Role does not permit the action
    ├── CompassValidationError   — 400  Malformed or missing input
    ├── CompassNotFoundError     — 404  No matching user / task / member
    ├── CompassConflictError     — 409  Duplicate membership
    ├── CompassRateLimitError    — 429  Quota exceeded
    ├── CompassIntegrationError  — 500  Identity provider / store call failed
    └── CompassConfigError       — 500  Invalid compass.yaml
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


class CompassError(Exception):
    """
    Base error for all Compass failures.
    All context is serializable to JSON.
    """

    status_code: int = 500

    def __init__(self, message: str, **context: Any):
        self.message = message
        self.error_type: str = self.__class__.__name__
        self.context: Dict[str, Any] = context
        self.user_id: Optional[str] = context.get("user_id")
        self.task_id: Optional[str] = context.get("task_id")
        self.project_id: Optional[str] = context.get("project_id")
        self.timestamp: str = datetime.now(timezone.utc).isoformat()
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize error to JSON-compatible dict for logging."""
        return {
            "error_type": self.error_type,
            "message": self.message,
            "status_code": self.status_code,
            "user_id": self.user_id,
            "task_id": self.task_id,
            "project_id": self.project_id,
            "timestamp": self.timestamp,
            "context": {
                k: str(v) for k, v in self.context.items()
                if k not in ("user_id", "task_id", "project_id")
            },
        }

    def to_json(self) -> str:
        """Serialize to JSON string."""
        return json.dumps(self.to_dict(), default=str)

    def __repr__(self) -> str:
        parts = [f"{self.error_type}: {self.message}"]
        if self.task_id:
            parts.append(f"task_id={self.task_id}")
        if self.user_id:
            parts.append(f"user_id={self.user_id}")
        return " | ".join(parts)


class CompassSessionError(CompassError):
    """Missing or unverifiable credential."""

    status_code = 401


class CompassSecurityError(CompassError):
    """
    Role-based rejection. Includes the acting role and the capability
    that was required.
    """

    status_code = 403

    def __init__(self, message: str, **context: Any):
        self.actor_role: Optional[str] = context.get("actor_role")
        self.required_permission: Optional[str] = context.get("required_permission")
        super().__init__(message, **context)

    def to_dict(self) -> Dict[str, Any]:
        d = super().to_dict()
        d["actor_role"] = self.actor_role
        d["required_permission"] = self.required_permission
        return d


class CompassValidationError(CompassError):
    """
    Input validation failed.
    Includes field-level error details when several checks ran.
    """

    status_code = 400

    def __init__(self, message: str, **context: Any):
        self.validation_errors: List[str] = list(context.get("validation_errors") or [])
        super().__init__(message, **context)

    def to_dict(self) -> Dict[str, Any]:
        d = super().to_dict()
        d["validation_errors"] = self.validation_errors
        return d


class CompassNotFoundError(CompassError):
    """Requested user, task, project or member does not exist."""

    status_code = 404


class CompassConflictError(CompassError):
    """Write would duplicate an existing row (e.g. project membership)."""

    status_code = 409


class CompassRateLimitError(CompassError):
    """Caller exceeded its request quota for the current window."""

    status_code = 429

    def __init__(self, message: str, **context: Any):
        self.retry_after: Optional[int] = context.get("retry_after")
        super().__init__(message, **context)


class CompassIntegrationError(CompassError):
    """External collaborator call failed (identity provider, data store)."""

    def __init__(self, message: str, **context: Any):
        self.upstream_status: Optional[int] = context.get("upstream_status")
        self.response_body: Optional[str] = context.get("response_body")
        super().__init__(message, **context)

    def to_dict(self) -> Dict[str, Any]:
        d = super().to_dict()
        d["upstream_status"] = self.upstream_status
        return d


class CompassConfigError(CompassError):
    """Configuration error — invalid compass.yaml."""
    pass
