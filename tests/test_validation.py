"""Unit tests for compass.board.validation — task fields and email format."""

import pytest

from compass.board.models import TaskPriority
from compass.board.validation import is_valid_email, normalize_email, validate_task


class TestValidateTask:
    def test_valid(self):
        assert validate_task({"title": "Plan sprint", "project_id": "p1", "priority": "high"}) == []

    def test_priority_defaults_to_medium(self):
        assert validate_task({"title": "x", "project_id": "p1"}) == []

    def test_priority_enum_member_accepted(self):
        assert validate_task({"title": "x", "project_id": "p1", "priority": TaskPriority.URGENT}) == []

    def test_title_required(self):
        assert validate_task({"title": "   ", "project_id": "p1"}) == ["Title is required"]

    def test_title_length(self):
        assert validate_task({"title": "t" * 200, "project_id": "p1"}) == []
        errors = validate_task({"title": "t" * 201, "project_id": "p1"})
        assert errors == ["Title must be 200 characters or fewer"]

    def test_bad_priority(self):
        assert validate_task({"title": "x", "project_id": "p1", "priority": "asap"}) == [
            "Invalid priority: asap"
        ]

    def test_project_required(self):
        assert "Project ID is required" in validate_task({"title": "x"})

    def test_assignee_executor_distinct(self):
        errors = validate_task({"title": "x", "project_id": "p1", "assignee_id": "u1", "executor_id": "u1"})
        assert errors == ["Assignee and Executor cannot be the same person"]

    def test_only_one_of_assignee_executor(self):
        assert validate_task({"title": "x", "project_id": "p1", "executor_id": "u1"}) == []


class TestEmail:
    @pytest.mark.parametrize("email", ["a@b.co", "  First.Last@Example.ORG ", "x+tag@sub.domain.io"])
    def test_valid(self, email):
        assert is_valid_email(email) is True

    @pytest.mark.parametrize("email", ["not-an-email", "a@b", "", "a b@c.de", "a@@b.co", None, 42])
    def test_invalid(self, email):
        assert is_valid_email(email) is False

    def test_normalize(self):
        assert normalize_email("  Alice@Example.COM ") == "alice@example.com"
