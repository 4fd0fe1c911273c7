"""Unit tests for compass.board.membership — projects, invites, roles."""

from unittest.mock import AsyncMock

import pytest

from compass.board.membership import (
    change_role,
    create_project,
    delete_project,
    invite_member,
    remove_member,
)
from compass.board.models import MemberRole, Task
from compass.engine.errors import (
    CompassConflictError,
    CompassNotFoundError,
    CompassSecurityError,
    CompassValidationError,
)
from compass.lookup.client import LookupResult


@pytest.fixture
def lookup():
    client = AsyncMock()
    client.find_user_by_email.return_value = LookupResult(id="u-new", name="Nia New")
    return client


class TestCreateDeleteProject:
    def test_creator_becomes_owner(self, board_store):
        project = create_project(board_store, "  Roadmap ", "u-owner", "Q3")
        assert project.name == "Roadmap"
        members = board_store.list_members(project.id)
        assert [(m.user_id, m.role) for m in members] == [("u-owner", MemberRole.OWNER)]
        assert board_store.get_role(project.id, "u-owner") is MemberRole.OWNER

    def test_name_required(self, board_store):
        with pytest.raises(CompassValidationError):
            create_project(board_store, "  ", "u-owner")

    def test_owner_deletes_with_cascade(self, board_store):
        board_store.insert_task(Task(project_id="p1", title="t"))
        delete_project(board_store, "p1", "owner")
        with pytest.raises(CompassNotFoundError):
            board_store.get_project("p1")
        assert board_store.list_tasks("p1") == []
        assert board_store.list_members("p1") == []

    def test_member_cannot_delete(self, board_store):
        with pytest.raises(CompassSecurityError, match="Only the project owner can delete this project"):
            delete_project(board_store, "p1", "member")


class TestInvite:
    @pytest.mark.asyncio
    async def test_invite_adds_member(self, board_store, lookup):
        member = await invite_member(
            lookup, board_store, "p1", "  New@Example.com ", "worker", "owner", credential="tok"
        )
        assert member.user_id == "u-new"
        assert member.role is MemberRole.WORKER
        lookup.find_user_by_email.assert_awaited_once_with("new@example.com", "tok")
        assert board_store.get_role("p1", "u-new") is MemberRole.WORKER

    @pytest.mark.asyncio
    async def test_owner_role_not_assignable(self, board_store, lookup):
        with pytest.raises(CompassValidationError, match="cannot be assigned"):
            await invite_member(lookup, board_store, "p1", "a@b.co", "owner", "owner")
        lookup.find_user_by_email.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_bad_email_skips_lookup(self, board_store, lookup):
        with pytest.raises(CompassValidationError, match="valid email"):
            await invite_member(lookup, board_store, "p1", "nope", "member", "owner")
        lookup.find_user_by_email.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_only_owner_invites(self, board_store, lookup):
        with pytest.raises(CompassSecurityError):
            await invite_member(lookup, board_store, "p1", "a@b.co", "member", "member")

    @pytest.mark.asyncio
    async def test_already_member_conflicts(self, board_store, lookup):
        lookup.find_user_by_email.return_value = LookupResult(id="u-member", name="Max")
        with pytest.raises(CompassConflictError, match="User is already a project member"):
            await invite_member(lookup, board_store, "p1", "max@example.com", "worker", "owner")

    @pytest.mark.asyncio
    async def test_lookup_errors_propagate(self, board_store, lookup):
        lookup.find_user_by_email.side_effect = CompassNotFoundError("User not found")
        with pytest.raises(CompassNotFoundError):
            await invite_member(lookup, board_store, "p1", "ghost@example.com", "member", "owner")
        assert len(board_store.list_members("p1")) == 3


class TestRoleChanges:
    def test_change_role(self, board_store):
        updated = change_role(board_store, "m-worker", "member", "owner")
        assert updated.role is MemberRole.MEMBER

    def test_owner_row_locked(self, board_store):
        with pytest.raises(CompassSecurityError, match="owner's role"):
            change_role(board_store, "m-owner", "member", "owner")

    def test_cannot_promote_to_owner(self, board_store):
        with pytest.raises(CompassValidationError):
            change_role(board_store, "m-member", "owner", "owner")

    def test_member_cannot_change_roles(self, board_store):
        with pytest.raises(CompassSecurityError):
            change_role(board_store, "m-worker", "member", "member")

    def test_remove_member(self, board_store):
        remove_member(board_store, "m-worker", "owner")
        assert board_store.get_role("p1", "u-worker") is None

    def test_owner_cannot_be_removed(self, board_store):
        with pytest.raises(CompassSecurityError, match="cannot be removed"):
            remove_member(board_store, "m-owner", "owner")

    def test_unknown_member(self, board_store):
        with pytest.raises(CompassNotFoundError):
            remove_member(board_store, "m-ghost", "owner")
