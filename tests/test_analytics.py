"""Unit tests for compass.board.analytics — project and member stats."""

from datetime import datetime, timedelta, timezone

from compass.board.analytics import compute_stats, member_stats
from compass.board.models import Profile, Task, TaskStatus

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _task(status=TaskStatus.TODO, **fields):
    return Task(project_id="p1", title="t", status=status, **fields)


class TestComputeStats:
    def test_empty(self):
        stats = compute_stats([], now=NOW)
        assert stats.total == 0
        assert stats.completion_rate == 0
        assert stats.by_status == {s: 0 for s in TaskStatus}

    def test_counts_and_rate(self):
        tasks = [
            _task(TaskStatus.DONE),
            _task(TaskStatus.DONE),
            _task(TaskStatus.REVIEW),
        ]
        stats = compute_stats(tasks, now=NOW)
        assert stats.total == 3
        assert stats.completed == 2
        assert stats.completion_rate == 67
        assert stats.by_status[TaskStatus.REVIEW] == 1
        assert stats.by_status[TaskStatus.TODO] == 0

    def test_rate_rounds_half_up(self):
        tasks = [_task(TaskStatus.DONE)] + [_task() for _ in range(7)]
        assert compute_stats(tasks, now=NOW).completion_rate == 13  # 12.5

    def test_overdue_excludes_done_and_future(self):
        past = NOW - timedelta(days=1)
        tasks = [
            _task(TaskStatus.TODO, deadline=past),
            _task(TaskStatus.DONE, deadline=past),
            _task(TaskStatus.IN_PROGRESS, deadline=NOW + timedelta(days=1)),
            _task(TaskStatus.REVIEW),
        ]
        assert compute_stats(tasks, now=NOW).overdue == 1

    def test_naive_deadline_treated_as_utc(self):
        tasks = [_task(deadline=datetime(2026, 2, 1))]
        assert compute_stats(tasks, now=NOW).overdue == 1

    def test_was_completed_flag(self):
        tasks = [_task(TaskStatus.TODO, was_completed=True), _task(TaskStatus.TODO)]
        assert compute_stats(tasks, now=NOW).completed == 0
        assert compute_stats(tasks, now=NOW, use_was_completed=True).completed == 1

    def test_to_dict(self):
        d = compute_stats([_task(TaskStatus.DONE)], now=NOW).to_dict()
        assert d["by_status"] == {"todo": 0, "in_progress": 0, "review": 0, "done": 1}
        assert d["completion_rate"] == 100


class TestMemberStats:
    def setup_method(self):
        self.profiles = [
            Profile(id="u1", name="Ana"),
            Profile(id="u2", name="Ben"),
            Profile(id="u3", name="Cy"),
        ]

    def test_groups_by_executor_then_assignee(self):
        tasks = [
            _task(executor_id="u2", assignee_id="u1"),
            _task(assignee_id="u2"),
            _task(assignee_id="u1", was_completed=True),
        ]
        result = member_stats(tasks, ["u1", "u2", "u3"], self.profiles, now=NOW)
        assert [m.profile.id for m in result] == ["u2", "u1", "u3"]
        assert result[0].stats.total == 2
        assert result[1].stats.completed == 1
        assert result[2].stats.total == 0

    def test_members_without_profile_skipped(self):
        result = member_stats([_task(executor_id="ghost")], ["ghost", "u1"], self.profiles, now=NOW)
        assert [m.profile.id for m in result] == ["u1"]

    def test_duplicate_member_ids_listed_once(self):
        result = member_stats([], ["u1", "u1"], self.profiles, now=NOW)
        assert len(result) == 1
