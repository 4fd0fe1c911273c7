"""Project analytics — task counts, completion and overdue tracking."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from compass.board.models import Profile, Task, TaskStatus


@dataclass
class ProjectStats:
    total: int
    completed: int
    overdue: int
    completion_rate: int
    by_status: Dict[TaskStatus, int] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "completed": self.completed,
            "overdue": self.overdue,
            "completion_rate": self.completion_rate,
            "by_status": {s.value: n for s, n in self.by_status.items()},
        }


@dataclass
class MemberStats:
    profile: Profile
    stats: ProjectStats


def _aware(dt: datetime) -> datetime:
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


def compute_stats(
    tasks: Iterable[Task],
    now: Optional[datetime] = None,
    use_was_completed: bool = False,
) -> ProjectStats:
    """
    Summarize a set of tasks.

    ``use_was_completed`` counts tasks that ever reached done, which is what
    per-member stats want: a task the owner reopened still counts for the
    person who finished it.
    """
    now = _aware(now or datetime.now(timezone.utc))
    tasks = list(tasks)
    total = len(tasks)

    by_status = {status: 0 for status in TaskStatus}
    for t in tasks:
        by_status[t.status] += 1

    if use_was_completed:
        completed = sum(1 for t in tasks if t.was_completed)
    else:
        completed = by_status[TaskStatus.DONE]

    overdue = sum(
        1 for t in tasks
        if t.deadline is not None
        and _aware(t.deadline) < now
        and t.status is not TaskStatus.DONE
    )
    # Half-up rounding, not banker's.
    rate = int(completed * 100 / total + 0.5) if total else 0

    return ProjectStats(
        total=total,
        completed=completed,
        overdue=overdue,
        completion_rate=rate,
        by_status=by_status,
    )


def member_stats(
    tasks: Iterable[Task],
    member_ids: Iterable[str],
    profiles: Iterable[Profile],
    now: Optional[datetime] = None,
) -> List[MemberStats]:
    """
    Per-member breakdown. A task belongs to its executor, or to its assignee
    when no executor is set. Every member with a profile is listed, busiest
    first, including members with no tasks.
    """
    by_member: Dict[str, List[Task]] = {}
    for t in tasks:
        uid = t.executor_id or t.assignee_id
        if uid:
            by_member.setdefault(uid, []).append(t)

    profile_map = {p.id: p for p in profiles}
    seen = set()
    entries: List[MemberStats] = []
    for uid in member_ids:
        if uid in seen or uid not in profile_map:
            continue
        seen.add(uid)
        member_tasks = by_member.get(uid, [])
        entries.append(MemberStats(
            profile=profile_map[uid],
            stats=compute_stats(member_tasks, now=now, use_was_completed=True),
        ))

    entries.sort(key=lambda e: e.stats.total, reverse=True)
    return entries
