"""
Compass Activity Log — structured JSON-lines audit trail.

Every entry lands in one stream, ``{object_type}/{category}``, stored as one
file per UTC day:

    .compass/logs/lookup/execution/2026-03-01.jsonl
    .compass/logs/transitions/security/2026-03-01.jsonl

Request handlers never touch the disk: ``log()`` drops the entry on a bounded
queue and a worker thread appends it in batches. Diagnostics still go through
the standard ``logging`` module (``compass.<module>`` loggers).
"""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from itertools import groupby
from pathlib import Path
from queue import Empty, Full, Queue
from typing import Any, Dict, Iterable, List, Optional

logger = logging.getLogger("compass.engine.logging")

# object_type → categories it may write to
OBJECT_TYPE_CATEGORIES = {
    "lookup": ["execution", "security"],
    "transitions": ["execution", "security"],
    "members": ["execution", "security"],
    "system": ["execution", "security"],
}


@dataclass
class LogEntry:
    object_type: str
    category: str
    data: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.category not in OBJECT_TYPE_CATEGORIES.get(self.object_type, ()):
            raise ValueError(f"Unknown log stream {self.object_type}/{self.category}")

    @property
    def stream(self) -> str:
        return f"{self.object_type}/{self.category}"

    def to_json(self) -> str:
        return json.dumps(self.data, default=str, separators=(",", ":"))


class FileLogger:
    """Appends entries to the day's file of their stream. Directories are created on first write."""

    def __init__(self, log_dir: str = ".compass/logs"):
        self.log_dir = Path(log_dir)
        self._lock = threading.Lock()

    def path_for(self, object_type: str, category: str, day: Optional[date] = None) -> Path:
        day = day or datetime.now(timezone.utc).date()
        return self.log_dir / object_type / category / f"{day.isoformat()}.jsonl"

    def write(self, entry: LogEntry) -> None:
        self.write_batch([entry])

    def write_batch(self, entries: Iterable[LogEntry]) -> None:
        ordered = sorted(entries, key=lambda e: e.stream)
        with self._lock:
            for _, group in groupby(ordered, key=lambda e: e.stream):
                group = list(group)
                path = self.path_for(group[0].object_type, group[0].category)
                path.parent.mkdir(parents=True, exist_ok=True)
                with open(path, "a", encoding="utf-8") as f:
                    f.writelines(e.to_json() + "\n" for e in group)

    def read(self, object_type: str, category: str, day: Optional[date] = None) -> List[Dict[str, Any]]:
        """Entries of one stream for ``day`` (default today), oldest first. Corrupt lines are skipped."""
        path = self.path_for(object_type, category, day)
        if not path.exists():
            return []
        entries: List[Dict[str, Any]] = []
        for line in path.read_text(encoding="utf-8").splitlines():
            if not line.strip():
                continue
            try:
                entries.append(json.loads(line))
            except json.JSONDecodeError:
                logger.debug(f"Skipping corrupt line in {path}")
        return entries


class AsyncLogQueue:
    """
    Bounded queue drained by a worker thread.

    The worker blocks up to ``flush_interval_ms`` for the first entry, then
    takes whatever else is waiting (at most ``flush_batch_size``) and writes
    the batch in one go. ``push`` never blocks; a full queue drops the entry
    and counts it.
    """

    def __init__(
        self,
        file_logger: FileLogger,
        flush_interval_ms: int = 100,
        flush_batch_size: int = 50,
        max_queue_size: int = 10000,
    ):
        self.file_logger = file_logger
        self.flush_interval = flush_interval_ms / 1000.0
        self.flush_batch_size = flush_batch_size
        self._queue: "Queue[LogEntry]" = Queue(maxsize=max_queue_size)
        self._stopping = threading.Event()
        self._worker: Optional[threading.Thread] = None
        self.dropped = 0

    def start(self) -> None:
        if self._worker is not None:
            return
        self._stopping.clear()
        self._worker = threading.Thread(target=self._run, name="compass-activity-log", daemon=True)
        self._worker.start()
        logger.info("Activity log worker started")

    def stop(self, timeout: float = 5.0) -> None:
        """Stop the worker, then write out everything still queued."""
        self._stopping.set()
        if self._worker is not None:
            self._worker.join(timeout=timeout)
            self._worker = None
        while self._flush_once(wait=False):
            pass
        if self.dropped:
            logger.warning(f"Activity log dropped {self.dropped} entries")

    def push(self, entry: LogEntry) -> bool:
        try:
            self._queue.put_nowait(entry)
        except Full:
            self.dropped += 1
            return False
        return True

    def _run(self) -> None:
        while not self._stopping.is_set():
            self._flush_once(wait=True)

    def _flush_once(self, wait: bool) -> bool:
        """Write one batch. Returns False when there was nothing to write."""
        try:
            first = self._queue.get(timeout=self.flush_interval) if wait else self._queue.get_nowait()
        except Empty:
            return False

        batch = [first]
        while len(batch) < self.flush_batch_size:
            try:
                batch.append(self._queue.get_nowait())
            except Empty:
                break

        try:
            self.file_logger.write_batch(batch)
        except OSError as e:
            logger.error(f"Activity log write failed, {len(batch)} entries lost: {e}")
        return True

    @property
    def pending(self) -> int:
        return self._queue.qsize()


# ---------------------------------------------------------------------------
# Entry builders
# ---------------------------------------------------------------------------

def _base_entry(
    event: str,
    level: str,
    user_id: Optional[Any] = None,
    **extra: Any,
) -> Dict[str, Any]:
    entry: Dict[str, Any] = dict(
        timestamp=datetime.now(timezone.utc).isoformat(), level=level, event=event
    )
    if user_id is not None:
        entry["user_id"] = user_id
    return {**entry, **extra}


def log_lookup_request(
    caller_id: Optional[str],
    status_code: int,
    duration_ms: float,
    outcome: str,
    origin: Optional[str] = None,
    error: Optional[str] = None,
) -> LogEntry:
    """Build a lookup request log entry. The searched email is never logged."""
    data = _base_entry(
        event="lookup_request",
        level="INFO" if status_code < 400 else "WARNING",
        user_id=caller_id,
        status_code=status_code,
        duration_ms=round(duration_ms, 2),
        outcome=outcome,
    )
    if origin:
        data["origin"] = origin
    if error:
        data["error"] = error
    return LogEntry("lookup", "execution", data)


def log_transition_decision(
    task_id: str,
    from_status: str,
    to_status: str,
    actor_role: str,
    outcome: str,
    effective_status: str,
    user_id: Optional[Any] = None,
) -> LogEntry:
    """Build a task transition log entry."""
    data = _base_entry(
        event="task_transition",
        level="WARNING" if outcome == "rejected" else "INFO",
        user_id=user_id,
        task_id=task_id,
        from_status=from_status,
        to_status=to_status,
        actor_role=actor_role,
        outcome=outcome,
        effective_status=effective_status,
    )
    category = "security" if outcome == "rejected" else "execution"
    return LogEntry("transitions", category, data)


def log_member_event(
    event: str,
    project_id: str,
    member_user_id: Optional[str] = None,
    role: Optional[str] = None,
) -> LogEntry:
    """Build a membership change log entry (added/role_changed/removed)."""
    data = _base_entry(event=event, level="INFO", project_id=project_id)
    if member_user_id:
        data["member_user_id"] = member_user_id
    if role:
        data["role"] = role
    return LogEntry("members", "execution", data)


def log_security_event(
    event: str,
    object_type: str,
    permission_needed: str,
    actor_role: Optional[str],
    user_id: Optional[Any] = None,
    level: str = "WARNING",
    **extra: Any,
) -> LogEntry:
    """Build a security event log entry (denied action, bad credential, quota)."""
    data = _base_entry(
        event=event,
        level=level,
        user_id=user_id,
        object_type=object_type,
        permission_needed=permission_needed,
        actor_role=actor_role,
        **extra,
    )
    target = object_type if object_type in OBJECT_TYPE_CATEGORIES else "system"
    return LogEntry(target, "security", data)


def log_system_event(
    event: str,
    level: str = "INFO",
    details: Optional[Dict[str, Any]] = None,
) -> LogEntry:
    """Build a system event log entry (startup, shutdown, config changes)."""
    data = _base_entry(event=event, level=level)
    if details:
        data["details"] = details
    return LogEntry("system", "execution", data)


# ---------------------------------------------------------------------------
# Process-wide activity log
# ---------------------------------------------------------------------------

_global_queue: Optional[AsyncLogQueue] = None


def init_logging(
    log_dir: str = ".compass/logs",
    flush_interval_ms: int = 100,
    flush_batch_size: int = 50,
    max_queue_size: int = 10000,
) -> AsyncLogQueue:
    """Start the activity log worker. Replaces (and stops) any previous one."""
    global _global_queue
    if _global_queue is not None:
        _global_queue.stop()
    _global_queue = AsyncLogQueue(
        FileLogger(log_dir),
        flush_interval_ms=flush_interval_ms,
        flush_batch_size=flush_batch_size,
        max_queue_size=max_queue_size,
    )
    _global_queue.start()
    return _global_queue


def get_log_queue() -> Optional[AsyncLogQueue]:
    return _global_queue


def log(entry: LogEntry) -> bool:
    """Queue an entry. False when it was dropped or no worker is running."""
    queue = _global_queue
    if queue is None:
        return False
    return queue.push(entry)


def shutdown_logging() -> None:
    global _global_queue
    queue, _global_queue = _global_queue, None
    if queue is not None:
        queue.stop()
