"""
Tracking for "run now" refresh jobs started from the API.

Jobs run in a worker thread; the API only polls their status, so a plain
lock-protected dict is enough (no Celery/Redis).
"""
import threading
import uuid
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

logger = logging.getLogger("cookie_manager")

FINISHED_STATUSES = ("completed", "failed", "skipped")


class TaskType(str, Enum):
    REFRESH_ALL = "refresh_all"


@dataclass
class WorkerTask:
    task_type: TaskType
    task_id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])
    status: str = "queued"  # queued -> running -> completed/failed, or skipped
    progress: int = 0
    total: int = 0
    error: Optional[str] = None
    result: Optional[dict] = None
    created_at: datetime = field(default_factory=datetime.utcnow)
    finished_at: Optional[datetime] = None

    @property
    def is_finished(self) -> bool:
        return self.status in FINISHED_STATUSES

    def start(self, total: int = 0):
        self.status = "running"
        self.total = total

    def advance(self):
        self.progress += 1

    def skip(self, reason: str):
        self.status = "skipped"
        self.error = reason
        self.finished_at = datetime.utcnow()

    def finish(self, result: Optional[dict] = None, error: Optional[str] = None):
        self.result = result
        self.error = error
        self.status = "failed" if error else "completed"
        self.finished_at = datetime.utcnow()
        logger.info(f"Task {self.task_id} ({self.task_type.value}) {self.status}.")

    def to_dict(self) -> dict:
        return {
            "job_id": self.task_id,
            "status": self.status,
            "progress": self.progress,
            "total": self.total,
            "error": self.error,
            "result": self.result,
            "created_at": self.created_at,
            "finished_at": self.finished_at,
        }


class TaskRegistry:
    """Jobs by id. Finished ones are pruned oldest first."""

    def __init__(self, keep_finished: int = 50):
        self.keep_finished = keep_finished
        self._tasks: dict[str, WorkerTask] = {}
        self._lock = threading.Lock()

    def register(self, task: WorkerTask) -> str:
        with self._lock:
            self._tasks[task.task_id] = task
        return task.task_id

    def get(self, task_id: str) -> Optional[WorkerTask]:
        with self._lock:
            return self._tasks.get(task_id)

    def prune(self):
        with self._lock:
            finished = sorted(
                (t for t in self._tasks.values() if t.is_finished),
                key=lambda t: t.finished_at or t.created_at,
            )
            for task in finished[: max(0, len(finished) - self.keep_finished)]:
                del self._tasks[task.task_id]


task_registry = TaskRegistry()
