"""TaskBoard: caller-owned store of task descriptors and their status."""

import dataclasses
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from .tasks import TaskDescriptor, TaskStatus

# Illustrative minutes of work per task, used for remaining-time hints.
MINUTES_PER_TASK = 10


@dataclass(frozen=True)
class TaskSummary:
    total: int
    completed: int
    pending: int
    assigned: int

    @property
    def progress_percent(self) -> int:
        if self.total <= 0:
            return 0
        return round(self.completed / self.total * 100)


class TaskBoard:
    """Working set of task descriptors with explicit create/update/clear lifecycle.

    Descriptors are immutable; a status update swaps in a replacement record.
    The Executor never touches the board, callers drive every transition.
    """

    def __init__(self):
        self._tasks: Dict[str, TaskDescriptor] = {}
        self._lock = threading.RLock()

    # ── Task management ───────────────────────────────────────

    def add_task(self, task: TaskDescriptor) -> None:
        with self._lock:
            self._tasks[task.id] = task

    def add_tasks(self, tasks: Iterable[TaskDescriptor]) -> None:
        with self._lock:
            for task in tasks:
                self._tasks[task.id] = task

    def get_task(self, task_id: str) -> Optional[TaskDescriptor]:
        with self._lock:
            return self._tasks.get(task_id)

    def get_all_tasks(self) -> List[TaskDescriptor]:
        with self._lock:
            return list(self._tasks.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._tasks)

    def __contains__(self, task_id: str) -> bool:
        with self._lock:
            return task_id in self._tasks

    # ── State transitions ─────────────────────────────────────

    def update_status(
        self,
        task_id: str,
        status: TaskStatus,
        assigned_to: Optional[str] = None,
    ) -> Optional[TaskDescriptor]:
        """Set a task's status. Returns the updated descriptor, or None if unknown."""
        with self._lock:
            task = self._tasks.get(task_id)
            if task is None:
                return None
            changes = {"status": status}
            if assigned_to:
                changes["assigned_to"] = assigned_to
            if status == TaskStatus.COMPLETED:
                changes["completed_at"] = datetime.now()
            updated = dataclasses.replace(task, **changes)
            self._tasks[task_id] = updated
            return updated

    def assign(self, task_id: str, worker: str) -> Optional[TaskDescriptor]:
        return self.update_status(task_id, TaskStatus.ASSIGNED, assigned_to=worker)

    def mark_completed(self, task_id: str) -> Optional[TaskDescriptor]:
        return self.update_status(task_id, TaskStatus.COMPLETED)

    def clear(self) -> None:
        """Drop the whole working set."""
        with self._lock:
            self._tasks.clear()

    # ── Queries ───────────────────────────────────────────────

    def get_by_status(self, status: TaskStatus) -> List[TaskDescriptor]:
        with self._lock:
            return [t for t in self._tasks.values() if t.status == status]

    def summary(self) -> TaskSummary:
        with self._lock:
            tasks = list(self._tasks.values())
        return TaskSummary(
            total=len(tasks),
            completed=sum(1 for t in tasks if t.status == TaskStatus.COMPLETED),
            pending=sum(1 for t in tasks if t.status == TaskStatus.PENDING),
            assigned=sum(1 for t in tasks if t.status == TaskStatus.ASSIGNED),
        )

    def progress_report(self, now: Optional[datetime] = None) -> str:
        """Markdown progress report for the current working set."""
        summary = self.summary()
        generated = (now or datetime.now()).strftime("%Y-%m-%d %H:%M:%S")
        return (
            "# Enkai progress report\n\n"
            f"## Overall progress: {summary.progress_percent}%\n\n"
            "## Tasks\n"
            f"- Total: {summary.total}\n"
            f"- Completed: {summary.completed}\n"
            f"- In progress: {summary.assigned}\n"
            f"- Waiting: {summary.pending}\n\n"
            "## Estimated time remaining\n"
            f"About {summary.pending * MINUTES_PER_TASK} minutes "
            f"(waiting tasks x {MINUTES_PER_TASK} min/task)\n\n"
            f"Generated: {generated}\n"
        )
