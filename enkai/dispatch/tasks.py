"""Task and result definitions for batch dispatch."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional, Tuple


class TaskKind(Enum):
    CREATE = "create"
    MODIFY = "modify"
    REFACTOR = "refactor"
    FIX = "fix"


class Priority(Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class TaskStatus(Enum):
    PENDING = "pending"
    ASSIGNED = "assigned"
    COMPLETED = "completed"


# Checked in order; the first kind with a matching keyword wins.
# "修正" appears under both modify and fix, so it always resolves to modify.
TASK_KIND_KEYWORDS: Tuple[Tuple[TaskKind, Tuple[str, ...]], ...] = (
    (TaskKind.CREATE, ("作成", "新規", "追加", "create", "add", "new")),
    (TaskKind.MODIFY, ("修正", "変更", "更新", "modify", "update", "change")),
    (TaskKind.REFACTOR, ("リファクタリング", "改善", "最適化", "refactor", "improve", "optimize")),
    (TaskKind.FIX, ("修正", "バグ", "エラー", "fix", "bug", "error")),
)


def infer_task_kind(text: str) -> TaskKind:
    """Classify instruction text by lowercase substring keyword search."""
    lowered = (text or "").lower()
    for kind, words in TASK_KIND_KEYWORDS:
        if any(word in lowered for word in words):
            return kind
    return TaskKind.MODIFY


@dataclass(frozen=True)
class TaskDescriptor:
    """A single unit of generation work."""

    id: str
    name: str
    instructions: str
    destination: str
    priority: Priority = Priority.MEDIUM
    kind: TaskKind = TaskKind.MODIFY
    status: TaskStatus = TaskStatus.PENDING
    dependencies: Tuple[str, ...] = ()
    expected_result: str = ""
    model: Optional[str] = None           # explicit model preset override
    complexity: Optional[str] = None      # explicit complexity override
    assigned_to: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.now, compare=False)
    completed_at: Optional[datetime] = field(default=None, compare=False)

    @classmethod
    def create(
        cls,
        id: str,
        name: str,
        instructions: str,
        destination: str,
        priority: Priority = Priority.MEDIUM,
        **extra: Any,
    ) -> "TaskDescriptor":
        """Build a descriptor with kind and expected result derived from the text."""
        return cls(
            id=id,
            name=name,
            instructions=instructions,
            destination=destination,
            priority=priority,
            kind=infer_task_kind(instructions),
            expected_result=expected_result_for(instructions),
            **extra,
        )


def expected_result_for(instructions: str) -> str:
    return f"{instructions} is complete"


@dataclass(frozen=True)
class JobResult:
    """Outcome of one dispatched job. ``error`` is set iff ``success`` is False."""

    task_id: str
    name: str
    destination: str
    success: bool
    duration_ms: int
    error: Any = None
    model: Optional[str] = None

    @classmethod
    def ok(cls, task: TaskDescriptor, duration_ms: int, model: Optional[str] = None) -> "JobResult":
        return cls(
            task_id=task.id,
            name=task.name,
            destination=task.destination,
            success=True,
            duration_ms=duration_ms,
            model=model,
        )

    @classmethod
    def failed(
        cls,
        task: TaskDescriptor,
        duration_ms: int,
        error: Any,
        model: Optional[str] = None,
    ) -> "JobResult":
        return cls(
            task_id=task.id,
            name=task.name,
            destination=task.destination,
            success=False,
            duration_ms=duration_ms,
            error=error if error is not None else "Unknown error",
            model=model,
        )

    @property
    def error_message(self) -> Optional[str]:
        if self.success:
            return None
        return str(self.error) or type(self.error).__name__
