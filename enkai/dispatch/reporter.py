"""Batch summaries: counts, durations and a per-task outcome list."""

import json
import math
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

from ..errors import EmptyBatchError
from .tasks import JobResult


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


@dataclass(frozen=True)
class TaskOutcome:
    task_id: str
    name: str
    destination: str
    success: bool
    duration_ms: int
    error: Optional[str] = None
    model: Optional[str] = None


@dataclass(frozen=True)
class Summary:
    total_tasks: int
    success_count: int
    failure_count: int
    total_duration_ms: int
    average_duration_ms: int
    outcomes: List[TaskOutcome]
    timestamp: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat(timespec="milliseconds")
    )

    @property
    def all_succeeded(self) -> bool:
        return self.failure_count == 0

    def failures(self) -> List[TaskOutcome]:
        return [o for o in self.outcomes if not o.success]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "totalDuration": self.total_duration_ms,
            "totalTasks": self.total_tasks,
            "successCount": self.success_count,
            "failCount": self.failure_count,
            "averageDuration": self.average_duration_ms,
            "tasks": [
                {
                    "taskId": o.task_id,
                    "fileName": o.name,
                    "outputPath": o.destination,
                    "success": o.success,
                    "duration": o.duration_ms,
                    "model": o.model,
                    "error": o.error,
                }
                for o in self.outcomes
            ],
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2, ensure_ascii=False)


def summarize(results: Sequence[JobResult], total_wall_clock_ms: int) -> Summary:
    """Aggregate settled results. Raises EmptyBatchError for an empty batch."""
    if not results:
        raise EmptyBatchError()

    outcomes = [
        TaskOutcome(
            task_id=r.task_id,
            name=r.name,
            destination=r.destination,
            success=r.success,
            duration_ms=r.duration_ms,
            error=r.error_message,
            model=r.model,
        )
        for r in results
    ]
    success_count = sum(1 for o in outcomes if o.success)
    return Summary(
        total_tasks=len(outcomes),
        success_count=success_count,
        failure_count=len(outcomes) - success_count,
        total_duration_ms=int(total_wall_clock_ms),
        average_duration_ms=round_half_up(total_wall_clock_ms / len(outcomes)),
        outcomes=outcomes,
    )


def format_report(summary: Summary) -> str:
    """Plain-text rendering of a summary."""
    lines = [
        "Execution results:",
        f"  Success: {summary.success_count} files",
    ]
    if summary.failure_count:
        lines.append(f"  Failed: {summary.failure_count} files")
    lines.append(f"  Total time: {summary.total_duration_ms}ms")
    lines.append(f"  Average: {summary.average_duration_ms}ms/file")
    lines.append("")
    for o in summary.outcomes:
        mark = "ok" if o.success else "FAILED"
        line = f"  [{mark}] {o.name} -> {o.destination} ({o.duration_ms}ms)"
        if o.error:
            line += f": {o.error}"
        lines.append(line)
    return "\n".join(lines)


def write_report(summary: Summary, directory: Union[str, Path] = ".") -> Path:
    """Save the machine-readable report as ``enkai-report-<epoch ms>.json``."""
    path = Path(directory).expanduser() / f"enkai-report-{int(time.time() * 1000)}.json"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(summary.to_json(), encoding="utf-8")
    return path
