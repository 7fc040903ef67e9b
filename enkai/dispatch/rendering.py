"""Dispatch-specific console rendering: split plan, job events, estimates and summary."""

import threading
from typing import Optional, Sequence

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from .. import theme
from ..theme import get_icon
from .competition import CompetitionResult
from .estimator import CostEstimate
from .reporter import Summary
from .tasks import JobResult, Priority, TaskDescriptor

# 8-color palette for model distinction
MODEL_COLORS = [
    "#7FA6D9",  # blue
    "#57DB9C",  # green
    "#D9A67F",  # orange
    "#D97FD9",  # magenta
    "#7FD9D9",  # cyan
    "#D9D97F",  # yellow
    "#9C7FD9",  # purple
    "#D97F7F",  # red
]

# Theme attribute per priority, resolved when rendering so set_theme() applies.
_PRIORITY_STYLE = {
    Priority.HIGH: "WARN",
    Priority.MEDIUM: "INFO",
    Priority.LOW: "DIM",
}


def _color_for_model(model: Optional[str]) -> str:
    if not model:
        return theme.DIM
    # Stable across runs, unlike hash() on str.
    idx = sum(ord(c) for c in model) % len(MODEL_COLORS)
    return MODEL_COLORS[idx]


def _brief(text: str, width: int = 60) -> str:
    text = " ".join((text or "").split())
    return text if len(text) <= width else text[: width - 1] + "…"


class DispatchRenderer:
    """Prints batch events; safe to call from job callbacks."""

    def __init__(self, console: Console):
        self.console = console
        self._lock = threading.Lock()

    def _print(self, markup: str) -> None:
        with self._lock:
            self.console.print(f"  {markup}")

    # ── Planning ──────────────────────────────────────────────

    def render_split(self, tasks: Sequence[TaskDescriptor], estimated_time: str = "") -> None:
        table = Table(
            show_header=True,
            header_style=f"bold {theme.ACCENT}",
            border_style=theme.BORDER,
            padding=(0, 1),
        )
        table.add_column("#", justify="right")
        table.add_column("Task", min_width=12)
        table.add_column("Kind", min_width=8)
        table.add_column("Priority", min_width=8)
        table.add_column("Instructions")

        for index, task in enumerate(tasks, 1):
            style = getattr(theme, _PRIORITY_STYLE.get(task.priority, "DIM"))
            table.add_row(
                str(index),
                escape(task.name),
                task.kind.value,
                f"[{style}]{task.priority.value}[/{style}]",
                escape(_brief(task.instructions)),
            )

        subtitle = f"{len(tasks)} task(s)"
        if estimated_time:
            subtitle += f" | est. {estimated_time}"
        with self._lock:
            self.console.print(Panel(
                table,
                title=f"[bold {theme.ACCENT}] Task Split [/bold {theme.ACCENT}]",
                subtitle=f"[{theme.DIM}]{subtitle}[/{theme.DIM}]",
                title_align="left",
                border_style=theme.BORDER,
                padding=(0, 1),
            ))

    def render_estimate(self, estimate: CostEstimate) -> None:
        table = Table(show_header=False, box=None, padding=(0, 2))
        table.add_column("Item", style=theme.DIM)
        table.add_column("Value", justify="right")
        table.add_row("Sub-tasks", f"{estimate.sub_task_count}")
        table.add_row("Input tokens", f"{estimate.total_input_tokens:,}")
        table.add_row(
            "Output tokens",
            f"{estimate.total_output_tokens:,} ({estimate.average_output_tokens:,}/task)",
        )
        table.add_row("Input cost", f"{estimate.input_cost:.3f} {estimate.currency}")
        table.add_row("Output cost", f"{estimate.output_cost:.3f} {estimate.currency}")
        table.add_row(
            "Total",
            f"[bold {theme.ACCENT}]{estimate.total_cost:.3f} {estimate.currency}[/bold {theme.ACCENT}]",
        )
        table.add_row("Estimated time", estimate.estimated_time)
        with self._lock:
            self.console.print(Panel(
                table,
                title=f"[bold {theme.ACCENT}] Cost Estimate ({estimate.model}) [/bold {theme.ACCENT}]",
                title_align="left",
                border_style=theme.BORDER,
                padding=(0, 1),
            ))

    # ── Job events ────────────────────────────────────────────

    def render_batch_start(self, model: str, count: int, concurrency: int) -> None:
        color = _color_for_model(model)
        self._print(
            f"[{theme.ACCENT}]{get_icon('●')}[/{theme.ACCENT}] "
            f"[{color}]{escape(model)}[/{color}] "
            f"[{theme.DIM}]running {count} task(s), concurrency {concurrency}[/{theme.DIM}]"
        )

    def render_task_start(self, task: TaskDescriptor) -> None:
        self._print(
            f"[{theme.INFO}]{get_icon('▸')}[/{theme.INFO}] "
            f"[{theme.DIM}]{escape(task.name)} generating...[/{theme.DIM}]"
        )

    def render_task_settled(self, task: TaskDescriptor, result: JobResult) -> None:
        if result.success:
            self.render_task_done(result)
        else:
            self.render_task_failed(result)

    def render_task_done(self, result: JobResult) -> None:
        self._print(
            f"[{theme.SUCCESS}]{get_icon('✓')}[/{theme.SUCCESS}] "
            f"{escape(result.name)} "
            f"[{theme.DIM}]completed ({result.duration_ms}ms)[/{theme.DIM}]"
        )

    def render_task_failed(self, result: JobResult) -> None:
        brief = escape(_brief(result.error_message or "unknown"))
        self._print(
            f"[{theme.ERROR}]{get_icon('✗')}[/{theme.ERROR}] "
            f"{escape(result.name)} "
            f"[{theme.ERROR}]failed: {brief}[/{theme.ERROR}]"
        )

    def render_competition(self, competition: CompetitionResult) -> None:
        task = competition.task
        if competition.best is None:
            self._print(
                f"[{theme.ERROR}]{get_icon('✗')}[/{theme.ERROR}] "
                f"{escape(task.name)} [{theme.ERROR}]{escape(competition.reason)}[/{theme.ERROR}]"
            )
            return
        color = _color_for_model(competition.best.variant.name)
        self._print(
            f"[{theme.ACCENT}]{get_icon('★')}[/{theme.ACCENT}] "
            f"{escape(task.name)} "
            f"[{color}]{escape(competition.best.variant.name)}[/{color}] "
            f"[{theme.DIM}]{escape(competition.reason)}[/{theme.DIM}]"
        )

    # ── Summary ───────────────────────────────────────────────

    def render_summary(self, summary: Summary, report_path: Optional[str] = None) -> None:
        table = Table(
            show_header=True,
            header_style=f"bold {theme.ACCENT}",
            border_style=theme.BORDER,
            padding=(0, 1),
        )
        table.add_column("Task", min_width=12)
        table.add_column("Model", min_width=8)
        table.add_column("Status", min_width=8)
        table.add_column("Time", justify="right", min_width=8)
        table.add_column("Output")

        for o in summary.outcomes:
            color = _color_for_model(o.model)
            status_style = theme.SUCCESS if o.success else theme.ERROR
            status = "done" if o.success else "failed"
            table.add_row(
                escape(o.name),
                f"[{color}]{escape(o.model or '-')}[/{color}]",
                f"[{status_style}]{status}[/{status_style}]",
                f"{o.duration_ms:,}ms",
                escape(o.destination if o.success else _brief(o.error or "", 40)),
            )

        footer = (
            f"{summary.success_count} ok | {summary.failure_count} failed | "
            f"{summary.total_duration_ms:,}ms total | {summary.average_duration_ms:,}ms/task"
        )
        with self._lock:
            self.console.print(Panel(
                table,
                title=f"[bold {theme.ACCENT}] Execution Summary [/bold {theme.ACCENT}]",
                subtitle=f"[{theme.DIM}]{footer}[/{theme.DIM}]",
                title_align="left",
                border_style=theme.BORDER,
                padding=(0, 1),
            ))
            if report_path:
                self.console.print(f"  [{theme.DIM}]Detailed report: {escape(str(report_path))}[/{theme.DIM}]")
