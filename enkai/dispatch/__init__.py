"""Bounded-concurrency batch dispatch: split, estimate, run, report."""

from .tasks import TaskDescriptor, TaskKind, Priority, TaskStatus, JobResult, infer_task_kind
from .board import TaskBoard, TaskSummary
from .splitter import TaskSplitter, SplitResult, split, estimate_time
from .pricing import PriceTier, PRICE_TIERS, resolve_tier
from .estimator import CostEstimate, estimate_cost
from .executor import BoundedExecutor, run_bounded
from .extraction import CodeBlockExtractor, extract_code_block
from .jobs import build_job, build_prompt
from .writer import FileWriter, MemoryWriter
from .reporter import Summary, TaskOutcome, summarize, format_report, write_report
from .routing import Complexity, ModelRouter, analyze_complexity
from .competition import Variant, CompetitionResult, DEFAULT_VARIANTS, score_output, select_best, parse_variants
from .dispatcher import (
    Dispatcher, BatchResult, parse_tasks, load_tasks, list_templates, load_template, resolve_tasks,
)

__all__ = [
    "TaskDescriptor",
    "TaskKind",
    "Priority",
    "TaskStatus",
    "JobResult",
    "infer_task_kind",
    "TaskBoard",
    "TaskSummary",
    "TaskSplitter",
    "SplitResult",
    "split",
    "estimate_time",
    "PriceTier",
    "PRICE_TIERS",
    "resolve_tier",
    "CostEstimate",
    "estimate_cost",
    "BoundedExecutor",
    "run_bounded",
    "CodeBlockExtractor",
    "extract_code_block",
    "build_job",
    "build_prompt",
    "FileWriter",
    "MemoryWriter",
    "Summary",
    "TaskOutcome",
    "summarize",
    "format_report",
    "write_report",
    "Complexity",
    "ModelRouter",
    "analyze_complexity",
    "Dispatcher",
    "BatchResult",
    "parse_tasks",
    "load_tasks",
    "list_templates",
    "load_template",
    "resolve_tasks",
    "Variant",
    "CompetitionResult",
    "DEFAULT_VARIANTS",
    "score_output",
    "select_best",
    "parse_variants",
]
