"""Dispatcher: routes tasks to models, runs each group bounded, reports the batch."""

import functools
import json
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Dict, List, Optional, Sequence, Union

from ..logger import get_logger
from .board import TaskBoard
from .competition import (
    DEFAULT_VARIANTS,
    CompetitionResult,
    Variant,
    VariantGeneratorFactory,
    build_competition_job,
    resolve_variants,
)
from .executor import BoundedExecutor
from .extraction import Extractor, extract_code_block
from .jobs import GenerateFn, WriteFn, build_job
from .rendering import DispatchRenderer
from .reporter import Summary, summarize, write_report
from .routing import ModelRouter
from .splitter import new_batch_id
from .tasks import JobResult, Priority, TaskDescriptor, TaskStatus

if TYPE_CHECKING:
    from ..config import Config

_log = get_logger(__name__)

GeneratorFactory = Callable[[str], GenerateFn]


@dataclass
class BatchResult:
    results: List[JobResult]
    summary: Optional[Summary]
    wall_clock_ms: int
    report_path: Optional[Path] = None
    competitions: List[CompetitionResult] = field(default_factory=list)


class Dispatcher:
    """Runs a batch of task descriptors end to end.

    ``generator_for`` maps a model preset name to its generation capability.
    Tasks are grouped by routed preset; each group runs through its own
    ``BoundedExecutor`` with that preset's concurrency, one group after another.

    With ``variants`` set, every task competes: each variant is generated and
    the best-scoring output is written. ``variant_generator_for`` builds the
    generation capability for a variant; by default it is the variant's preset.
    """

    def __init__(
        self,
        generator_for: GeneratorFactory,
        write: WriteFn,
        router: ModelRouter,
        concurrency_for: Callable[[str], int],
        extract: Extractor = extract_code_block,
        preamble: Optional[str] = None,
        renderer: Optional[DispatchRenderer] = None,
        board: Optional[TaskBoard] = None,
        report_dir: Optional[str] = None,
        variants: Optional[Sequence[Variant]] = None,
        variant_generator_for: Optional[VariantGeneratorFactory] = None,
    ):
        self.generator_for = generator_for
        self.write = write
        self.router = router
        self.concurrency_for = concurrency_for
        self.extract = extract
        self.preamble = preamble
        self.renderer = renderer
        self.board = board
        self.report_dir = report_dir
        self.variants = list(variants) if variants else None
        self.variant_generator_for = variant_generator_for

    @classmethod
    def from_config(
        cls,
        config: "Config",
        write: WriteFn,
        renderer: Optional[DispatchRenderer] = None,
        board: Optional[TaskBoard] = None,
        model: Optional[str] = None,
        concurrency: Optional[int] = None,
        use_preamble: Optional[bool] = None,
        compete: Optional[bool] = None,
        variants: Optional[Sequence[Variant]] = None,
    ) -> "Dispatcher":
        """Wire litellm adapters, routing and concurrency from a loaded Config.

        Explicit ``variants`` turn competition on; otherwise ``compete`` (or the
        config's ``compete`` setting) runs the default temperature variants.
        """
        from ..llm import LLMAdapter

        adapters: Dict[tuple, LLMAdapter] = {}

        def adapter_for(name: str, temperature: Optional[float] = None) -> LLMAdapter:
            key = (name, temperature)
            if key not in adapters:
                kwargs = config.get_preset(name).get_llm_kwargs()
                if temperature is not None:
                    kwargs["temperature"] = temperature
                adapters[key] = LLMAdapter(**kwargs)
            return adapters[key]

        def generator_for(name: str) -> GenerateFn:
            return adapter_for(name)

        def variant_generator_for(variant: Variant) -> GenerateFn:
            return adapter_for(variant.preset, variant.temperature)

        if not variants and (config.compete if compete is None else compete):
            variants = DEFAULT_VARIANTS

        def concurrency_for(name: str) -> int:
            return concurrency if concurrency else config.concurrency_for(name)

        # An explicit --model pins every task to that preset.
        routes = {} if model else config.routing
        router = ModelRouter(default=model or config.active_model, routes=routes)
        if use_preamble is None:
            preamble = config.effective_preamble()
        else:
            preamble = config.preamble if use_preamble else None

        return cls(
            generator_for=generator_for,
            write=write,
            router=router,
            concurrency_for=concurrency_for,
            preamble=preamble,
            renderer=renderer,
            board=board,
            report_dir=config.report_dir or None,
            variants=variants,
            variant_generator_for=variant_generator_for,
        )

    async def run(self, tasks: Sequence[TaskDescriptor]) -> BatchResult:
        """Run every task; never raises for per-task failures."""
        tasks = list(tasks)
        if self.board is not None:
            for task in tasks:
                if task.id not in self.board:
                    self.board.add_task(task)

        start = time.perf_counter()
        results: List[JobResult] = []
        competitions: List[CompetitionResult] = []
        groups = self.router.group(tasks)
        _log.info("Dispatching %d task(s) across %d model group(s)", len(tasks), len(groups))

        for preset, group in groups.items():
            limit = self.concurrency_for(preset)
            if self.renderer:
                self.renderer.render_batch_start(preset, len(group), limit)
            if self.variants:
                jobs = self._competition_jobs(preset, group, competitions)
            else:
                generate = self.generator_for(preset)
                jobs = [
                    build_job(
                        task,
                        generate=generate,
                        write=self.write,
                        extract=self.extract,
                        preamble=self.preamble,
                        model=preset,
                        on_start=functools.partial(self._on_start, preset),
                        on_settle=self._on_settle,
                    )
                    for task in group
                ]
            results.extend(await BoundedExecutor(limit).run(jobs))

        wall_clock_ms = int(round((time.perf_counter() - start) * 1000))
        if not results:
            return BatchResult(results=[], summary=None, wall_clock_ms=wall_clock_ms)

        summary = summarize(results, wall_clock_ms)
        _log.info(
            "Batch finished: %d ok, %d failed, %dms",
            summary.success_count, summary.failure_count, wall_clock_ms,
        )

        report_path = None
        if self.report_dir:
            try:
                report_path = write_report(summary, self.report_dir)
            except OSError as e:
                _log.warning("Could not write report to %s: %s", self.report_dir, e)
        if self.renderer:
            self.renderer.render_summary(summary, str(report_path) if report_path else None)

        return BatchResult(
            results=results,
            summary=summary,
            wall_clock_ms=wall_clock_ms,
            report_path=report_path,
            competitions=competitions,
        )

    def _competition_jobs(self, preset: str, group: Sequence[TaskDescriptor], competitions: list) -> list:
        variants = resolve_variants(self.variants, preset)

        def on_compete(competition: CompetitionResult) -> None:
            competitions.append(competition)
            if self.renderer:
                self.renderer.render_competition(competition)

        return [
            build_competition_job(
                task,
                variants,
                generator_for=self._variant_generator,
                write=self.write,
                extract=self.extract,
                preamble=self.preamble,
                on_start=functools.partial(self._on_start, preset),
                on_settle=self._on_settle,
                on_compete=on_compete,
            )
            for task in group
        ]

    def _variant_generator(self, variant: Variant) -> GenerateFn:
        if self.variant_generator_for is not None:
            return self.variant_generator_for(variant)
        return self.generator_for(variant.preset)

    def _on_start(self, preset: str, task: TaskDescriptor) -> None:
        if self.board is not None:
            self.board.update_status(task.id, TaskStatus.ASSIGNED, assigned_to=preset)
        if self.renderer:
            self.renderer.render_task_start(task)

    def _on_settle(self, task: TaskDescriptor, result: JobResult) -> None:
        # Failed tasks stay assigned; the board has no failure state.
        if self.board is not None and result.success:
            self.board.update_status(task.id, TaskStatus.COMPLETED)
        if self.renderer:
            self.renderer.render_task_settled(task, result)


# ── Task templates ────────────────────────────────────────────


def parse_tasks(text: str, batch_id: Optional[str] = None) -> List[TaskDescriptor]:
    """Parse a JSON task list.

    Each item needs a name (``fileName`` or ``name``) and instructions
    (``prompt``, ``instructions`` or ``description``); the destination
    (``outputPath`` or ``destination``) defaults to ``./<name>``. Optional
    ``model`` and ``complexity`` steer routing.
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid task JSON: {e}") from e
    if isinstance(data, dict) and "tasks" in data:
        data = data["tasks"]
    if not isinstance(data, list):
        raise ValueError("Task JSON must be a list of task objects")

    batch_id = batch_id or new_batch_id()
    tasks = []
    for index, item in enumerate(data):
        if not isinstance(item, dict):
            raise ValueError(f"Task #{index + 1} is not an object")
        name = item.get("fileName") or item.get("name")
        instructions = item.get("prompt") or item.get("instructions") or item.get("description")
        if not name or not instructions:
            raise ValueError(f"Task #{index + 1} needs a name and a prompt")
        tasks.append(TaskDescriptor.create(
            id=f"{batch_id}-{index + 1}",
            name=str(name),
            instructions=str(instructions),
            destination=str(item.get("outputPath") or item.get("destination") or f"./{name}"),
            priority=Priority.HIGH if index == 0 else Priority.MEDIUM,
            model=item.get("model"),
            complexity=item.get("complexity"),
        ))
    return tasks


def load_tasks(path: Union[str, Path]) -> List[TaskDescriptor]:
    """Read a JSON task template file."""
    template = Path(path).expanduser()
    try:
        text = template.read_text(encoding="utf-8")
    except OSError as e:
        raise ValueError(f"Cannot read task template {template}: {e}") from e
    return parse_tasks(text)


TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates"


def list_templates() -> List[str]:
    """Names of the task templates shipped with enkai."""
    return sorted(path.stem for path in TEMPLATE_DIR.glob("*.json"))


def load_template(name: str) -> List[TaskDescriptor]:
    """Tasks of a packaged template, by name."""
    path = TEMPLATE_DIR / f"{name}.json"
    if not path.is_file():
        available = ", ".join(list_templates()) or "none"
        raise ValueError(f"Unknown template '{name}'. Available templates: {available}")
    return parse_tasks(path.read_text(encoding="utf-8"))


def resolve_tasks(ref: str) -> List[TaskDescriptor]:
    """A JSON file path when one exists (or ``ref`` ends in .json), else a template name."""
    path = Path(ref).expanduser()
    if path.is_file() or path.suffix == ".json":
        return load_tasks(path)
    return load_template(ref)
