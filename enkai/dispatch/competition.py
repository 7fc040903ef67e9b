"""Competition mode: generate one task several ways and keep the best output.

A competing task runs as a set of variants: the routed preset at several
temperatures, or several presets side by side. The variants of one task run
concurrently while the task as a whole holds a single slot of its group's
``BoundedExecutor``. Every successful output is scored by :func:`score_output`;
the highest score is written, and ties go to the earliest variant.
"""

import asyncio
import time
from dataclasses import dataclass, replace
from typing import Any, Awaitable, Callable, List, Optional, Sequence, Tuple

from ..errors import CompetitionError
from ..logger import get_logger, task_logger
from .executor import elapsed_ms
from .extraction import Extractor, extract_code_block
from .jobs import GenerateFn, SettleHook, StartHook, WriteFn, build_prompt, run_hook
from .tasks import JobResult, TaskDescriptor

_log = get_logger(__name__)


@dataclass(frozen=True)
class Variant:
    """One way of generating a task. ``preset`` None means the routed preset."""

    name: str
    preset: Optional[str] = None
    temperature: Optional[float] = None


DEFAULT_VARIANTS: Tuple[Variant, ...] = (
    Variant("normal", temperature=0.5),
    Variant("strict", temperature=0.2),
    Variant("creative", temperature=0.9),
)


@dataclass(frozen=True)
class VariantResult:
    variant: Variant
    content: str = ""
    error: Any = None
    duration_ms: int = 0
    score: Optional[float] = None

    @property
    def success(self) -> bool:
        return self.error is None and bool(self.content.strip())


@dataclass(frozen=True)
class CompetitionResult:
    task: TaskDescriptor
    results: List[VariantResult]
    best: Optional[VariantResult]
    reason: str


VariantGeneratorFactory = Callable[[Variant], GenerateFn]
CompeteHook = Callable[[CompetitionResult], None]


def parse_variants(text: str) -> List[Variant]:
    """Parse ``"flash@0.2,flash@0.9,pro"``: presets with an optional temperature."""
    variants = []
    for item in (part.strip() for part in text.split(",")):
        if not item:
            continue
        preset, _, temp = item.partition("@")
        if not preset:
            raise ValueError(f"Variant '{item}' needs a model preset")
        temperature = None
        if temp:
            try:
                temperature = float(temp)
            except ValueError:
                raise ValueError(f"Variant '{item}': temperature must be a number") from None
            if not 0.0 <= temperature <= 2.0:
                raise ValueError(f"Variant '{item}': temperature must be between 0 and 2")
        variants.append(Variant(name=item, preset=preset, temperature=temperature))

    if not variants:
        raise ValueError("No variants given")
    names = [v.name for v in variants]
    if len(set(names)) != len(names):
        raise ValueError("Variants must be distinct")
    return variants


def resolve_variants(variants: Sequence[Variant], preset: str) -> List[Variant]:
    """Bind preset-less variants to ``preset``; their names gain a ``preset/`` prefix."""
    return [
        v if v.preset else replace(v, name=f"{preset}/{v.name}", preset=preset)
        for v in variants
    ]


# ── Scoring ───────────────────────────────────────────────────

SHORT_OUTPUT_CHARS = 100
LONG_OUTPUT_CHARS = 10_000
FAST_MS = 2_000
SLOW_MS = 10_000
SCORE_PATTERNS = ("export", "function", "const", "return", "useState", "import")


def score_output(content: str, duration_ms: int) -> float:
    """Score a generated file; higher is better.

    Starts at 100. Very short (< 100 chars) or very long (> 10,000 chars)
    output loses points, fast answers (< 2s) gain and slow ones (> 10s) lose,
    each TypeScript/React marker found adds 5, and a named import that is not
    from React counts as an external dependency.
    """
    score = 100.0

    length = len(content)
    if length < SHORT_OUTPUT_CHARS:
        score -= 20
    elif length > LONG_OUTPUT_CHARS:
        score -= 10

    if duration_ms < FAST_MS:
        score += 10
    elif duration_ms > SLOW_MS:
        score -= 20

    score += 5 * sum(1 for pattern in SCORE_PATTERNS if pattern in content)

    if "import {" in content and "from 'react'" not in content and 'from "react"' not in content:
        score -= 15
    return score


def select_best(results: Sequence[VariantResult]) -> Tuple[Optional[VariantResult], str]:
    """Highest-scoring successful variant and a one-line reason."""
    best = None
    for result in results:
        if not result.success:
            continue
        if result.score is None:
            result = replace(result, score=score_output(result.content, result.duration_ms))
        if best is None or result.score > best.score:
            best = result

    if best is None:
        return None, "every variant failed"
    succeeded = sum(1 for r in results if r.success)
    reason = (
        f"{best.variant.name} scored {best.score:.1f} in {best.duration_ms}ms "
        f"({succeeded}/{len(results)} variants succeeded)"
    )
    return best, reason


# ── Jobs ──────────────────────────────────────────────────────


async def _run_variant(variant: Variant, generate: GenerateFn, prompt: str, extract: Extractor) -> VariantResult:
    start = time.perf_counter()
    try:
        content = extract(await generate(prompt))
    except Exception as e:
        return VariantResult(variant, error=e, duration_ms=elapsed_ms(start))
    result = VariantResult(variant, content=content, duration_ms=elapsed_ms(start))
    if not result.success:
        return replace(result, error="empty output")
    return replace(result, score=score_output(content, result.duration_ms))


def build_competition_job(
    task: TaskDescriptor,
    variants: Sequence[Variant],
    generator_for: VariantGeneratorFactory,
    write: WriteFn,
    extract: Extractor = extract_code_block,
    preamble: Optional[str] = None,
    on_start: Optional[StartHook] = None,
    on_settle: Optional[SettleHook] = None,
    on_compete: Optional[CompeteHook] = None,
) -> Callable[[], Awaitable[JobResult]]:
    """Like :func:`build_job`, but generates every variant and writes the winner.

    The result's ``model`` names the winning variant. When every variant
    fails the task fails with a ``CompetitionError``.
    """
    variants = list(variants)
    if not variants:
        raise ValueError("A competing task needs at least one variant")

    async def job() -> JobResult:
        start = time.perf_counter()
        if on_start is not None:
            run_hook(on_start, task)
        log = task_logger(_log, task.id)
        prompt = build_prompt(task.instructions, preamble)

        best = None
        try:
            results = await asyncio.gather(*(
                _run_variant(v, generator_for(v), prompt, extract) for v in variants
            ))
            best, reason = select_best(results)
            competition = CompetitionResult(task, list(results), best, reason)
            if on_compete is not None:
                try:
                    on_compete(competition)
                except Exception as e:
                    log.warning("competition hook failed: %s", e)
            if best is None:
                raise CompetitionError(str(r.error) for r in results)
            log.info("%s won: %s", best.variant.name, reason)
            await write(task.destination, best.content.strip())
            result = JobResult.ok(task, elapsed_ms(start), model=best.variant.name)
        except Exception as e:
            log.warning("%s failed: %s", task.name, e)
            model = best.variant.name if best is not None else None
            result = JobResult.failed(task, elapsed_ms(start), e, model=model)
        if on_settle is not None:
            run_hook(on_settle, task, result)
        return result

    job.__name__ = task.name or task.id
    return job
