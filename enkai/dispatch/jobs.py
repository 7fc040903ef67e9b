"""Job thunks: generate, extract, and write one task's output."""

import time
from typing import Awaitable, Callable, Optional

from ..logger import get_logger, task_logger
from .executor import elapsed_ms
from .extraction import Extractor, extract_code_block
from .tasks import JobResult, TaskDescriptor

_log = get_logger(__name__)

GenerateFn = Callable[[str], Awaitable[str]]
WriteFn = Callable[[str, str], Awaitable[None]]
StartHook = Callable[[TaskDescriptor], None]
SettleHook = Callable[[TaskDescriptor, JobResult], None]


def build_prompt(instructions: str, preamble: Optional[str] = None) -> str:
    """Prefix the batch policy preamble, when one is configured."""
    if preamble and preamble.strip():
        return f"{preamble.rstrip()}\n\n{instructions}"
    return instructions


def build_job(
    task: TaskDescriptor,
    generate: GenerateFn,
    write: WriteFn,
    extract: Extractor = extract_code_block,
    preamble: Optional[str] = None,
    model: Optional[str] = None,
    on_start: Optional[StartHook] = None,
    on_settle: Optional[SettleHook] = None,
) -> Callable[[], Awaitable[JobResult]]:
    """Return a thunk that runs ``task`` end to end and never raises.

    Provider errors, malformed output and write failures all become a failed
    ``JobResult``; both paths carry the measured duration.
    """

    async def job() -> JobResult:
        start = time.perf_counter()
        if on_start is not None:
            run_hook(on_start, task)
        try:
            raw = await generate(build_prompt(task.instructions, preamble))
            payload = extract(raw)
            await write(task.destination, payload.strip())
            result = JobResult.ok(task, elapsed_ms(start), model=model)
        except Exception as e:
            task_logger(_log, task.id).warning("%s failed: %s", task.name, e)
            result = JobResult.failed(task, elapsed_ms(start), e, model=model)
        if on_settle is not None:
            run_hook(on_settle, task, result)
        return result

    job.__name__ = task.name or task.id
    return job


def run_hook(hook: Callable, task: TaskDescriptor, *args) -> None:
    """Run a progress hook; its errors are logged, never reported as the task's."""
    try:
        hook(task, *args)
    except Exception as e:
        task_logger(_log, task.id).warning("%s hook failed: %s", getattr(hook, "__name__", "progress"), e)
