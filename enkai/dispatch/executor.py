"""BoundedExecutor: run independent async jobs with a concurrency ceiling.

Admission is FIFO: the control flow takes a semaphore permit before starting
each job, in submission order, and every job hands its permit back when it
settles, whether it succeeded or failed. ``asyncio.gather`` is the join.

A job that raises never aborts the batch. Jobs built by
:func:`enkai.dispatch.jobs.build_job` turn their own failures into a failed
``JobResult``; for any other thunk the executor does the conversion itself, so
``run`` always returns exactly one result per submitted job.
"""

import asyncio
import time
from typing import Awaitable, Callable, List, Sequence, TypeVar, Union

from ..logger import get_logger
from .tasks import JobResult

_log = get_logger(__name__)

R = TypeVar("R")
Job = Callable[[], Awaitable[R]]


def elapsed_ms(start: float) -> int:
    return int(round((time.perf_counter() - start) * 1000))


def _job_label(job: Callable, index: int) -> str:
    name = getattr(job, "__name__", "")
    if not name or name == "<lambda>":
        return f"job-{index}"
    return name


class BoundedExecutor:
    """Runs jobs with at most ``concurrency_limit`` in flight at any instant."""

    def __init__(self, concurrency_limit: int):
        if isinstance(concurrency_limit, bool) or not isinstance(concurrency_limit, int):
            raise ValueError("concurrency_limit must be a positive integer")
        if concurrency_limit < 1:
            raise ValueError("concurrency_limit must be a positive integer")
        self.concurrency_limit = concurrency_limit
        self.in_flight = 0
        self.peak_in_flight = 0

    async def run(self, jobs: Sequence[Job]) -> List[Union[R, JobResult]]:
        """Run every job and return all results in completion order."""
        jobs = list(jobs)
        if not jobs:
            return []

        semaphore = asyncio.Semaphore(self.concurrency_limit)
        results: List[Union[R, JobResult]] = []
        handles = []

        _log.debug("Running %d job(s), limit %d", len(jobs), self.concurrency_limit)
        for index, job in enumerate(jobs):
            await semaphore.acquire()
            self.in_flight += 1
            self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
            handles.append(asyncio.ensure_future(
                self._settle(index, job, semaphore, results)
            ))

        await asyncio.gather(*handles)
        return results

    async def _settle(self, index: int, job: Job, semaphore: asyncio.Semaphore, results: list) -> None:
        start = time.perf_counter()
        try:
            results.append(await job())
        except Exception as e:
            label = _job_label(job, index)
            _log.warning("Job %s raised %s: %s", label, type(e).__name__, e)
            results.append(JobResult(
                task_id=f"job-{index}",
                name=label,
                destination="",
                success=False,
                duration_ms=elapsed_ms(start),
                error=e,
            ))
        finally:
            self.in_flight -= 1
            semaphore.release()


async def run_bounded(jobs: Sequence[Job], concurrency_limit: int) -> list:
    """Run ``jobs`` with at most ``concurrency_limit`` in flight."""
    return await BoundedExecutor(concurrency_limit).run(jobs)
