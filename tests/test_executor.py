"""Tests for BoundedExecutor: completeness, concurrency ceiling, isolation."""

import asyncio

import pytest

from enkai.dispatch.executor import BoundedExecutor, run_bounded
from enkai.dispatch.tasks import JobResult, TaskDescriptor


def _task(id, name=None):
    return TaskDescriptor(id=id, name=name or f"{id}.ts", instructions=f"do {id}", destination=f"out/{id}.ts")


class Tracker:
    """Records start/end markers so tests can measure overlap."""

    def __init__(self):
        self.events = []
        self.active = 0
        self.max_active = 0

    def job(self, id, delay=0.01, fail=False):
        async def job():
            self.active += 1
            self.max_active = max(self.max_active, self.active)
            self.events.append(("start", id))
            try:
                await asyncio.sleep(delay)
                if fail:
                    raise RuntimeError(f"{id} exploded")
                return JobResult.ok(_task(id), duration_ms=int(delay * 1000))
            finally:
                self.active -= 1
                self.events.append(("end", id))
        job.__name__ = id
        return job


def _run(jobs, limit):
    return asyncio.run(run_bounded(jobs, limit))


class TestCompleteness:
    """One result per job, whatever happens to each job."""

    @pytest.mark.parametrize("count,limit", [(1, 1), (5, 2), (7, 7), (3, 10)])
    def test_one_result_per_job(self, count, limit):
        tracker = Tracker()
        jobs = [tracker.job(f"t{i}", fail=(i % 3 == 0)) for i in range(count)]
        results = _run(jobs, limit)
        assert len(results) == count
        assert {r.name for r in results} == {f"t{i}" for i in range(count)}

    def test_empty_batch_returns_empty_list(self):
        executor = BoundedExecutor(5)
        assert asyncio.run(executor.run([])) == []
        assert executor.peak_in_flight == 0

    def test_results_in_completion_order(self):
        tracker = Tracker()
        jobs = [tracker.job("slow", delay=0.05), tracker.job("fast", delay=0.0)]
        results = _run(jobs, 2)
        assert [r.name for r in results] == ["fast", "slow"]


class TestConcurrencyCeiling:
    """Never more than the limit started-but-not-settled."""

    @pytest.mark.parametrize("limit", [1, 2, 3])
    def test_max_overlap_within_limit(self, limit):
        tracker = Tracker()
        jobs = [tracker.job(f"t{i}", delay=0.01) for i in range(8)]
        _run(jobs, limit)
        assert tracker.max_active <= limit

    def test_limit_is_reached(self):
        tracker = Tracker()
        executor = BoundedExecutor(3)
        asyncio.run(executor.run([tracker.job(f"t{i}", delay=0.02) for i in range(6)]))
        assert tracker.max_active == 3
        assert executor.peak_in_flight == 3
        assert executor.in_flight == 0

    def test_limit_one_is_sequential(self):
        tracker = Tracker()
        _run([tracker.job(f"t{i}") for i in range(4)], 1)
        kinds = [kind for kind, _ in tracker.events]
        assert kinds == ["start", "end"] * 4

    def test_admission_follows_submission_order(self):
        tracker = Tracker()
        _run([tracker.job(f"t{i}", delay=0.01 * (5 - i)) for i in range(5)], 2)
        starts = [id for kind, id in tracker.events if kind == "start"]
        assert starts == [f"t{i}" for i in range(5)]

    def test_permit_released_after_failure(self):
        tracker = Tracker()
        jobs = [tracker.job("bad", fail=True), tracker.job("good")]
        results = _run(jobs, 1)
        assert len(results) == 2
        assert [r.success for r in results] == [False, True]


class TestIsolation:
    """A failing job never sinks its neighbours."""

    def test_synchronous_throw_is_reported(self):
        tracker = Tracker()

        def job_fail():
            raise ValueError("boom before any await")

        jobs = [tracker.job("a"), job_fail, tracker.job("b")]
        executor = BoundedExecutor(2)
        results = asyncio.run(executor.run(jobs))

        assert len(results) == 3
        failures = [r for r in results if not r.success]
        assert len(failures) == 1
        assert failures[0].name == "job_fail"
        assert failures[0].task_id == "job-1"
        assert isinstance(failures[0].error, ValueError)
        assert executor.peak_in_flight <= 2

    def test_async_throw_is_reported(self):
        tracker = Tracker()
        jobs = [tracker.job("ok1"), tracker.job("bad", fail=True), tracker.job("ok2")]
        results = _run(jobs, 2)
        by_name = {r.name: r for r in results}
        assert by_name["ok1"].success and by_name["ok2"].success
        assert not by_name["bad"].success
        assert by_name["bad"].error_message == "bad exploded"

    def test_always_failing_job_does_not_block_others(self):
        async def always_fails():
            raise RuntimeError("never works")

        tracker = Tracker()
        jobs = [always_fails] + [tracker.job(f"t{i}") for i in range(4)]
        results = _run(jobs, 2)
        assert sum(1 for r in results if r.success) == 4

    def test_lambda_gets_positional_label(self):
        results = _run([lambda: 1 / 0], 1)
        assert results[0].name == "job-0"
        assert isinstance(results[0].error, ZeroDivisionError)


class TestLimitValidation:
    """Concurrency limits must be positive integers."""

    @pytest.mark.parametrize("limit", [0, -1, 1.5, "2", None, True])
    def test_invalid_limit(self, limit):
        with pytest.raises(ValueError):
            BoundedExecutor(limit)

    def test_valid_limit(self):
        assert BoundedExecutor(4).concurrency_limit == 4
