from __future__ import annotations

import httpx
import pytest

from clusterimages.common.schemas import ExecutionStatus, Stage, TaskResult
from clusterimages.tasks.base import TaskExecutionError, run_with_retries


class FlakyTask:
    backoff_period = 2.0
    timeout = 60.0

    def __init__(self, failures: list[Exception]) -> None:
        self._failures = list(failures)
        self.calls = 0

    async def execute(self, stage: Stage) -> TaskResult:
        self.calls += 1
        if self._failures:
            raise self._failures.pop(0)
        return TaskResult(status=ExecutionStatus.SUCCEEDED, result={"calls": self.calls})


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, delay: float) -> None:
        self.sleeps.append(delay)
        self.now += delay


def _transport_error() -> httpx.HTTPError:
    return httpx.ConnectError("connection refused", request=httpx.Request("GET", "http://inventory.test"))


@pytest.mark.asyncio
async def test_transport_errors_rerun_whole_task():
    clock = FakeClock()
    task = FlakyTask([_transport_error(), _transport_error()])

    result = await run_with_retries(task, Stage(), sleep=clock.sleep, clock=clock)

    assert result.result == {"calls": 3}
    assert clock.sleeps == [2.0, 2.0]


@pytest.mark.asyncio
async def test_retries_stop_at_timeout():
    clock = FakeClock()
    task = FlakyTask([_transport_error() for _ in range(100)])

    with pytest.raises(httpx.ConnectError):
        await run_with_retries(task, Stage(), sleep=clock.sleep, clock=clock)

    assert clock.now < task.timeout
    assert task.calls == len(clock.sleeps) + 1


@pytest.mark.asyncio
async def test_domain_errors_are_not_retried():
    clock = FakeClock()
    task = FlakyTask([TaskExecutionError("Still missing images in [us-west-2]")])

    with pytest.raises(TaskExecutionError):
        await run_with_retries(task, Stage(), sleep=clock.sleep, clock=clock)

    assert task.calls == 1
    assert clock.sleeps == []
