"""Building blocks shared by orchestrator tasks."""

from __future__ import annotations

import asyncio
import time
from typing import Awaitable, Callable, Protocol

import httpx
import structlog

from ..common.schemas import Stage, TaskResult

LOGGER = structlog.get_logger("clusterimages.tasks")

DEFAULT_CLOUD_PROVIDER = "aws"


class TaskExecutionError(RuntimeError):
    """Terminal failure of a task; never retried."""


class CloudProviderAwareTask:
    """Resolves the cloud provider and account a stage targets."""

    def get_cloud_provider(self, stage: Stage) -> str:
        return stage.context.get("cloudProvider") or DEFAULT_CLOUD_PROVIDER

    def get_credentials(self, stage: Stage) -> str:
        credentials = stage.context.get("credentials") or stage.context.get("account")
        if not credentials:
            raise TaskExecutionError(f"No account or credentials configured on stage {stage.id or '<unknown>'}")
        return credentials


class RetryableTask(Protocol):
    backoff_period: float
    timeout: float

    async def execute(self, stage: Stage) -> TaskResult: ...


async def run_with_retries(
    task: RetryableTask,
    stage: Stage,
    *,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> TaskResult:
    """Re-run ``task`` from scratch on transport errors until its timeout elapses."""

    deadline = clock() + task.timeout
    attempt = 0
    while True:
        attempt += 1
        try:
            return await task.execute(stage)
        except httpx.HTTPError as exc:
            if clock() + task.backoff_period >= deadline:
                raise
            LOGGER.warning(
                "Task attempt failed",
                task=type(task).__name__,
                attempt=attempt,
                error=str(exc),
                retry_in=task.backoff_period,
            )
            await sleep(task.backoff_period)
