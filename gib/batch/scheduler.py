"""Batch scheduler: bounded concurrency, whole-batch timeout, cancellation sweep, report assembly.

Every job gets its own task up front; the ConcurrencyLimiter alone decides how
many execute at once. The batch races all tasks against ``timeout_ms``. When
the timer wins, the scheduler waits a short grace period so nearly finished
jobs can land, then marks every job without an outcome as cancelled. Jobs are
not interrupted mid-call, so a job swept as cancelled may still finish later
and write its files; its outcome is then not part of the report.
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Sequence

from gib.batch.cost import estimate_job_specs
from gib.batch.executor import JobExecutor
from gib.batch.limiter import ConcurrencyLimiter
from gib.batch.retry import error_message
from gib.schemas.models import (
    BatchOptions,
    BatchReport,
    CancelledOutcome,
    CostEstimate,
    FailedOutcome,
    JobOutcome,
    JobSpec,
    RetryPolicy,
)

logger = logging.getLogger(__name__)

DEFAULT_GRACE_PERIOD_SECONDS = 2.0
TIMEOUT_REASON = "timeout"


class BatchScheduler:
    """Runs a list of JobSpecs through a JobExecutor and returns one BatchReport per call."""

    def __init__(
        self,
        executor: JobExecutor,
        grace_period_s: float = DEFAULT_GRACE_PERIOD_SECONDS,
        cancel_on_timeout: bool = False,
    ):
        self._executor = executor
        self._grace_period_s = grace_period_s
        self._cancel_on_timeout = cancel_on_timeout
        # Tasks still running after a timeout sweep; referenced here so they are not collected.
        self._stragglers: set[asyncio.Task] = set()

    @property
    def stragglers(self) -> frozenset[asyncio.Task]:
        return frozenset(self._stragglers)

    async def wait_for_stragglers(self, timeout: float | None = None) -> None:
        """Wait for jobs that outlived a timed-out batch (their outcomes stay unreported)."""
        if self._stragglers:
            await asyncio.wait(set(self._stragglers), timeout=timeout)

    async def run(
        self,
        jobs: Sequence[JobSpec],
        options: BatchOptions,
        policy: RetryPolicy,
        estimate: CostEstimate | None = None,
    ) -> BatchReport:
        started_at = datetime.now(timezone.utc)
        start = time.monotonic()
        limiter = ConcurrencyLimiter(options.max_concurrent)
        outcomes: dict[int, JobOutcome] = {}
        swept = False

        logger.info(
            "Starting batch execution: %d jobs, max concurrent: %d, timeout: %dms",
            len(jobs),
            options.max_concurrent,
            options.timeout_ms,
        )

        async def run_one(job: JobSpec) -> None:
            async with limiter:
                try:
                    outcome: JobOutcome = await self._executor.execute(job, policy)
                except Exception as e:
                    logger.exception("Job %d: executor error", job.index)
                    outcome = FailedOutcome(
                        index=job.index,
                        prompt=job.prompt,
                        is_edit=job.is_edit,
                        error=error_message(e),
                        duration_ms=0,
                    )
            if swept:
                logger.warning(
                    "Job %d finished after the timeout sweep (%s); outcome not reported",
                    job.index,
                    outcome.status,
                )
                return
            outcomes[job.index] = outcome

        tasks = [asyncio.create_task(run_one(job), name=f"gib-job-{job.index}") for job in jobs]
        pending: set[asyncio.Task] = set()
        try:
            if tasks:
                _, pending = await asyncio.wait(tasks, timeout=options.timeout_ms / 1000)
            timed_out = bool(pending)
            if timed_out:
                logger.warning(
                    "Batch timed out after %dms with %d job(s) unfinished, waiting %.1fs for in-progress jobs",
                    options.timeout_ms,
                    len(pending),
                    self._grace_period_s,
                )
                if self._grace_period_s > 0:
                    _, pending = await asyncio.wait(pending, timeout=self._grace_period_s)
        except asyncio.CancelledError:
            for task in tasks:
                task.cancel()
            raise

        swept = True
        for job in jobs:
            if job.index not in outcomes:
                outcomes[job.index] = CancelledOutcome(
                    index=job.index,
                    prompt=job.prompt,
                    is_edit=job.is_edit,
                    reason=TIMEOUT_REASON,
                )
        self._handle_stragglers(pending)

        results = sorted(outcomes.values(), key=lambda o: o.index)
        succeeded = sum(1 for o in results if o.status == "completed")
        failed = sum(1 for o in results if o.status == "failed")
        cancelled = sum(1 for o in results if o.status == "cancelled")
        total_duration_ms = int((time.monotonic() - start) * 1000)

        logger.info(
            "Batch finished in %dms: %d succeeded, %d failed, %d cancelled",
            total_duration_ms,
            succeeded,
            failed,
            cancelled,
        )
        return BatchReport(
            total=len(jobs),
            succeeded=succeeded,
            failed=failed,
            cancelled=cancelled,
            results=results,
            started_at=started_at,
            finished_at=datetime.now(timezone.utc),
            total_duration_ms=total_duration_ms,
            timed_out=timed_out,
            estimate=estimate if estimate is not None else estimate_job_specs(jobs),
        )

    def _handle_stragglers(self, pending: set[asyncio.Task]) -> None:
        if not pending:
            return
        if self._cancel_on_timeout:
            logger.info("Cancelling %d job(s) still running after the sweep", len(pending))
            for task in pending:
                task.cancel()
            return
        logger.info("%d job(s) left running in the background after the sweep", len(pending))
        for task in pending:
            self._stragglers.add(task)
            task.add_done_callback(self._stragglers.discard)
