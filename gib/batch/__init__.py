"""Batch execution engine: cost estimate and concurrent run over a batch config."""

from __future__ import annotations

from gib.batch.config import (
    batch_options,
    build_job_specs,
    load_batch_config,
    merge_batch_config,
    retry_policy,
    validate_batch_config,
)
from gib.batch.cost import estimate_batch_cost
from gib.batch.executor import JobExecutor
from gib.batch.limiter import ConcurrencyLimiter
from gib.batch.retry import should_retry
from gib.batch.scheduler import DEFAULT_GRACE_PERIOD_SECONDS, BatchScheduler
from gib.images.base import ImageOperation
from gib.schemas.models import BatchConfig, BatchReport, CostEstimate


def estimate(config: BatchConfig) -> CostEstimate:
    """Cost estimate for a batch. No side effects; safe to call repeatedly."""
    return estimate_batch_cost(config)


async def run(
    config: BatchConfig,
    operation: ImageOperation,
    allow_any_path: bool = False,
    grace_period_s: float = DEFAULT_GRACE_PERIOD_SECONDS,
    cancel_on_timeout: bool = False,
) -> BatchReport:
    """Run every job of a merged batch config and report each job's fate.

    Raises BatchConfigError if an output path cannot be resolved; per-job
    failures never raise and show up in the report instead.
    """
    jobs = build_job_specs(config, allow_any_path=allow_any_path)
    scheduler = BatchScheduler(
        JobExecutor(operation),
        grace_period_s=grace_period_s,
        cancel_on_timeout=cancel_on_timeout,
    )
    return await scheduler.run(
        jobs,
        batch_options(config),
        retry_policy(config),
        estimate=estimate_batch_cost(config),
    )


__all__ = [
    "BatchScheduler",
    "ConcurrencyLimiter",
    "JobExecutor",
    "estimate",
    "load_batch_config",
    "merge_batch_config",
    "run",
    "should_retry",
    "validate_batch_config",
]
