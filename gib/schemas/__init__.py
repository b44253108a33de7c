"""Batch input, job, outcome, report and cost models."""

from gib.schemas.models import (
    BatchConfig,
    BatchJobConfig,
    BatchOptions,
    BatchReport,
    CancelledOutcome,
    CompletedOutcome,
    CostBreakdownEntry,
    CostEstimate,
    FailedOutcome,
    ImageSource,
    JobKind,
    JobOutcome,
    JobSpec,
    RetryPolicy,
)

__all__ = [
    "BatchConfig",
    "BatchJobConfig",
    "BatchOptions",
    "BatchReport",
    "CancelledOutcome",
    "CompletedOutcome",
    "CostBreakdownEntry",
    "CostEstimate",
    "FailedOutcome",
    "ImageSource",
    "JobKind",
    "JobOutcome",
    "JobSpec",
    "RetryPolicy",
]
