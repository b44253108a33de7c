"""Run a single job to completion, retrying failed attempts per the batch retry policy."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable

from gib.batch.retry import error_message, retry_delay_seconds, should_retry
from gib.images.base import EditRequest, GenerateRequest, ImageOperation, ImageResult
from gib.schemas.models import CompletedOutcome, FailedOutcome, JobSpec, RetryPolicy

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


class JobExecutor:
    """Calls the Image Operation for one job and turns the result into a JobOutcome.

    Never returns a cancelled outcome; cancellation is decided by the scheduler.
    Files written by an earlier failed attempt are left where they are.
    """

    def __init__(self, operation: ImageOperation, sleep: Sleep = asyncio.sleep):
        self._operation = operation
        self._sleep = sleep

    async def execute(self, job: JobSpec, policy: RetryPolicy) -> CompletedOutcome | FailedOutcome:
        start = time.monotonic()
        attempt = 0
        total = policy.max_retries + 1
        while True:
            logger.debug("Job %d: starting (attempt %d/%d)", job.index, attempt + 1, total)
            try:
                result = await self._call(job)
            except Exception as e:
                last_error = error_message(e)
                logger.info("Job %d: failed (attempt %d): %s", job.index, attempt + 1, last_error)
                if should_retry(e, attempt, policy):
                    delay = retry_delay_seconds(policy)
                    logger.debug("Job %d: retrying in %.2fs", job.index, delay)
                    await self._sleep(delay)
                    attempt += 1
                    continue
                return FailedOutcome(
                    index=job.index,
                    prompt=job.prompt,
                    is_edit=job.is_edit,
                    error=last_error,
                    duration_ms=_elapsed_ms(start),
                    attempts=attempt + 1,
                )

            duration = _elapsed_ms(start)
            logger.info("Job %d: completed in %dms", job.index, duration)
            return CompletedOutcome(
                index=job.index,
                prompt=job.prompt,
                is_edit=job.is_edit,
                output_paths=list(result.saved_paths) or [job.output_path],
                duration_ms=duration,
                revised_prompt=result.revised_prompt,
                attempts=attempt + 1,
            )

    async def _call(self, job: JobSpec) -> ImageResult:
        if job.is_edit:
            return await self._operation.edit(
                EditRequest(
                    prompt=job.prompt,
                    image_source=job.image_source,
                    output_path=job.output_path,
                    model=job.model_id,
                    n=job.image_count,
                    resolution=job.resolution,
                )
            )
        return await self._operation.generate(
            GenerateRequest(
                prompt=job.prompt,
                output_path=job.output_path,
                model=job.model_id,
                n=job.image_count,
                aspect_ratio=job.aspect_ratio or "1:1",
                resolution=job.resolution,
            )
        )
