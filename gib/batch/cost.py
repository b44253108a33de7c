"""Cost estimation for a batch. Pure and recomputed on every call."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from gib.schemas.models import (
    DEFAULT_MODEL,
    BatchConfig,
    CostBreakdownEntry,
    CostEstimate,
    JobSpec,
)


@dataclass(frozen=True)
class ModelPricing:
    base_per_image: float  # USD per output image
    edit_per_job: float  # USD surcharge per edit request (input image)


MODEL_COSTS: dict[str, ModelPricing] = {
    "grok-imagine-image": ModelPricing(base_per_image=0.02, edit_per_job=0.002),
    "grok-2-image": ModelPricing(base_per_image=0.07, edit_per_job=0.0),
    "grok-2-image-latest": ModelPricing(base_per_image=0.07, edit_per_job=0.0),
    "grok-2-image-1212": ModelPricing(base_per_image=0.07, edit_per_job=0.0),
}


def pricing_for(model: str) -> ModelPricing:
    """Price table entry for a model; unknown models are priced as the default model."""
    return MODEL_COSTS.get(model, MODEL_COSTS[DEFAULT_MODEL])


def _estimate(entries: Iterable[tuple[str, bool, int]]) -> CostEstimate:
    """Group (model, is_edit, image_count) triples and price each group."""
    groups: dict[tuple[str, bool], list[int]] = {}  # -> [job count, image count]
    total_jobs = 0
    for model, is_edit, images in entries:
        total_jobs += 1
        counts = groups.setdefault((model, is_edit), [0, 0])
        counts[0] += 1
        counts[1] += images

    breakdown: list[CostBreakdownEntry] = []
    total_min = total_max = 0.0
    total_images = 0
    for (model, is_edit), (count, images) in groups.items():
        prices = pricing_for(model)
        cost = prices.base_per_image * images + (prices.edit_per_job * count if is_edit else 0.0)
        # Pricing is deterministic today, so both bounds are equal.
        breakdown.append(
            CostBreakdownEntry(
                model=f"{model}_edit" if is_edit else model,
                is_edit=is_edit,
                count=count,
                images=images,
                cost_min=cost,
                cost_max=cost,
            )
        )
        total_min += cost
        total_max += cost
        total_images += images

    return CostEstimate(
        total_jobs=total_jobs,
        total_images=total_images,
        estimated_cost_min=total_min,
        estimated_cost_max=total_max,
        breakdown=breakdown,
    )


def estimate_batch_cost(config: BatchConfig) -> CostEstimate:
    """Estimate the intended spend of a batch config, grouped by (model, is_edit)."""
    return _estimate(
        (config.effective_model(job), job.is_edit, job.n or 1) for job in config.jobs
    )


def estimate_job_specs(jobs: Iterable[JobSpec]) -> CostEstimate:
    """Same as ``estimate_batch_cost`` over already-resolved job specs."""
    return _estimate((job.model_id, job.is_edit, job.image_count) for job in jobs)
