"""Pydantic models: single source of truth for batch input, job specs, outcomes, reports and cost estimates."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator, model_validator

# ---------------------------------------------------------------------------
# Model / option catalogue
# ---------------------------------------------------------------------------

DEFAULT_MODEL = "grok-imagine-image"

MODELS: tuple[str, ...] = (
    "grok-imagine-image",
    "grok-2-image",
    "grok-2-image-latest",
    "grok-2-image-1212",
)

GROK_IMAGINE_ASPECT_RATIOS: tuple[str, ...] = ("1:1", "3:4", "4:3", "9:16", "16:9")

GROK2_ASPECT_RATIOS: tuple[str, ...] = (
    "1:1",
    "3:4",
    "4:3",
    "9:16",
    "16:9",
    "2:3",
    "3:2",
    "9:19.5",
    "19.5:9",
    "9:20",
    "20:9",
    "1:2",
    "2:1",
    "auto",
)

RESOLUTIONS: tuple[str, ...] = ("1k",)

DEFAULT_RETRY_PATTERNS: tuple[str, ...] = ("rate_limit", "timeout", "429", "503")


def aspect_ratios_for(model: str) -> tuple[str, ...]:
    """Aspect ratios accepted by a model (grok-imagine-image supports a smaller set)."""
    return GROK_IMAGINE_ASPECT_RATIOS if model == DEFAULT_MODEL else GROK2_ASPECT_RATIOS


# ---------------------------------------------------------------------------
# Batch input (declarative config file)
# ---------------------------------------------------------------------------


class RetryPolicy(BaseModel):
    """Retry policy shared read-only by every job of a batch."""

    model_config = ConfigDict(frozen=True)

    max_retries: int = Field(default=2, ge=0, le=5)
    retry_delay_ms: int = Field(default=1000, ge=100, le=60_000)
    # None means "use DEFAULT_RETRY_PATTERNS"; an explicit empty list disables retries.
    retry_on_errors: tuple[str, ...] | None = None

    @property
    def patterns(self) -> tuple[str, ...]:
        if self.retry_on_errors is None:
            return DEFAULT_RETRY_PATTERNS
        return self.retry_on_errors


class BatchJobConfig(BaseModel):
    """One entry of the ``jobs`` array in a batch config file."""

    prompt: str
    output_path: str | None = None
    model: str | None = None
    aspect_ratio: str | None = None
    resolution: str | None = None
    n: int | None = Field(default=None, ge=1, le=10)

    # Edit-specific: exactly one source image
    image_path: str | None = None
    image_base64: str | None = Field(default=None, repr=False)
    image_url: str | None = None

    @field_validator("prompt")
    @classmethod
    def _prompt_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("prompt is required and must be a non-empty string")
        return v

    @model_validator(mode="after")
    def _check_catalogue(self) -> "BatchJobConfig":
        if self.model is not None and self.model not in MODELS:
            raise ValueError(f'Invalid model "{self.model}". Must be one of: {", ".join(MODELS)}')
        if self.resolution is not None and self.resolution not in RESOLUTIONS:
            raise ValueError(
                f'Invalid resolution "{self.resolution}". Must be one of: {", ".join(RESOLUTIONS)}'
            )
        sources = [s for s in (self.image_path, self.image_base64, self.image_url) if s]
        if len(sources) > 1:
            raise ValueError("only one of image_path, image_base64 or image_url may be given")
        if self.is_edit and self.aspect_ratio is not None:
            raise ValueError(
                "aspect_ratio cannot be specified for edit jobs (auto-detected from input image)"
            )
        return self

    @property
    def is_edit(self) -> bool:
        return bool(self.image_path or self.image_base64 or self.image_url)


class BatchConfig(BaseModel):
    """A batch configuration file: ordered jobs plus batch-wide defaults and policy."""

    jobs: list[BatchJobConfig] = Field(min_length=1, max_length=100)
    output_dir: str | None = None
    max_concurrent: int | None = Field(default=None, ge=1, le=10)
    timeout: int | None = Field(default=None, ge=1000, le=3_600_000)  # milliseconds
    retry_policy: RetryPolicy | None = None
    default_model: str | None = None
    default_resolution: str | None = None
    default_aspect_ratio: str | None = None

    @model_validator(mode="after")
    def _check_defaults(self) -> "BatchConfig":
        if self.default_model is not None and self.default_model not in MODELS:
            raise ValueError(
                f"Invalid default_model: {self.default_model}. Must be one of: {', '.join(MODELS)}"
            )
        if self.default_resolution is not None and self.default_resolution not in RESOLUTIONS:
            raise ValueError(
                f"Invalid default_resolution: {self.default_resolution}. "
                f"Must be one of: {', '.join(RESOLUTIONS)}"
            )
        if self.default_aspect_ratio is not None and self.default_aspect_ratio not in GROK2_ASPECT_RATIOS:
            raise ValueError(
                f"Invalid default_aspect_ratio: {self.default_aspect_ratio}. "
                f"Must be one of: {', '.join(GROK2_ASPECT_RATIOS)}"
            )
        for i, job in enumerate(self.jobs, start=1):
            model = self.effective_model(job)
            if job.aspect_ratio is not None and job.aspect_ratio not in aspect_ratios_for(model):
                raise ValueError(
                    f'Job {i}: Invalid aspect_ratio "{job.aspect_ratio}" for model {model}. '
                    f"Must be one of: {', '.join(aspect_ratios_for(model))}"
                )
            if (
                not job.is_edit
                and job.aspect_ratio is None
                and self.default_aspect_ratio is not None
                and self.default_aspect_ratio not in aspect_ratios_for(model)
            ):
                raise ValueError(
                    f'Job {i}: Invalid default_aspect_ratio "{self.default_aspect_ratio}" for model {model}. '
                    f"Must be one of: {', '.join(aspect_ratios_for(model))}"
                )
            if job.is_edit and model != DEFAULT_MODEL:
                raise ValueError(f"Job {i}: Image editing is only supported by {DEFAULT_MODEL} model")
        return self

    def effective_model(self, job: BatchJobConfig) -> str:
        return job.model or self.default_model or DEFAULT_MODEL


# ---------------------------------------------------------------------------
# Engine inputs
# ---------------------------------------------------------------------------


class JobKind(str, Enum):
    GENERATE = "generate"
    EDIT = "edit"


class ImageSource(BaseModel):
    """Opaque handle to the source image of an edit job."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["path", "base64", "url"]
    value: str = Field(repr=False)


class JobSpec(BaseModel):
    """Normalized, immutable parameters for one job plus its resolved output path."""

    model_config = ConfigDict(frozen=True)

    index: int = Field(ge=1)  # 1-based position in the batch
    prompt: str = Field(min_length=1)
    kind: JobKind
    model_id: str
    output_path: str
    image_count: int = Field(default=1, ge=1, le=10)
    resolution: str = "1k"
    aspect_ratio: str | None = None  # generate only
    image_source: ImageSource | None = None  # edit only

    @model_validator(mode="after")
    def _check_kind_fields(self) -> "JobSpec":
        if self.kind is JobKind.EDIT:
            if self.image_source is None:
                raise ValueError("edit jobs require an image source")
            if self.aspect_ratio is not None:
                raise ValueError("edit jobs never carry an aspect ratio")
        elif self.image_source is not None:
            raise ValueError("generate jobs take no image source")
        return self

    @property
    def is_edit(self) -> bool:
        return self.kind is JobKind.EDIT


class BatchOptions(BaseModel):
    """Concurrency cap and wall-clock timeout for one batch run."""

    model_config = ConfigDict(frozen=True)

    max_concurrent: int = Field(default=2, ge=1, le=10)
    timeout_ms: int = Field(default=600_000, ge=1000, le=3_600_000)


# ---------------------------------------------------------------------------
# Outcomes and reports
# ---------------------------------------------------------------------------


class _OutcomeBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    index: int
    prompt: str
    is_edit: bool = False


class CompletedOutcome(_OutcomeBase):
    status: Literal["completed"] = "completed"
    output_paths: list[str]
    duration_ms: int
    revised_prompt: str | None = None
    attempts: int = 1


class FailedOutcome(_OutcomeBase):
    status: Literal["failed"] = "failed"
    error: str
    duration_ms: int
    attempts: int = 1


class CancelledOutcome(_OutcomeBase):
    status: Literal["cancelled"] = "cancelled"
    reason: str = "timeout"


JobOutcome = Annotated[
    Union[CompletedOutcome, FailedOutcome, CancelledOutcome],
    Field(discriminator="status"),
]


class CostBreakdownEntry(BaseModel):
    """Cost of one (model, is_edit) group of jobs."""

    model: str  # "<model>" or "<model>_edit"
    is_edit: bool = False
    count: int = 0
    images: int = 0
    cost_min: float = 0.0
    cost_max: float = 0.0


class CostEstimate(BaseModel):
    total_jobs: int = 0
    total_images: int = 0
    estimated_cost_min: float = 0.0
    estimated_cost_max: float = 0.0
    breakdown: list[CostBreakdownEntry] = []


class BatchReport(BaseModel):
    """Aggregate result of one batch run; results are ordered by job index."""

    total: int
    succeeded: int
    failed: int
    cancelled: int
    results: list[JobOutcome]
    started_at: datetime
    finished_at: datetime
    total_duration_ms: int
    timed_out: bool = False
    estimate: CostEstimate

    @computed_field  # type: ignore[prop-decorator]
    @property
    def estimated_cost(self) -> float:
        return self.estimate.estimated_cost_min
