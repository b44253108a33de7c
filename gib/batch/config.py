"""Batch configuration: load (JSON or YAML), validate, merge overrides, resolve jobs into JobSpecs."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from gib.config import Settings, get_settings
from gib.errors import BatchConfigError
from gib.schemas.models import (
    DEFAULT_MODEL,
    BatchConfig,
    BatchJobConfig,
    BatchOptions,
    ImageSource,
    JobKind,
    JobSpec,
    RetryPolicy,
)

logger = logging.getLogger(__name__)

DEFAULT_RESOLUTION = "1k"
DEFAULT_ASPECT_RATIO = "1:1"


# ── Loading ──────────────────────────────────────────────────────────────

def read_batch_file(config_path: str | Path) -> Any:
    """Read a batch config file (``.yaml``/``.yml`` as YAML, anything else as JSON)."""
    path = Path(config_path)
    if not path.is_absolute():
        path = Path.cwd() / path
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise BatchConfigError(f"Configuration file not found: {config_path}")
    except OSError as e:
        raise BatchConfigError(f"Failed to load configuration: {e}") from e

    if path.suffix.lower() in (".yaml", ".yml"):
        try:
            return yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise BatchConfigError(f"Invalid YAML in configuration file: {e}") from e
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise BatchConfigError(f"Invalid JSON in configuration file: {e}") from e


def load_batch_config(config_path: str | Path) -> BatchConfig:
    return validate_batch_config(read_batch_file(config_path))


# ── Validation ───────────────────────────────────────────────────────────

def _format_error(err: dict[str, Any]) -> str:
    msg = str(err.get("msg", ""))
    if msg.startswith("Value error, "):
        msg = msg[len("Value error, "):]
    loc = tuple(err.get("loc", ()))
    if len(loc) >= 2 and loc[0] == "jobs" and isinstance(loc[1], int):
        field = ".".join(str(p) for p in loc[2:])
        return f"Job {loc[1] + 1}: {field + ': ' if field else ''}{msg}"
    if loc:
        return f"{'.'.join(str(p) for p in loc)}: {msg}"
    return msg


def validate_batch_config(data: Any) -> BatchConfig:
    """Validate raw config data; every problem is reported in one BatchConfigError."""
    if isinstance(data, BatchConfig):
        return data
    if not isinstance(data, dict) or not isinstance(data.get("jobs"), list):
        raise BatchConfigError('Configuration must have a "jobs" array')
    if not data["jobs"]:
        raise BatchConfigError("Jobs array cannot be empty")
    if len(data["jobs"]) > 100:
        raise BatchConfigError("Maximum 100 jobs allowed per batch")
    try:
        return BatchConfig.model_validate(data)
    except ValidationError as e:
        raise BatchConfigError("; ".join(_format_error(err) for err in e.errors())) from e


# ── Merging ──────────────────────────────────────────────────────────────

def merge_batch_config(
    config: BatchConfig,
    output_dir: str | None = None,
    max_concurrent: int | None = None,
    timeout: int | None = None,
    settings: Settings | None = None,
) -> BatchConfig:
    """Apply CLI overrides, then environment defaults, then built-in defaults.

    Precedence per field: explicit argument > config file > settings/env > built-in.
    """
    settings = settings or get_settings()
    merged = config.model_dump()

    if output_dir:
        merged["output_dir"] = output_dir
    elif not merged.get("output_dir"):
        merged["output_dir"] = str(settings.output_dir)
    if max_concurrent is not None:
        merged["max_concurrent"] = max_concurrent
    if timeout is not None:
        merged["timeout"] = timeout

    merged["max_concurrent"] = merged.get("max_concurrent") or settings.gib_default_max_concurrent
    merged["timeout"] = merged.get("timeout") or settings.gib_default_timeout_ms
    merged["default_model"] = merged.get("default_model") or DEFAULT_MODEL
    merged["default_resolution"] = merged.get("default_resolution") or DEFAULT_RESOLUTION
    merged["default_aspect_ratio"] = merged.get("default_aspect_ratio") or DEFAULT_ASPECT_RATIO
    if merged.get("retry_policy") is None:
        merged["retry_policy"] = RetryPolicy().model_dump()

    return validate_batch_config(merged)


def batch_options(config: BatchConfig) -> BatchOptions:
    return BatchOptions(
        max_concurrent=config.max_concurrent or 2,
        timeout_ms=config.timeout or 600_000,
    )


def retry_policy(config: BatchConfig) -> RetryPolicy:
    return config.retry_policy or RetryPolicy()


# ── Output paths and job specs ───────────────────────────────────────────

def resolve_output_path(
    job: BatchJobConfig,
    index: int,
    output_dir: str | Path,
    allow_any_path: bool = False,
) -> str:
    """Resolve where job ``index`` (1-based) writes its image.

    Relative paths land under ``output_dir``; unless ``allow_any_path`` is set,
    the result must stay inside ``output_dir``. Jobs without an output path get
    ``generated_<index>.jpg`` or ``edited_<index>.jpg``.
    """
    base = Path(output_dir).expanduser().resolve()
    if not job.output_path:
        prefix = "edited" if job.is_edit else "generated"
        return str(base / f"{prefix}_{index}.jpg")

    candidate = Path(job.output_path).expanduser()
    if not candidate.is_absolute():
        candidate = base / candidate
    resolved = candidate.resolve()
    if not allow_any_path and not resolved.is_relative_to(base):
        raise BatchConfigError(
            f"Job {index}: Output path must be within output directory. "
            "Use --allow-any-path to override."
        )
    return str(resolved)


def _image_source(job: BatchJobConfig) -> ImageSource | None:
    if job.image_base64:
        return ImageSource(kind="base64", value=job.image_base64)
    if job.image_path:
        return ImageSource(kind="path", value=job.image_path)
    if job.image_url:
        return ImageSource(kind="url", value=job.image_url)
    return None


def build_job_specs(config: BatchConfig, allow_any_path: bool = False) -> list[JobSpec]:
    """Turn a (merged) batch config into ordered, immutable JobSpecs."""
    output_dir = config.output_dir or str(Path.cwd())
    specs: list[JobSpec] = []
    claimed: dict[str, int] = {}  # resolved output path -> first job using it
    for index, job in enumerate(config.jobs, start=1):
        source = _image_source(job)
        output_path = resolve_output_path(job, index, output_dir, allow_any_path)
        if output_path in claimed:
            raise BatchConfigError(
                f"Job {index}: duplicate output path {output_path} (already used by job {claimed[output_path]})"
            )
        claimed[output_path] = index
        specs.append(
            JobSpec(
                index=index,
                prompt=job.prompt,
                kind=JobKind.EDIT if source else JobKind.GENERATE,
                model_id=config.effective_model(job),
                output_path=output_path,
                image_count=job.n or 1,
                resolution=job.resolution or config.default_resolution or DEFAULT_RESOLUTION,
                aspect_ratio=None
                if source
                else job.aspect_ratio or config.default_aspect_ratio or DEFAULT_ASPECT_RATIO,
                image_source=source,
            )
        )
    logger.debug("Resolved %d job spec(s) into %s", len(specs), output_dir)
    return specs
