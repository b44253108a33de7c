"""Pytest configuration and shared fixtures."""

import asyncio

import pytest

from gib.config import Settings
from gib.images.base import EditRequest, GenerateRequest, ImageResult
from gib.images.storage import numbered_path
from gib.schemas.models import ImageSource, JobKind, JobSpec


class ScriptedOperation:
    """In-memory Image Operation whose behaviour per prompt is scripted.

    ``script`` maps a prompt to a list of actions consumed one per call:
    an exception instance is raised, ``"hang"`` never returns, a number sleeps
    that many seconds before succeeding. Calls past the end of the list succeed.
    """

    def __init__(self, script=None, delay=0.0):
        self.script = {prompt: list(actions) for prompt, actions in (script or {}).items()}
        self.delay = delay
        self.calls = []
        self.in_flight = 0
        self.peak_in_flight = 0

    async def generate(self, request: GenerateRequest) -> ImageResult:
        return await self._handle("generate", request)

    async def edit(self, request: EditRequest) -> ImageResult:
        return await self._handle("edit", request)

    def attempts_for(self, prompt: str) -> int:
        return sum(1 for _, req in self.calls if req.prompt == prompt)

    async def _handle(self, kind, request):
        self.calls.append((kind, request))
        self.in_flight += 1
        self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
        try:
            steps = self.script.get(request.prompt)
            action = steps.pop(0) if steps else None
            if isinstance(action, BaseException):
                raise action
            if action == "hang":
                await asyncio.Event().wait()
            delay = action if isinstance(action, (int, float)) else self.delay
            if delay:
                await asyncio.sleep(delay)
            paths = [numbered_path(request.output_path, i, request.n) for i in range(1, request.n + 1)]
            return ImageResult(saved_paths=paths, revised_prompt=f"revised: {request.prompt}")
        finally:
            self.in_flight -= 1


@pytest.fixture
def make_operation():
    """Factory for ScriptedOperation instances."""
    return ScriptedOperation


@pytest.fixture
def make_job(tmp_path):
    """Factory for generate (default) or edit JobSpecs writing under tmp_path."""

    def _make(index: int = 1, prompt: str | None = None, kind: JobKind = JobKind.GENERATE, **overrides):
        fields = {
            "index": index,
            "prompt": prompt or f"prompt {index}",
            "kind": kind,
            "model_id": "grok-imagine-image",
            "output_path": str(tmp_path / f"generated_{index}.jpg"),
        }
        if kind is JobKind.EDIT:
            fields["image_source"] = ImageSource(kind="path", value=str(tmp_path / "source.jpg"))
        else:
            fields["aspect_ratio"] = "1:1"
        fields.update(overrides)
        return JobSpec(**fields)

    return _make


@pytest.fixture
def settings(tmp_path):
    """Settings isolated from the developer's environment and .env file."""
    return Settings(
        _env_file=None,
        xai_api_key="xai-test-key",
        output_dir_override=str(tmp_path / "out"),
    )


@pytest.fixture
def sample_config_data():
    """A small mixed batch: two generate jobs and one edit job."""
    return {
        "jobs": [
            {"prompt": "A beautiful sunset", "output_path": "sunset.jpg", "aspect_ratio": "16:9"},
            {"prompt": "A cat astronaut", "n": 2},
            {"prompt": "Change to nighttime", "image_path": "input.jpg", "output_path": "edited.jpg"},
        ],
        "max_concurrent": 3,
        "default_model": "grok-imagine-image",
    }
