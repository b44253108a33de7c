"""Image Operation protocol: the generate/edit capability the batch engine calls per job."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol

from gib.schemas.models import DEFAULT_MODEL, ImageSource


@dataclass(frozen=True)
class GenerateRequest:
    prompt: str
    output_path: str
    model: str = DEFAULT_MODEL
    n: int = 1
    aspect_ratio: str = "1:1"
    resolution: str = "1k"


@dataclass(frozen=True)
class EditRequest:
    prompt: str
    image_source: ImageSource
    output_path: str
    model: str = DEFAULT_MODEL
    n: int = 1
    resolution: str = "1k"


@dataclass
class ImageResult:
    """Paths written by one call (one per returned image) and the API's revised prompt, if any."""

    saved_paths: list[str] = field(default_factory=list)
    revised_prompt: str | None = None


class ImageOperation(Protocol):
    """Protocol for image backends. Failures raise RemoteError or LocalError."""

    async def generate(self, request: GenerateRequest) -> ImageResult:
        """Create new image(s) from a text prompt and save them to disk."""
        ...

    async def edit(self, request: EditRequest) -> ImageResult:
        """Edit a source image according to the prompt and save the result(s) to disk."""
        ...
