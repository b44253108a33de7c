"""Image persistence helpers: save base64/URL images, numbered and unique paths, source loading."""

from __future__ import annotations

import asyncio
import base64
import binascii
import logging
from pathlib import Path

import httpx

from gib.errors import LocalError
from gib.schemas.models import ImageSource

logger = logging.getLogger(__name__)


def numbered_path(path: str, position: int, count: int) -> str:
    """``out.jpg`` -> ``out_2.jpg`` for the 2nd of several images; unchanged when count == 1."""
    if count <= 1:
        return path
    p = Path(path)
    return str(p.with_name(f"{p.stem}_{position}{p.suffix}"))


def unique_file_path(path: str, count: int = 1) -> str:
    """Return ``path`` or the first free ``<stem>_<k><suffix>``.

    With ``count > 1`` the numbered variants ``<base>_1 .. <base>_<count>`` of
    the returned base must all be free, not the base itself.
    """
    p = Path(path)

    def free(base: Path) -> bool:
        return not any(
            Path(numbered_path(str(base), i, count)).exists() for i in range(1, count + 1)
        )

    if free(p):
        return path
    k = 1
    while True:
        candidate = p.with_name(f"{p.stem}_{k}{p.suffix}")
        if free(candidate):
            return str(candidate)
        k += 1


def _write_new_file(path: Path, data: bytes) -> str:
    """Write ``data`` to a file that did not exist before; returns the path written.

    The file is created exclusively, so a name taken meanwhile by another job
    moves this write on to the next free ``<stem>_<k>`` name.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    while True:
        try:
            with open(path, "xb") as f:
                f.write(data)
            return str(path)
        except FileExistsError:
            path = Path(unique_file_path(str(path)))


async def save_base64_image(b64_data: str, output_path: str) -> str:
    try:
        data = base64.b64decode(b64_data, validate=False)
    except (binascii.Error, ValueError) as e:
        raise LocalError(f"Failed to decode image data: {e}") from e
    try:
        saved = await asyncio.to_thread(_write_new_file, Path(output_path), data)
    except OSError as e:
        raise LocalError(f"Failed to save image to {output_path}: {e}") from e
    logger.debug("Saved image to: %s", saved)
    return saved


async def download_and_save_image(client: httpx.AsyncClient, url: str, output_path: str) -> str:
    logger.debug("Downloading image from: %s", url)
    try:
        response = await client.get(url)
        response.raise_for_status()
    except httpx.TimeoutException as e:
        raise LocalError(f"Failed to download image: timeout ({e})") from e
    except httpx.HTTPStatusError as e:
        raise LocalError(
            f"Failed to download image: {e.response.status_code} {e.response.reason_phrase}"
        ) from e
    except httpx.HTTPError as e:
        raise LocalError(f"Failed to download image: {e}") from e
    try:
        saved = await asyncio.to_thread(_write_new_file, Path(output_path), response.content)
    except OSError as e:
        raise LocalError(f"Failed to save image to {output_path}: {e}") from e
    logger.debug("Saved image to: %s", saved)
    return saved


async def load_image_source(source: ImageSource, client: httpx.AsyncClient) -> str:
    """Turn an edit job's image source into a data URL the edit endpoint accepts."""
    if source.kind == "base64":
        return f"data:image/jpeg;base64,{source.value}"

    if source.kind == "path":
        path = Path(source.value).expanduser()
        if not path.is_absolute():
            path = Path.cwd() / path
        logger.debug("Reading image from: %s", path)
        try:
            data = await asyncio.to_thread(path.read_bytes)
        except OSError as e:
            raise LocalError(f"Failed to read image file: {e}") from e
        logger.debug("Image loaded: %d bytes", len(data))
        return f"data:image/jpeg;base64,{base64.b64encode(data).decode('ascii')}"

    if source.value.startswith("data:"):
        return source.value
    logger.debug("Downloading source image from: %s", source.value)
    try:
        response = await client.get(source.value)
        response.raise_for_status()
    except httpx.HTTPStatusError as e:
        raise LocalError(
            f"Failed to download image from URL: HTTP {e.response.status_code}"
        ) from e
    except httpx.HTTPError as e:
        raise LocalError(f"Failed to download image from URL: {e}") from e
    logger.debug("Image downloaded: %d bytes", len(response.content))
    return f"data:image/jpeg;base64,{base64.b64encode(response.content).decode('ascii')}"
