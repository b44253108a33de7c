"""xAI Grok Imagine implementation of the Image Operation, via the OpenAI-compatible SDK."""

from __future__ import annotations

import logging
from typing import Any, Sequence

import httpx
from openai import (
    APIConnectionError,
    APIStatusError,
    APITimeoutError,
    AsyncOpenAI,
    OpenAIError,
)
from openai.types import Image, ImagesResponse

from gib.errors import LocalError, RemoteError
from gib.images.base import EditRequest, GenerateRequest, ImageResult
from gib.images.storage import (
    download_and_save_image,
    load_image_source,
    numbered_path,
    save_base64_image,
    unique_file_path,
)
from gib.schemas.models import DEFAULT_MODEL

logger = logging.getLogger(__name__)

XAI_BASE_URL = "https://api.x.ai/v1"


def _api_message(e: APIStatusError) -> str:
    body = e.body
    if isinstance(body, dict):
        err = body.get("error", body)
        if isinstance(err, dict) and err.get("message"):
            return str(err["message"])
        if isinstance(err, str) and err:
            return err
    return e.message or f"HTTP {e.status_code}"


def to_remote_error(e: OpenAIError) -> RemoteError:
    """Map an SDK exception to a RemoteError whose text the retry patterns can match."""
    if isinstance(e, APITimeoutError):
        return RemoteError("API request timeout. Please try again.")
    if isinstance(e, APIConnectionError):
        return RemoteError(f"Connection error: {e}")
    if isinstance(e, APIStatusError):
        status = e.status_code
        message = _api_message(e)
        if status == 401:
            return RemoteError(
                "Authentication failed. Please check your XAI_API_KEY environment variable.", status
            )
        if status == 403:
            return RemoteError("Access denied. Please check your API key permissions.", status)
        if status == 400:
            return RemoteError(f"Bad request: {message}", status)
        if status == 429:
            return RemoteError("Rate limit exceeded (429). Please wait and try again.", status)
        return RemoteError(f"API error ({status}): {message}", status)
    return RemoteError(str(e))


class XAIImageProvider:
    """Generate and edit images with xAI and save every returned image to disk.

    The SDK's own retries are disabled; retrying is the batch engine's job.
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str = XAI_BASE_URL,
        timeout: float = 120.0,
        client: AsyncOpenAI | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        self._client = client or AsyncOpenAI(
            api_key=api_key, base_url=base_url, timeout=timeout, max_retries=0
        )
        self._http = http_client or httpx.AsyncClient(follow_redirects=True, timeout=timeout)

    async def close(self) -> None:
        await self._http.aclose()
        await self._client.close()

    async def __aenter__(self) -> "XAIImageProvider":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def generate(self, request: GenerateRequest) -> ImageResult:
        logger.debug(
            "Generate image: model=%s n=%d aspect_ratio=%s resolution=%s",
            request.model,
            request.n,
            request.aspect_ratio,
            request.resolution,
        )
        try:
            response = await self._client.images.generate(
                model=request.model,
                prompt=request.prompt,
                n=request.n,
                response_format="b64_json",
                extra_body={
                    "aspect_ratio": request.aspect_ratio,
                    "resolution": request.resolution,
                },
            )
        except OpenAIError as e:
            logger.debug("API error: %r", e)
            raise to_remote_error(e) from e
        return await self._save_all(response.data, request.output_path, request.n)

    async def edit(self, request: EditRequest) -> ImageResult:
        if request.model != DEFAULT_MODEL:
            raise LocalError(
                f"Image editing is only supported by {DEFAULT_MODEL} model. Got: {request.model}"
            )
        logger.debug(
            "Edit image: model=%s n=%d resolution=%s source=%s",
            request.model,
            request.n,
            request.resolution,
            request.image_source.kind,
        )
        image_url = await load_image_source(request.image_source, self._http)
        body: dict[str, Any] = {
            "model": request.model,
            "prompt": request.prompt,
            "image": {"url": image_url},
            "n": request.n,
            "resolution": request.resolution,
            "response_format": "b64_json",
        }
        try:
            response = await self._client.post("/images/edits", cast_to=ImagesResponse, body=body)
        except OpenAIError as e:
            logger.debug("API error: %r", e)
            raise to_remote_error(e) from e
        return await self._save_all(response.data, request.output_path, request.n)

    async def _save_all(
        self, data: Sequence[Image] | None, output_path: str, n: int
    ) -> ImageResult:
        if not data:
            raise RemoteError("No image data returned from API")
        logger.debug("Received %d image(s) from API", len(data))

        count = max(n, len(data))
        base_path = unique_file_path(output_path, count)
        result = ImageResult()
        for i, item in enumerate(data, start=1):
            if item.revised_prompt and result.revised_prompt is None:
                result.revised_prompt = item.revised_prompt
            image_path = numbered_path(base_path, i, count)
            if item.b64_json:
                saved = await save_base64_image(item.b64_json, image_path)
            elif item.url:
                saved = await download_and_save_image(self._http, item.url, image_path)
            else:
                raise RemoteError(f"No image data (url or b64_json) in response for image {i}")
            result.saved_paths.append(saved)
        return result
