"""Tests for the xAI image provider and image storage helpers (no network)."""

import asyncio
import base64
from unittest.mock import AsyncMock, MagicMock

import httpx
import openai
import pytest
from openai.types import Image, ImagesResponse

from gib.errors import LocalError, RemoteError
from gib.images.base import EditRequest, GenerateRequest
from gib.images.storage import load_image_source, numbered_path, save_base64_image, unique_file_path
from gib.images.xai_provider import XAIImageProvider, to_remote_error
from gib.schemas.models import ImageSource

PNG_BYTES = b"\x89PNG fake image bytes"
PNG_B64 = base64.b64encode(PNG_BYTES).decode("ascii")
API_URL = "https://api.x.ai/v1/images/generations"


def _response(*images):
    return ImagesResponse(created=1700000000, data=list(images))


def _status_error(cls, status, body=None):
    response = httpx.Response(status, request=httpx.Request("POST", API_URL))
    return cls("error", response=response, body=body)


def _http_client(routes):
    def handler(request):
        if str(request.url) in routes:
            return routes[str(request.url)]
        return httpx.Response(404)

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.fixture
def sdk_client():
    client = MagicMock()
    client.images.generate = AsyncMock()
    client.post = AsyncMock()
    client.close = AsyncMock()
    return client


# ── Error mapping ────────────────────────────────────────────────────────

@pytest.mark.parametrize(
    "cls, status, expected",
    [
        (openai.AuthenticationError, 401, "Authentication failed"),
        (openai.PermissionDeniedError, 403, "Access denied"),
        (openai.BadRequestError, 400, "Bad request: prompt rejected"),
        (openai.RateLimitError, 429, "Rate limit exceeded (429)"),
        (openai.InternalServerError, 503, "API error (503): prompt rejected"),
    ],
)
def test_status_errors_are_mapped(cls, status, expected):
    err = to_remote_error(_status_error(cls, status, {"error": {"message": "prompt rejected"}}))
    assert isinstance(err, RemoteError)
    assert err.status == status
    assert err.message.startswith(expected)


def test_timeout_and_connection_errors_are_mapped():
    request = httpx.Request("POST", API_URL)
    timeout = to_remote_error(openai.APITimeoutError(request=request))
    assert timeout.message == "API request timeout. Please try again."
    assert timeout.status is None
    connection = to_remote_error(openai.APIConnectionError(message="refused", request=request))
    assert connection.message.startswith("Connection error:")


def test_error_body_as_plain_string():
    err = to_remote_error(_status_error(openai.BadRequestError, 400, {"error": "bad size"}))
    assert err.message == "Bad request: bad size"


# ── Storage helpers ──────────────────────────────────────────────────────

def test_numbered_path():
    assert numbered_path("/out/a.jpg", 1, 1) == "/out/a.jpg"
    assert numbered_path("/out/a.jpg", 2, 3) == "/out/a_2.jpg"


def test_unique_file_path(tmp_path):
    target = tmp_path / "a.jpg"
    assert unique_file_path(str(target)) == str(target)
    target.write_bytes(b"x")
    (tmp_path / "a_1.jpg").write_bytes(b"x")
    assert unique_file_path(str(target)) == str(tmp_path / "a_2.jpg")


def test_unique_file_path_checks_numbered_variants(tmp_path):
    (tmp_path / "two_2.png").write_bytes(b"x")
    base = str(tmp_path / "two.png")
    assert unique_file_path(base, count=1) == base
    assert unique_file_path(base, count=2) == str(tmp_path / "two_1.png")
    (tmp_path / "two_1_1.png").write_bytes(b"x")
    assert unique_file_path(base, count=2) == str(tmp_path / "two_2.png")


@pytest.mark.asyncio
async def test_save_base64_image_never_replaces_a_file(tmp_path):
    target = tmp_path / "img.png"
    target.write_bytes(b"KEEP ME")

    saved = await save_base64_image(PNG_B64, str(target))

    assert saved == str(tmp_path / "img_1.png")
    assert target.read_bytes() == b"KEEP ME"
    assert (tmp_path / "img_1.png").read_bytes() == PNG_BYTES


@pytest.mark.asyncio
async def test_save_base64_image_creates_parent_dirs(tmp_path):
    target = tmp_path / "nested" / "dir" / "img.png"
    await save_base64_image(PNG_B64, str(target))
    assert target.read_bytes() == PNG_BYTES


@pytest.mark.asyncio
async def test_load_image_source_kinds(tmp_path):
    source_file = tmp_path / "in.png"
    source_file.write_bytes(PNG_BYTES)
    expected = f"data:image/jpeg;base64,{PNG_B64}"

    async with _http_client({"https://img.example/in.png": httpx.Response(200, content=PNG_BYTES)}) as http:
        assert await load_image_source(ImageSource(kind="path", value=str(source_file)), http) == expected
        assert await load_image_source(ImageSource(kind="base64", value=PNG_B64), http) == expected
        assert await load_image_source(ImageSource(kind="url", value="https://img.example/in.png"), http) == expected
        data_url = "data:image/png;base64,AAAA"
        assert await load_image_source(ImageSource(kind="url", value=data_url), http) == data_url


@pytest.mark.asyncio
async def test_load_image_source_failures(tmp_path):
    async with _http_client({}) as http:
        with pytest.raises(LocalError, match="Failed to read image file"):
            await load_image_source(ImageSource(kind="path", value=str(tmp_path / "missing.png")), http)
        with pytest.raises(LocalError, match="Failed to download image from URL: HTTP 404"):
            await load_image_source(ImageSource(kind="url", value="https://img.example/gone.png"), http)


# ── Provider ─────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_generate_saves_every_image(tmp_path, sdk_client):
    sdk_client.images.generate.return_value = _response(
        Image(b64_json=PNG_B64, revised_prompt="a vivid sunset"),
        Image(b64_json=PNG_B64),
    )
    provider = XAIImageProvider(client=sdk_client, http_client=_http_client({}))
    request = GenerateRequest(prompt="sunset", output_path=str(tmp_path / "sun.jpg"), n=2, aspect_ratio="16:9")

    result = await provider.generate(request)
    await provider.close()

    assert result.saved_paths == [str(tmp_path / "sun_1.jpg"), str(tmp_path / "sun_2.jpg")]
    assert result.revised_prompt == "a vivid sunset"
    assert (tmp_path / "sun_2.jpg").read_bytes() == PNG_BYTES
    kwargs = sdk_client.images.generate.call_args.kwargs
    assert kwargs["model"] == "grok-imagine-image"
    assert kwargs["n"] == 2
    assert kwargs["extra_body"] == {"aspect_ratio": "16:9", "resolution": "1k"}
    sdk_client.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_generate_downloads_url_results(tmp_path, sdk_client):
    sdk_client.images.generate.return_value = _response(Image(url="https://cdn.example/1.jpg"))
    http = _http_client({"https://cdn.example/1.jpg": httpx.Response(200, content=PNG_BYTES)})
    provider = XAIImageProvider(client=sdk_client, http_client=http)

    result = await provider.generate(GenerateRequest(prompt="p", output_path=str(tmp_path / "one.jpg")))

    assert result.saved_paths == [str(tmp_path / "one.jpg")]
    assert (tmp_path / "one.jpg").read_bytes() == PNG_BYTES
    await http.aclose()


@pytest.mark.asyncio
async def test_generate_does_not_overwrite_existing_file(tmp_path, sdk_client):
    (tmp_path / "one.jpg").write_bytes(b"old")
    sdk_client.images.generate.return_value = _response(Image(b64_json=PNG_B64))
    provider = XAIImageProvider(client=sdk_client, http_client=_http_client({}))

    result = await provider.generate(GenerateRequest(prompt="p", output_path=str(tmp_path / "one.jpg")))

    assert result.saved_paths == [str(tmp_path / "one_1.jpg")]
    assert (tmp_path / "one.jpg").read_bytes() == b"old"


@pytest.mark.asyncio
async def test_generate_keeps_existing_numbered_files(tmp_path, sdk_client):
    (tmp_path / "two_1.png").write_bytes(b"KEEP ME")
    sdk_client.images.generate.return_value = _response(Image(b64_json=PNG_B64), Image(b64_json=PNG_B64))
    provider = XAIImageProvider(client=sdk_client, http_client=_http_client({}))

    result = await provider.generate(GenerateRequest(prompt="p", output_path=str(tmp_path / "two.png"), n=2))

    assert (tmp_path / "two_1.png").read_bytes() == b"KEEP ME"
    assert result.saved_paths == [str(tmp_path / "two_1_1.png"), str(tmp_path / "two_1_2.png")]
    assert all((tmp_path / name).read_bytes() == PNG_BYTES for name in ("two_1_1.png", "two_1_2.png"))


@pytest.mark.asyncio
async def test_concurrent_jobs_with_same_output_path_keep_both_images(tmp_path, sdk_client):
    sdk_client.images.generate.return_value = _response(Image(b64_json=PNG_B64))
    provider = XAIImageProvider(client=sdk_client, http_client=_http_client({}))
    request = GenerateRequest(prompt="p", output_path=str(tmp_path / "same.jpg"))

    first, second = await asyncio.gather(provider.generate(request), provider.generate(request))

    paths = first.saved_paths + second.saved_paths
    assert sorted(paths) == [str(tmp_path / "same.jpg"), str(tmp_path / "same_1.jpg")]
    assert sorted(p.name for p in tmp_path.iterdir()) == ["same.jpg", "same_1.jpg"]


@pytest.mark.asyncio
async def test_generate_maps_sdk_errors(tmp_path, sdk_client):
    sdk_client.images.generate.side_effect = _status_error(openai.RateLimitError, 429)
    provider = XAIImageProvider(client=sdk_client, http_client=_http_client({}))

    with pytest.raises(RemoteError, match=r"\(429\)"):
        await provider.generate(GenerateRequest(prompt="p", output_path=str(tmp_path / "x.jpg")))


@pytest.mark.asyncio
async def test_empty_response_is_an_error(tmp_path, sdk_client):
    sdk_client.images.generate.return_value = _response()
    provider = XAIImageProvider(client=sdk_client, http_client=_http_client({}))

    with pytest.raises(RemoteError, match="No image data returned from API"):
        await provider.generate(GenerateRequest(prompt="p", output_path=str(tmp_path / "x.jpg")))


@pytest.mark.asyncio
async def test_edit_posts_data_url(tmp_path, sdk_client):
    sdk_client.post.return_value = _response(Image(b64_json=PNG_B64))
    provider = XAIImageProvider(client=sdk_client, http_client=_http_client({}))
    request = EditRequest(
        prompt="make it night",
        image_source=ImageSource(kind="base64", value=PNG_B64),
        output_path=str(tmp_path / "edited.jpg"),
    )

    result = await provider.edit(request)

    assert result.saved_paths == [str(tmp_path / "edited.jpg")]
    path = sdk_client.post.call_args.args[0]
    body = sdk_client.post.call_args.kwargs["body"]
    assert path == "/images/edits"
    assert body["image"] == {"url": f"data:image/jpeg;base64,{PNG_B64}"}
    assert body["prompt"] == "make it night"
    assert "aspect_ratio" not in body


@pytest.mark.asyncio
async def test_edit_rejects_other_models(tmp_path, sdk_client):
    provider = XAIImageProvider(client=sdk_client, http_client=_http_client({}))
    request = EditRequest(
        prompt="p",
        image_source=ImageSource(kind="base64", value=PNG_B64),
        output_path=str(tmp_path / "e.jpg"),
        model="grok-2-image",
    )
    with pytest.raises(LocalError, match="only supported by grok-imagine-image"):
        await provider.edit(request)
    sdk_client.post.assert_not_awaited()
