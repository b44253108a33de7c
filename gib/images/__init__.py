"""Image Operation layer: the xAI provider behind a common protocol."""

from gib.config import Settings, get_settings
from gib.images.base import EditRequest, GenerateRequest, ImageOperation, ImageResult
from gib.images.xai_provider import XAIImageProvider


def get_provider(settings: Settings | None = None) -> XAIImageProvider:
    """Return the xAI provider configured from settings (XAI_API_KEY, XAI_BASE_URL)."""
    settings = settings or get_settings()
    return XAIImageProvider(
        api_key=settings.xai_api_key,
        base_url=settings.xai_base_url,
        timeout=settings.gib_request_timeout_seconds,
    )


__all__ = [
    "EditRequest",
    "GenerateRequest",
    "ImageOperation",
    "ImageResult",
    "XAIImageProvider",
    "get_provider",
]
