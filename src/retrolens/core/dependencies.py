"""Wiring of the generation stack from application settings."""

from typing import Optional

from retrolens.core.config import Settings
from retrolens.services.image_generation.gemini_client import GeminiImageBackend, ImageBackend
from retrolens.services.image_generation.retrying_client import RetryingImageClient
from retrolens.workers.batch_scheduler import GenerationSession


def build_generation_session(
    settings: Settings, backend: Optional[ImageBackend] = None
) -> GenerationSession:
    """Create a GenerationSession backed by Gemini (or the given backend).

    Args:
        settings: Application settings (API key, retry policy, concurrency)
        backend: Backend override, mainly for tests

    Returns:
        A fresh session with no source image
    """
    if backend is None:
        backend = GeminiImageBackend(api_key=settings.gemini_api_key, model=settings.gemini_model)

    client = RetryingImageClient(
        backend,
        max_attempts=settings.max_attempts,
        initial_delay=settings.retry_initial_delay_seconds,
    )
    return GenerationSession(
        client,
        concurrency=settings.batch_concurrency,
        style=settings.default_style,
    )
