"""Gemini API client for image-to-image generation."""

from typing import Any, Protocol

from google import genai
from google.genai import types

from retrolens.models.job import SourceImage

DEFAULT_MODEL = "gemini-2.5-flash-image"

# Creative edits of human faces trip the default filters far too often.
SAFETY_SETTINGS = [
    types.SafetySetting(
        category=types.HarmCategory.HARM_CATEGORY_HARASSMENT,
        threshold=types.HarmBlockThreshold.BLOCK_NONE,
    ),
    types.SafetySetting(
        category=types.HarmCategory.HARM_CATEGORY_HATE_SPEECH,
        threshold=types.HarmBlockThreshold.BLOCK_NONE,
    ),
    types.SafetySetting(
        category=types.HarmCategory.HARM_CATEGORY_SEXUALLY_EXPLICIT,
        threshold=types.HarmBlockThreshold.BLOCK_NONE,
    ),
    types.SafetySetting(
        category=types.HarmCategory.HARM_CATEGORY_DANGEROUS_CONTENT,
        threshold=types.HarmBlockThreshold.BLOCK_NONE,
    ),
]


class ImageBackend(Protocol):
    """Anything that turns a source image and a prompt into a raw model response."""

    async def generate_content(self, image: SourceImage, prompt: str) -> Any: ...


class GeminiImageBackend:
    """Calls ``models.generate_content`` with an image-only response modality.

    Errors from the SDK are propagated untouched; classification happens in
    the retrying client.
    """

    def __init__(self, api_key: str, model: str = DEFAULT_MODEL, client: Any = None):
        if not api_key and client is None:
            raise ValueError("GEMINI_API_KEY not configured")
        self.model = model
        self._client = client or genai.Client(api_key=api_key)

    @staticmethod
    def build_config() -> types.GenerateContentConfig:
        return types.GenerateContentConfig(
            response_modalities=[types.Modality.IMAGE],
            safety_settings=SAFETY_SETTINGS,
        )

    async def generate_content(
        self, image: SourceImage, prompt: str
    ) -> types.GenerateContentResponse:
        image_part = types.Part.from_bytes(data=image.data, mime_type=image.mime_type)
        return await self._client.aio.models.generate_content(
            model=self.model,
            contents=[image_part, prompt],
            config=self.build_config(),
        )
