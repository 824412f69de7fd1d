"""Extract the generated image from a Gemini response.

A response without an inline image is a refusal, not a transport error:
it raises NoImageReturned so the caller can try the fallback prompt.
"""

import base64
from typing import Any

import structlog

from retrolens.services.exceptions import NoImageReturned

logger = structlog.get_logger(__name__)

NO_TEXT_PLACEHOLDER = "No text response was received."


def _candidate_parts(response: Any) -> list[Any]:
    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        return []
    content = getattr(candidates[0], "content", None)
    return list(getattr(content, "parts", None) or [])


def _reply_text(parts: list[Any]) -> str:
    return "".join(part.text for part in parts if getattr(part, "text", None))


def to_data_url(mime_type: str, data: bytes | str) -> str:
    """Build a displayable ``data:`` URL from inline image data.

    The SDK returns raw bytes; already-encoded strings are used as-is.
    """
    if isinstance(data, bytes):
        encoded = base64.b64encode(data).decode("ascii")
    else:
        encoded = data
    return f"data:{mime_type};base64,{encoded}"


def extract_image(response: Any) -> str:
    """Return the first inline image of ``response`` as a data URL.

    Args:
        response: GenerateContentResponse (or any object with the same shape)

    Returns:
        ``data:<mime_type>;base64,<data>`` URL

    Raises:
        NoImageReturned: If no part carries inline image data
    """
    parts = _candidate_parts(response)

    for part in parts:
        inline_data = getattr(part, "inline_data", None)
        if inline_data is not None and getattr(inline_data, "data", None):
            mime_type = getattr(inline_data, "mime_type", None) or "image/png"
            return to_data_url(mime_type, inline_data.data)

    reply_text = _reply_text(parts)
    logger.warning("generation.refused", reply_text=reply_text)
    raise NoImageReturned(reply_text or NO_TEXT_PLACEHOLDER)
