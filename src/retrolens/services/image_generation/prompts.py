"""Prompt templates for era-styled portraits.

Every prompt is a pure function of the generation style and the era label, so
nothing here is cached or stateful.
"""

import re
from typing import Optional

from retrolens.models.job import GenerationStyle

ERAS: tuple[str, ...] = ("1950 ler", "1960 lar", "1970 ler", "1980 ler", "1990 lar", "2000 ler")

# Only eras written with the "ler" suffix are recognised; "1960 lar" and
# "1990 lar" have no fallback prompt.
ERA_TOKEN_PATTERN = re.compile(r"(19\d{2}\sler|2000\sler)")

MAX_PROMPT_LENGTH = 2000

_TEMPLATES: dict[GenerationStyle, str] = {
    GenerationStyle.STRICT: (
        "Reimagine the person in this photo in the style of the {era}. It is crucial to "
        "maintain the person's core facial features and identity as closely as possible. "
        "This includes clothing, hairstyle, photo quality, and the overall aesthetic of that "
        "decade. The output must be a photorealistic image showing the person clearly."
    ),
    GenerationStyle.CREATIVE: (
        "Take creative inspiration from the person in this photo to create a new portrait in "
        "the style of the {era}. The new image should reflect the fashion, hairstyles, and "
        "overall atmosphere of that era, with artistic freedom to reinterpret the person's "
        "appearance. The output must be a photorealistic image."
    ),
    GenerationStyle.TURKISH: (
        'Reimagine the person in this photo in the style of the {era} in Turkey, with a '
        '"Turkish style". Incorporate authentic Turkish fashion, hairstyles, and aesthetics '
        "from that era. Think about Turkish Yeşilçam movies, popular musicians like Barış "
        "Manço or Ajda Pekkan, and everyday life in Turkey during the {era}. Maintain the "
        "person's core facial features but place them convincingly into a Turkish context of "
        "the time. The output must be a photorealistic image showing the person clearly."
    ),
}

_FALLBACK_TEMPLATE = (
    "Create a photograph of the person in this image as if they were living in the {era}. "
    "The photograph should capture the distinct fashion, hairstyles, and overall atmosphere "
    "of that time period. Ensure the final image is a clear photograph that looks authentic "
    "to the era."
)


def build_prompt(style: GenerationStyle | str, era: str) -> str:
    """Return the primary prompt for ``era`` in the given style.

    Raises:
        ValueError: If style is not a known GenerationStyle
    """
    return _TEMPLATES[GenerationStyle(style)].format(era=era)


def build_fallback_prompt(era: str) -> str:
    """Less restrictive prompt used after the primary prompt was refused."""
    return _FALLBACK_TEMPLATE.format(era=era)


def extract_era(prompt: str) -> Optional[str]:
    """Return the first era token embedded in ``prompt``, or None."""
    match = ERA_TOKEN_PATTERN.search(prompt)
    return match.group(0) if match else None


def validate_prompt(prompt: str) -> str:
    """Validate prompt text for image generation.

    Args:
        prompt: Text prompt sent alongside the source image

    Returns:
        Validated prompt (unchanged if valid)

    Raises:
        ValueError: If prompt is empty, not a string, or too long
    """
    if not prompt:
        raise ValueError("Prompt cannot be empty or None")

    if not isinstance(prompt, str):
        raise ValueError(f"Prompt must be a string, got {type(prompt).__name__}")

    if len(prompt) > MAX_PROMPT_LENGTH:
        raise ValueError(
            f"Prompt exceeds maximum length of {MAX_PROMPT_LENGTH} characters (got {len(prompt)})"
        )

    return prompt
