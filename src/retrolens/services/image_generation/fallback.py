"""Era image generation with a one-shot fallback prompt for refusals."""

import structlog

from retrolens.models.job import SourceImage
from retrolens.services.exceptions import GenerationError, NoImageReturned
from retrolens.services.image_generation.prompts import (
    build_fallback_prompt,
    extract_era,
    validate_prompt,
)
from retrolens.services.image_generation.response_classifier import extract_image
from retrolens.services.image_generation.retrying_client import RetryingImageClient

logger = structlog.get_logger(__name__)

FALLBACK_FAILED_PREFIX = "The AI failed with both the original and the fallback prompt."


async def generate_era_image(client: RetryingImageClient, image: SourceImage, prompt: str) -> str:
    """Generate an era-styled image, retrying a refused prompt once with a fallback.

    Workflow:
    1. Call the backend with the primary prompt and extract the image
    2. On NoImageReturned, extract the era token from the prompt
       - No era token: re-raise the original refusal
    3. Call the backend once more with the generic fallback prompt for that era
    4. Any failure of the fallback is wrapped with FALLBACK_FAILED_PREFIX

    Errors other than a refusal (quota, exhausted internal retries, anything
    unclassified) propagate unchanged and never trigger the fallback.

    Args:
        client: Retrying backend client
        image: Source photo
        prompt: Primary prompt, expected to embed an era token

    Returns:
        ``data:`` URL of the generated image

    Raises:
        GenerationError: Normalized failure of the primary or fallback attempt
        ValueError: If the primary prompt fails validation
    """
    prompt = validate_prompt(prompt)

    try:
        logger.debug("generation.primary_started")
        response = await client.call(image, prompt)
        return extract_image(response)
    except NoImageReturned as refusal:
        era = extract_era(prompt)
        if era is None:
            logger.error("generation.fallback_unavailable", reason="no_era_token")
            raise

        logger.warning("generation.fallback_started", era=era, reply_text=refusal.reply_text)

    try:
        response = await client.call(image, build_fallback_prompt(era))
        return extract_image(response)
    except GenerationError as fallback_error:
        logger.error(
            "generation.fallback_failed",
            era=era,
            error_kind=fallback_error.kind.value,
            error_message=fallback_error.message,
        )
        raise GenerationError(
            f"{FALLBACK_FAILED_PREFIX} Last error: {fallback_error.message}",
            kind=fallback_error.kind,
        ) from fallback_error
