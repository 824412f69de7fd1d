"""Backend calls with bounded exponential-backoff retry for internal faults."""

import asyncio
from typing import Any, Awaitable, Callable

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from retrolens.models.job import SourceImage
from retrolens.services.exceptions import GenerationError, TransientInternalError
from retrolens.services.image_generation.error_normalizer import (
    ALL_ATTEMPTS_FAILED,
    classify_error,
)
from retrolens.services.image_generation.gemini_client import ImageBackend

logger = structlog.get_logger(__name__)

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_INITIAL_DELAY_SECONDS = 1.0


def _log_retry(retry_state: RetryCallState) -> None:
    error = retry_state.outcome.exception() if retry_state.outcome else None
    logger.info(
        "generation.retry_scheduled",
        attempt_number=retry_state.attempt_number,
        delay_seconds=retry_state.next_action.sleep if retry_state.next_action else None,
        error_message=str(error),
    )


class RetryingImageClient:
    """Wrap an ImageBackend so internal server faults are retried.

    Attempt ``n`` that fails with an internal fault waits
    ``initial_delay * 2 ** (n - 1)`` seconds before attempt ``n + 1``. Quota
    and unclassified errors are raised on the first failure. The raw
    response of a successful call is returned unchanged.
    """

    def __init__(
        self,
        backend: ImageBackend,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        initial_delay: float = DEFAULT_INITIAL_DELAY_SECONDS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.backend = backend
        self.max_attempts = max_attempts
        self.initial_delay = initial_delay
        self._sleep = sleep

    async def call(self, image: SourceImage, prompt: str) -> Any:
        """Invoke the backend, retrying internal faults.

        Raises:
            GenerationError: Normalized final error (QuotaExhaustedError,
                TransientInternalError or plain GenerationError)
        """
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.initial_delay, exp_base=2),
            retry=retry_if_exception_type(TransientInternalError),
            before_sleep=_log_retry,
            sleep=self._sleep,
            reraise=True,
        )

        async for attempt in retrying:
            with attempt:
                try:
                    return await self.backend.generate_content(image, prompt)
                except Exception as e:
                    classified = classify_error(e)
                    logger.warning(
                        "generation.attempt_failed",
                        attempt_number=attempt.retry_state.attempt_number,
                        max_attempts=self.max_attempts,
                        error_kind=classified.kind.value,
                        error_message=classified.message,
                    )
                    if classified is e:
                        raise
                    raise classified from e

        # Every path above returns or raises.
        raise GenerationError(ALL_ATTEMPTS_FAILED)
