"""Service error hierarchy for image generation and session scheduling.

This module defines the exception hierarchy for service-level errors:
- GenerationError: Base for every failed generation attempt (normalized message + kind)
- NoImageReturned: The model answered with text instead of an image
- TransientInternalError: Server-side fault, eligible for retry with backoff
- QuotaExhaustedError: Quota exhausted, permanent for the session
- SessionError: Requests the generation session refuses to carry out
"""

from enum import Enum


class ErrorKind(str, Enum):
    """Classification tag attached to every failed generation."""

    NO_IMAGE = "no_image"
    TRANSIENT_INTERNAL = "transient_internal"
    QUOTA_EXHAUSTED = "quota_exhausted"
    OTHER = "other"


class GenerationError(Exception):
    """Base class for classified generation failures.

    The exception message is always the normalized, user-facing text.
    """

    kind: ErrorKind = ErrorKind.OTHER

    def __init__(self, message: str, kind: ErrorKind | None = None):
        super().__init__(message)
        self.message = message
        if kind is not None:
            self.kind = kind


class NoImageReturned(GenerationError):
    """The backend declined to produce an image and replied with text.

    Recoverable once through the fallback prompt.
    """

    kind = ErrorKind.NO_IMAGE

    def __init__(self, reply_text: str):
        self.reply_text = reply_text
        super().__init__(f'The AI replied with text instead of an image: "{reply_text}"')


class TransientInternalError(GenerationError):
    """Internal server fault (code 500 / INTERNAL), retried with exponential backoff."""

    kind = ErrorKind.TRANSIENT_INTERNAL


class QuotaExhaustedError(GenerationError):
    """Quota exhausted (RESOURCE_EXHAUSTED / 429). Never retried."""

    kind = ErrorKind.QUOTA_EXHAUSTED


class InvalidImageDataError(ValueError):
    """Source image is not a base64 image data URL."""

    pass


# Session-specific errors
class SessionError(Exception):
    """Base exception for requests the generation session refuses."""

    pass


class SessionHaltedError(SessionError):
    """Quota exhaustion halted the session; reset it before starting again."""

    pass


class BatchInProgressError(SessionError):
    """A batch is already running for this session."""

    pass


class MissingSourceImageError(SessionError):
    """No source image has been provided for this session."""

    pass


class UnknownJobError(SessionError):
    """Job label is not part of this session's batch."""

    pass
