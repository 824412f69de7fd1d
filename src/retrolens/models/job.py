"""Generation job entities - source image, per-era jobs and their lifecycle records."""

import base64
import re
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from retrolens.services.exceptions import ErrorKind, InvalidImageDataError

DATA_URL_PATTERN = re.compile(r"^data:(image/\w+);base64,(.*)$", re.DOTALL)


class JobStatus(str, Enum):
    """Job lifecycle status."""

    PENDING = "pending"
    DONE = "done"
    ERROR = "error"


class FeedbackMark(str, Enum):
    """User annotation on a finished job."""

    LIKE = "like"
    DISLIKE = "dislike"
    NONE = "none"


class GenerationStyle(str, Enum):
    """Prompt family used for every job of a batch."""

    STRICT = "strict"
    CREATIVE = "creative"
    TURKISH = "turkish"


class InvalidStateTransition(Exception):
    """Raised when attempting an invalid job state transition."""

    pass


class SourceImage(BaseModel):
    """Photo every job of a session is generated from."""

    model_config = ConfigDict(frozen=True)

    mime_type: str
    data: bytes

    @classmethod
    def from_data_url(cls, data_url: str) -> "SourceImage":
        """Decode a ``data:image/<type>;base64,<payload>`` URL.

        Raises:
            InvalidImageDataError: If the URL is not a base64 image data URL
        """
        match = DATA_URL_PATTERN.match(data_url or "")
        if not match:
            raise InvalidImageDataError(
                "Invalid image data URL format. Expected 'data:image/...;base64,...'"
            )
        mime_type, payload = match.groups()
        try:
            data = base64.b64decode(payload, validate=True)
        except ValueError as e:
            raise InvalidImageDataError(f"Image data is not valid base64: {e}") from e
        return cls(mime_type=mime_type, data=data)


class GenerationJob(BaseModel):
    """One request to transform the source image into one era-styled variant."""

    model_config = ConfigDict(frozen=True)

    label: str
    prompt: str
    image: SourceImage


class JobRecord(BaseModel):
    """Latest known state of one job, as shown to the display collaborator.

    A record keeps its previous image/error while a new attempt is pending,
    which lets callers render a "regenerating" card.
    """

    label: str
    status: Optional[JobStatus] = None
    image_url: Optional[str] = None
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    feedback: FeedbackMark = FeedbackMark.NONE

    @property
    def regenerating(self) -> bool:
        """True while a new attempt runs on top of an earlier result."""
        return self.status == JobStatus.PENDING and (
            self.image_url is not None or self.error is not None
        )

    def mark_pending(self) -> None:
        """Transition into pending for a new attempt.

        Raises:
            InvalidStateTransition: If an attempt is already outstanding
        """
        if self.status == JobStatus.PENDING:
            raise InvalidStateTransition(
                f"Cannot start a new attempt for {self.label}: an attempt is already pending."
            )
        self.status = JobStatus.PENDING

    def mark_done(self, image_url: str) -> None:
        """Transition from pending to done.

        Raises:
            InvalidStateTransition: If current status is not pending
            ValueError: If image_url is empty
        """
        if self.status != JobStatus.PENDING:
            raise InvalidStateTransition(
                f"Cannot mark done from {self._status_name()}. Job must be in pending state."
            )
        if not image_url:
            raise ValueError("image_url is required")
        self.image_url = image_url
        self.error = None
        self.error_kind = None
        self.status = JobStatus.DONE

    def mark_failed(self, message: str, kind: ErrorKind = ErrorKind.OTHER) -> None:
        """Transition from pending to error.

        Raises:
            InvalidStateTransition: If current status is not pending
        """
        if self.status != JobStatus.PENDING:
            raise InvalidStateTransition(
                f"Cannot mark failed from {self._status_name()}. Job must be in pending state."
            )
        self.image_url = None
        self.error = message
        self.error_kind = kind
        self.status = JobStatus.ERROR

    def toggle_feedback(self, mark: FeedbackMark) -> FeedbackMark:
        """Set ``mark``, or clear it when the same mark is toggled again."""
        if mark == FeedbackMark.NONE or self.feedback == mark:
            self.feedback = FeedbackMark.NONE
        else:
            self.feedback = mark
        return self.feedback

    def _status_name(self) -> str:
        return self.status.value if self.status else "new"


class JobView(BaseModel):
    """Read-only per-job output for the display layer."""

    label: str
    status: Optional[JobStatus] = Field(default=None, description="None until the first attempt")
    image_url: Optional[str] = None
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    regenerating: bool = False
    can_retry: bool = Field(
        default=False,
        description="False for quota errors and whenever the session is halted",
    )
    feedback: FeedbackMark = FeedbackMark.NONE
