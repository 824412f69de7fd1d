"""Generation session API endpoints.

This module implements the REST surface the display layer drives:
- GET /api/session - Current per-job status, image and error for every era
- PUT /api/session/image - Upload the source photo as a data URL
- PUT /api/session/style - Choose the prompt style for the next batch
- POST /api/session/batch - Start generating all eras in the background
- POST /api/session/jobs/{label}/regenerate - Retry a single era
- POST /api/session/jobs/{label}/feedback - Toggle like/dislike on a result
- DELETE /api/session - Reset the session (clears results and the quota halt)
"""

from typing import Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from retrolens.api.dependencies import get_session
from retrolens.models.job import FeedbackMark, GenerationStyle, JobView, SourceImage
from retrolens.services.exceptions import (
    InvalidImageDataError,
    SessionError,
    UnknownJobError,
)
from retrolens.workers.batch_scheduler import GenerationSession

logger = structlog.get_logger()
router = APIRouter(prefix="/api/session", tags=["session"])


# Request/Response Models


class SessionResponse(BaseModel):
    """Snapshot of the whole session."""

    has_source_image: bool
    style: GenerationStyle
    batch_running: bool
    fatal_error: Optional[str] = Field(
        default=None,
        description="Set once quota is exhausted; no further attempts until reset",
    )
    jobs: list[JobView]


class SourceImageRequest(BaseModel):
    """Request model for uploading the source photo."""

    image_data_url: str = Field(
        ...,
        description="Base64 data URL, e.g. 'data:image/png;base64,...'",
        min_length=1,
    )


class StyleRequest(BaseModel):
    style: GenerationStyle


class FeedbackRequest(BaseModel):
    mark: FeedbackMark


class FeedbackResponse(BaseModel):
    label: str
    feedback: FeedbackMark


class RegenerateResponse(BaseModel):
    """Whether a regeneration request started a new attempt.

    Refused requests (halted session, job already pending) are no-ops.
    """

    label: str
    accepted: bool


def _snapshot(session: GenerationSession) -> SessionResponse:
    return SessionResponse(
        has_source_image=session.source_image is not None,
        style=session.style,
        batch_running=session.batch_running,
        fatal_error=session.fatal_error,
        jobs=session.views(),
    )


@router.get("", response_model=SessionResponse)
async def get_session_state(session: GenerationSession = Depends(get_session)):
    """Return status, image URL and error message for every job."""
    return _snapshot(session)


@router.put("/image", response_model=SessionResponse)
async def upload_source_image(
    request: SourceImageRequest,
    session: GenerationSession = Depends(get_session),
):
    """Replace the source photo. Previous results and feedback are cleared.

    Raises:
        HTTPException: 422 if the data URL is not a base64 image
    """
    try:
        image = SourceImage.from_data_url(request.image_data_url)
    except InvalidImageDataError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))

    session.set_source_image(image)
    return _snapshot(session)


@router.put("/style", response_model=SessionResponse)
async def set_generation_style(
    request: StyleRequest,
    session: GenerationSession = Depends(get_session),
):
    session.set_style(request.style)
    return _snapshot(session)


@router.post("/batch", response_model=SessionResponse, status_code=status.HTTP_202_ACCEPTED)
async def start_batch(session: GenerationSession = Depends(get_session)):
    """Start generating every era in the background.

    Raises:
        HTTPException: 409 if no source image exists, the session is halted,
            or a batch is already running
    """
    try:
        session.start_batch()
    except SessionError as e:
        logger.info("api.batch_refused", reason=type(e).__name__)
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))

    return _snapshot(session)


@router.post(
    "/jobs/{label}/regenerate",
    response_model=RegenerateResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def regenerate_job(label: str, session: GenerationSession = Depends(get_session)):
    """Start one more attempt for a single era.

    Raises:
        HTTPException: 404 if label is not part of the batch
    """
    try:
        accepted = session.start_regeneration(label)
    except UnknownJobError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    return RegenerateResponse(label=label, accepted=accepted)


@router.post("/jobs/{label}/feedback", response_model=FeedbackResponse)
async def toggle_feedback(
    label: str,
    request: FeedbackRequest,
    session: GenerationSession = Depends(get_session),
):
    """Toggle like/dislike. Sending the current mark again clears it."""
    try:
        feedback = session.toggle_feedback(label, request.mark)
    except UnknownJobError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    return FeedbackResponse(label=label, feedback=feedback)


@router.delete("", response_model=SessionResponse)
async def reset_session(session: GenerationSession = Depends(get_session)):
    """Clear all results, the source image and the fatal condition."""
    session.reset()
    return _snapshot(session)
