"""Generation session entities."""

from retrolens.models.job import (
    FeedbackMark,
    GenerationJob,
    GenerationStyle,
    InvalidStateTransition,
    JobRecord,
    JobStatus,
    JobView,
    SourceImage,
)

__all__ = [
    "FeedbackMark",
    "GenerationJob",
    "GenerationStyle",
    "InvalidStateTransition",
    "JobRecord",
    "JobStatus",
    "JobView",
    "SourceImage",
]
