"""Background scheduling of generation jobs."""

from retrolens.workers.batch_scheduler import GenerationSession

__all__ = [
    "GenerationSession",
]
