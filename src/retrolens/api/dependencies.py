"""FastAPI dependency injection functions."""

from fastapi import Request

from retrolens.workers.batch_scheduler import GenerationSession


def get_session(request: Request) -> GenerationSession:
    """Get the generation session from app state.

    Args:
        request: FastAPI Request object (contains app.state)

    Returns:
        GenerationSession created during application lifespan

    Example:
        >>> @router.post("/endpoint")
        >>> async def endpoint(session: GenerationSession = Depends(get_session)):
        ...     session.start_batch()
    """
    return request.app.state.generation_session
