"""pytest fixtures for retrolens tests.

Provides:
- test_environment: Autouse fixture forcing APP_ENV=test (skips credential validation)
- source_image: Small PNG source photo
- recording_sleep: Sleep replacement recording backoff delays
- make_session: Factory building a GenerationSession around a scripted backend
"""

import os

# Must be set before retrolens.app is imported by any test module
os.environ["APP_ENV"] = "test"

import pytest  # noqa: E402
from fakes import PNG_BYTES, RecordingSleep  # noqa: E402

from retrolens.models.job import SourceImage  # noqa: E402
from retrolens.services.image_generation.retrying_client import RetryingImageClient  # noqa: E402
from retrolens.workers.batch_scheduler import GenerationSession  # noqa: E402


@pytest.fixture(scope="session", autouse=True)
def test_environment():
    """Keep APP_ENV=test for the whole run."""
    os.environ["APP_ENV"] = "test"
    yield


@pytest.fixture
def source_image() -> SourceImage:
    return SourceImage(mime_type="image/png", data=PNG_BYTES)


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def make_session(source_image, recording_sleep):
    """Return a factory: make_session(backend, **kwargs) -> GenerationSession.

    The session already holds the source image and never sleeps for real.
    """

    def _make(backend, concurrency: int = 2, with_image: bool = True, **kwargs):
        client = RetryingImageClient(backend, sleep=recording_sleep)
        session = GenerationSession(client, concurrency=concurrency, **kwargs)
        if with_image:
            session.set_source_image(source_image)
        return session

    return _make
