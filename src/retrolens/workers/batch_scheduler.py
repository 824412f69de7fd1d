"""Batch scheduler driving one generation session.

A session owns the source image, one JobRecord per era label and the fatal
(quota) condition. The initial batch fans the jobs out over a fixed pool of
puller tasks sharing a FIFO queue; single-job regeneration runs outside the
pool.

Every task writes only the record of the job it owns, so the job map needs no
lock. The fatal condition is a set-once flag: the first quota failure wins and
later ones leave it untouched. It never cancels attempts already in flight;
it only stops new ones from starting.

A reset bumps the session epoch. Attempts started under an older epoch finish
normally but their results are discarded.
"""

import asyncio
import time
from typing import Coroutine, Optional, Sequence

import structlog

from retrolens.models.job import (
    FeedbackMark,
    GenerationJob,
    GenerationStyle,
    JobRecord,
    JobStatus,
    JobView,
    SourceImage,
)
from retrolens.services.exceptions import (
    BatchInProgressError,
    ErrorKind,
    GenerationError,
    MissingSourceImageError,
    SessionHaltedError,
    UnknownJobError,
)
from retrolens.services.image_generation.error_normalizer import (
    is_quota_message,
    normalize_error,
)
from retrolens.services.image_generation.fallback import generate_era_image
from retrolens.services.image_generation.prompts import ERAS, build_prompt
from retrolens.services.image_generation.retrying_client import RetryingImageClient

logger = structlog.get_logger(__name__)

DEFAULT_CONCURRENCY = 2


class GenerationSession:
    """Per-user generation session: job states, fatal condition and scheduling."""

    def __init__(
        self,
        client: RetryingImageClient,
        labels: Sequence[str] = ERAS,
        concurrency: int = DEFAULT_CONCURRENCY,
        style: GenerationStyle | str = GenerationStyle.STRICT,
    ):
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        if len(set(labels)) != len(labels):
            raise ValueError("job labels must be unique within a batch")

        self.client = client
        self.labels: tuple[str, ...] = tuple(labels)
        self.concurrency = concurrency
        self.style = GenerationStyle(style)
        self.source_image: Optional[SourceImage] = None
        self.fatal_error: Optional[str] = None
        self.jobs: dict[str, JobRecord] = self._fresh_records()
        self._epoch = 0
        self._batch_running = False
        self._tasks: set[asyncio.Task] = set()

    # Session state

    @property
    def halted(self) -> bool:
        """True once quota exhaustion set the fatal condition."""
        return self.fatal_error is not None

    @property
    def batch_running(self) -> bool:
        return self._batch_running

    @property
    def is_complete(self) -> bool:
        """True when every job has produced an image."""
        return all(record.status == JobStatus.DONE for record in self.jobs.values())

    def _fresh_records(self) -> dict[str, JobRecord]:
        return {label: JobRecord(label=label) for label in self.labels}

    def _record(self, label: str) -> JobRecord:
        try:
            return self.jobs[label]
        except KeyError:
            raise UnknownJobError(f"Unknown job label: {label}") from None

    def set_source_image(self, image: SourceImage) -> None:
        """Use a new source photo. Previous results and feedback are dropped."""
        self._epoch += 1
        self._batch_running = False
        self.source_image = image
        self.jobs = self._fresh_records()
        logger.info("session.source_image_set", mime_type=image.mime_type, size=len(image.data))

    def set_style(self, style: GenerationStyle | str) -> None:
        self.style = GenerationStyle(style)

    def reset(self) -> None:
        """Clear all job state, the source image and the fatal condition."""
        self._epoch += 1
        self._batch_running = False
        self.source_image = None
        self.fatal_error = None
        self.jobs = self._fresh_records()
        logger.info("session.reset", epoch=self._epoch)

    def toggle_feedback(self, label: str, mark: FeedbackMark | str) -> FeedbackMark:
        return self._record(label).toggle_feedback(FeedbackMark(mark))

    def completed_images(self) -> dict[str, str]:
        """Image URLs of every finished job, keyed by label."""
        return {
            label: record.image_url
            for label, record in self.jobs.items()
            if record.status == JobStatus.DONE and record.image_url
        }

    def views(self) -> list[JobView]:
        """Per-job output for the display collaborator, in batch order."""
        views = []
        for label in self.labels:
            record = self.jobs[label]
            views.append(
                JobView(
                    label=label,
                    status=record.status,
                    image_url=record.image_url,
                    error=record.error,
                    error_kind=record.error_kind,
                    regenerating=record.regenerating,
                    can_retry=(
                        record.status == JobStatus.ERROR
                        and record.error_kind != ErrorKind.QUOTA_EXHAUSTED
                        and not self.halted
                    ),
                    feedback=record.feedback,
                )
            )
        return views

    def _build_job(self, label: str, image: SourceImage) -> GenerationJob:
        return GenerationJob(label=label, prompt=build_prompt(self.style, label), image=image)

    # Initial batch

    def _prepare_batch(self) -> tuple["asyncio.Queue[GenerationJob]", int]:
        if self.source_image is None:
            raise MissingSourceImageError("Upload a source image before starting a batch")
        if self.halted:
            raise SessionHaltedError(self.fatal_error)
        if self._batch_running:
            raise BatchInProgressError("A batch is already running for this session")
        pending = [
            label for label, record in self.jobs.items() if record.status == JobStatus.PENDING
        ]
        if pending:
            # A regeneration still owns these records
            raise BatchInProgressError(
                f"Wait for the running regeneration to finish: {', '.join(pending)}"
            )

        queue: asyncio.Queue[GenerationJob] = asyncio.Queue()
        self.jobs = self._fresh_records()
        for label in self.labels:
            self.jobs[label].mark_pending()
            queue.put_nowait(self._build_job(label, self.source_image))

        self._batch_running = True
        logger.info(
            "batch.started",
            jobs=len(self.labels),
            concurrency=self.concurrency,
            style=self.style.value,
        )
        return queue, self._epoch

    async def run_batch(self) -> dict[str, JobRecord]:
        """Run every job to completion with at most ``concurrency`` in flight.

        Returns:
            The job records, each in done or error state

        Raises:
            MissingSourceImageError: No source image uploaded
            SessionHaltedError: The fatal condition is set
            BatchInProgressError: Another batch or a regeneration is still running
        """
        queue, epoch = self._prepare_batch()
        await self._drain(queue, epoch)
        return self.jobs

    def start_batch(self) -> None:
        """Start the batch in the background. Same checks as run_batch."""
        queue, epoch = self._prepare_batch()
        self._spawn(self._drain(queue, epoch))

    async def _drain(self, queue: "asyncio.Queue[GenerationJob]", epoch: int) -> None:
        start_time = time.monotonic()
        try:
            workers = [
                asyncio.create_task(self._batch_worker(queue, epoch, worker_id))
                for worker_id in range(self.concurrency)
            ]
            results = await asyncio.gather(*workers, return_exceptions=True)
        finally:
            if epoch == self._epoch:
                self._batch_running = False

        for worker_id, result in enumerate(results):
            if isinstance(result, Exception):
                logger.error(
                    "batch.worker_failed",
                    worker_id=worker_id,
                    error_type=type(result).__name__,
                    exc_info=result,
                )

        if epoch == self._epoch:
            statuses = [record.status for record in self.jobs.values()]
            logger.info(
                "batch.completed",
                done=statuses.count(JobStatus.DONE),
                failed=statuses.count(JobStatus.ERROR),
                halted=self.halted,
                duration_seconds=time.monotonic() - start_time,
            )

    async def _batch_worker(
        self, queue: "asyncio.Queue[GenerationJob]", epoch: int, worker_id: int
    ) -> None:
        while True:
            try:
                job = queue.get_nowait()
            except asyncio.QueueEmpty:
                return

            if epoch != self._epoch:
                return

            if self.halted:
                # No new attempts once quota is exhausted
                self._record_failure(job.label, self.fatal_error, ErrorKind.QUOTA_EXHAUSTED, epoch)
                logger.info("job.skipped", label=job.label, worker_id=worker_id, reason="halted")
                continue

            await self._run_job(job, epoch, worker_id=worker_id)

    # Single-job regeneration

    def _begin_regeneration(self, label: str) -> Optional[GenerationJob]:
        record = self._record(label)

        if self.source_image is None:
            logger.info("session.regenerate_refused", label=label, reason="no_source_image")
            return None
        if self.halted:
            logger.info("session.regenerate_refused", label=label, reason="halted")
            return None
        if record.status == JobStatus.PENDING:
            logger.info("session.regenerate_refused", label=label, reason="already_pending")
            return None

        record.mark_pending()
        return self._build_job(label, self.source_image)

    async def regenerate(self, label: str) -> bool:
        """Run one more attempt for ``label``.

        Refused (no-op, returns False) while the session is halted, while the
        job is pending, or before a source image exists.

        Raises:
            UnknownJobError: If label is not part of the batch
        """
        epoch = self._epoch
        job = self._begin_regeneration(label)
        if job is None:
            return False
        await self._run_job(job, epoch)
        return True

    def start_regeneration(self, label: str) -> bool:
        """Background variant of regenerate; returns whether it was accepted."""
        epoch = self._epoch
        job = self._begin_regeneration(label)
        if job is None:
            return False
        self._spawn(self._run_job(job, epoch))
        return True

    # Attempt execution

    async def _run_job(self, job: GenerationJob, epoch: int, worker_id: int | None = None) -> None:
        start_time = time.monotonic()
        logger.info("job.started", label=job.label, worker_id=worker_id)

        try:
            image_url = await generate_era_image(self.client, job.image, job.prompt)
        except GenerationError as e:
            self._record_failure(job.label, e.message, e.kind, epoch)
        except Exception as e:
            # Unexpected errors stay isolated to this job
            logger.error(
                "job.unexpected_error",
                label=job.label,
                error_type=type(e).__name__,
                exc_info=True,
            )
            self._record_failure(job.label, normalize_error(e), ErrorKind.OTHER, epoch)
        else:
            record = self._owned_record(job.label, epoch)
            if record is None:
                return
            record.mark_done(image_url)
            logger.info(
                "job.succeeded",
                label=job.label,
                duration_seconds=time.monotonic() - start_time,
            )

    def _owned_record(self, label: str, epoch: int) -> Optional[JobRecord]:
        """Record an attempt may write its result to, or None if it was superseded."""
        if epoch != self._epoch:
            logger.info("job.result_discarded", label=label, reason="session_reset")
            return None
        record = self.jobs[label]
        if record.status != JobStatus.PENDING:
            logger.warning("job.result_discarded", label=label, reason="not_pending")
            return None
        return record

    def _record_failure(self, label: str, message: str, kind: ErrorKind, epoch: int) -> None:
        record = self._owned_record(label, epoch)
        if record is None:
            return

        # Structured quota classification and the message keyword check are
        # independent; either one halts the session.
        if kind == ErrorKind.QUOTA_EXHAUSTED or is_quota_message(message):
            kind = ErrorKind.QUOTA_EXHAUSTED
            if self.fatal_error is None:
                self.fatal_error = message
                logger.error("session.fatal_condition_set", label=label, error_message=message)

        record.mark_failed(message, kind)
        logger.warning("job.failed", label=label, error_kind=kind.value, error_message=message)

    # Background task bookkeeping

    def _spawn(self, coro: Coroutine) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        task.add_done_callback(self._log_task_failure)
        return task

    @staticmethod
    def _log_task_failure(task: asyncio.Task) -> None:
        if task.cancelled() or task.exception() is None:
            return
        error = task.exception()
        logger.error(
            "session.task_failed",
            task_name=task.get_name(),
            error_type=type(error).__name__,
            exc_info=error,
        )

    async def wait_idle(self) -> None:
        """Wait until every background batch and regeneration has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def aclose(self) -> None:
        """Cancel background work (application shutdown)."""
        for task in list(self._tasks):
            task.cancel()
        await asyncio.gather(*list(self._tasks), return_exceptions=True)
