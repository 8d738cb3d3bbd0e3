"""Worker process for claiming and running generation jobs."""
import asyncio
import logging
import time
from datetime import timedelta
from typing import Optional
import redis.asyncio as redis
from motor.motor_asyncio import AsyncIOMotorDatabase

from database.repositories.job_repo import JobRepository
from database.repositories.checkpoint_repo import CheckpointRepository
from generator.orchestrator import GenerationOrchestrator, OrchestrationResult
from generator.resume import ResumeController
from shared.config import settings
from shared.errors import ClaimConflictError, JobNotFoundError, NotResumableError, WorkerLostError
from shared.utils import calculate_exponential_backoff, ensure_utc, get_utc_now

logger = logging.getLogger(__name__)


class GenerationWorker:
    """
    Polls MongoDB for PENDING jobs and runs them one at a time.

    When the queue is empty the worker resumes retryable FAILED jobs whose
    backoff has elapsed, so transient failures recover without an operator.
    """

    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        redis_client: redis.Redis,
        worker_id: str = "worker-1",
        orchestrator: Optional[GenerationOrchestrator] = None
    ):
        self.db = db
        self.redis = redis_client
        self.worker_id = worker_id
        self.job_repo = JobRepository(db)
        self.checkpoint_repo = CheckpointRepository(db)
        self.orchestrator = orchestrator or GenerationOrchestrator.from_connections(db, redis_client)
        self.resume_controller = ResumeController(self.job_repo, self.checkpoint_repo, self.orchestrator)
        self.running = True
        self._last_housekeeping: Optional[float] = None

    async def start(self):
        """Start the worker loop."""
        logger.info(f"Worker {self.worker_id} starting...")

        while self.running:
            await self._maybe_housekeep()

            if not await self.run_once():
                # No jobs available, wait before polling again
                await asyncio.sleep(settings.worker_poll_interval)

    async def stop(self):
        """Stop the worker gracefully."""
        logger.info(f"Worker {self.worker_id} stopping...")
        self.running = False

    async def run_once(self) -> bool:
        """Run the oldest pending job, or else one due retry. Returns False when idle."""
        job = await self.job_repo.next_pending_job()

        if job:
            try:
                await self.process_job(job["_id"])
            except Exception:
                logger.exception(f"Worker {self.worker_id} could not finish job {job['_id']}")
            return True

        if not settings.auto_retry_enabled:
            return False

        try:
            return await self.retry_failed_job() is not None
        except Exception:
            logger.exception(f"Worker {self.worker_id} could not retry a failed job")
            return False

    async def process_job(self, job_id: str) -> Optional[OrchestrationResult]:
        """Claim a job and run it. Returns None when another worker won the claim."""
        try:
            claimed = await self.job_repo.claim_job(job_id)
        except (ClaimConflictError, JobNotFoundError) as e:
            logger.info(f"Worker {self.worker_id} skipped job {job_id}: {e}")
            return None

        logger.info(f"Worker {self.worker_id} processing job {job_id}")
        outcome = await self.orchestrator.run(job_id, attempt=claimed.get("attempt"))
        self._log_outcome(outcome)
        return outcome

    async def retry_failed_job(self) -> Optional[OrchestrationResult]:
        """
        Resume the oldest retryable FAILED job whose backoff has elapsed.

        The delay doubles with every failed attempt. Returns None when no job
        was due or every candidate was taken by another worker.
        """
        now = get_utc_now()
        cutoff = now - timedelta(seconds=settings.retry_base_delay)

        for job in await self.job_repo.list_retry_candidates(cutoff):
            delay = calculate_exponential_backoff(
                max(job.get("retry_count", 1) - 1, 0),
                base_delay=settings.retry_base_delay,
                max_delay=settings.retry_max_delay
            )
            if ensure_utc(job["updated_at"]) + timedelta(seconds=delay) > now:
                continue

            try:
                outcome = await self.resume_controller.resume(job["_id"])
            except ClaimConflictError as e:
                logger.info(f"Worker {self.worker_id} skipped retry of job {job['_id']}: {e}")
                continue
            except (NotResumableError, JobNotFoundError) as e:
                await self.job_repo.disable_retry(job["_id"])
                logger.info(f"Job {job['_id']} dropped from automatic retry: {e}")
                continue

            logger.info(
                f"Worker {self.worker_id} retried job {job['_id']} "
                f"(attempt {job.get('retry_count', 0) + 1}): {outcome.status}"
            )
            self._log_outcome(outcome)
            return outcome

        return None

    def _log_outcome(self, outcome: OrchestrationResult):
        if outcome.error:
            resumable = "resumable" if outcome.can_resume else "not resumable"
            logger.warning(
                f"Job {outcome.job_id} ended {outcome.status} after "
                f"{outcome.completed_sections}/{outcome.total_sections} sections ({resumable})"
            )

    async def _maybe_housekeep(self):
        now = time.monotonic()
        if self._last_housekeeping is not None and now - self._last_housekeeping < settings.housekeeping_interval:
            return
        self._last_housekeeping = now

        try:
            recovered = await self.recover_stale_jobs()
            removed = await self.checkpoint_repo.cleanup_completed(settings.checkpoint_retention_days)
            purged = await self.job_repo.cleanup_old_jobs(settings.job_retention_days)
        except Exception:
            logger.exception("Housekeeping failed")
            return

        if recovered or removed or purged:
            logger.info(
                f"Housekeeping: {recovered} stale jobs failed, "
                f"{removed} checkpoints and {purged} jobs removed"
            )

    async def recover_stale_jobs(self) -> int:
        """
        Fail PROCESSING jobs whose worker stopped reporting progress, so they
        become resumable instead of staying PROCESSING forever.
        """
        cutoff = get_utc_now() - timedelta(seconds=settings.stale_job_timeout)
        recovered = 0

        for job in await self.job_repo.list_stale_jobs(cutoff):
            error = WorkerLostError(
                f"No progress for {settings.stale_job_timeout}s; worker presumed lost"
            )
            can_resume = job.get("retry_count", 0) + 1 < self.orchestrator.max_attempts
            if not await self.job_repo.fail_stale_job(job["_id"], error.message, cutoff, retryable=can_resume):
                continue

            await self.checkpoint_repo.mark_failed(job["_id"], error.message, can_resume)
            logger.warning(f"Job {job['_id']} marked failed: {error.message}")
            recovered += 1

        return recovered
