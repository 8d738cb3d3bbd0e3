"""Generation service: the operations exposed to callers of the engine."""
import logging
from typing import List, Dict, Any, Optional
from motor.motor_asyncio import AsyncIOMotorDatabase
import redis.asyncio as redis

from database.repositories.job_repo import JobRepository
from database.repositories.checkpoint_repo import CheckpointRepository
from generator.orchestrator import GenerationOrchestrator, OrchestrationResult
from generator.resume import ResumeController
from generator.sections import get_catalog
from shared.errors import JobNotFoundError, NotCancellableError
from shared.prompt_context import parse_prompt_context, serialize_prompt_context
from shared.utils import generate_job_id

logger = logging.getLogger(__name__)


class GenerationService:
    """Enqueue, inspect, resume and cancel generation jobs."""

    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        redis_client: redis.Redis,
        orchestrator: Optional[GenerationOrchestrator] = None
    ):
        self.job_repo = JobRepository(db)
        self.checkpoint_repo = CheckpointRepository(db)
        self.orchestrator = orchestrator or GenerationOrchestrator.from_connections(db, redis_client)
        self.resume_controller = ResumeController(self.job_repo, self.checkpoint_repo, self.orchestrator)

    async def enqueue(
        self,
        job_type: str,
        subject_id: str,
        prompt_context: Dict[str, Any]
    ) -> str:
        """
        Create a PENDING job and its cursor-0 checkpoint.

        Unknown job types and invalid prompt contexts are rejected here,
        before anything is written.
        """
        catalog = get_catalog(job_type)
        context = serialize_prompt_context(parse_prompt_context(job_type, prompt_context))
        job_id = generate_job_id()

        # Checkpoint first: workers only discover jobs, so a job is never
        # visible without its checkpoint.
        await self.checkpoint_repo.create_checkpoint(
            job_id=job_id,
            job_type=job_type,
            subject_id=subject_id,
            total_sections=len(catalog),
            prompt_context=context
        )
        try:
            await self.job_repo.create_job(job_type, {"subject_id": subject_id}, job_id=job_id)
        except Exception:
            await self.checkpoint_repo.delete_checkpoint(job_id)
            raise

        logger.info(f"Enqueued {job_type} job {job_id} for subject {subject_id}")
        return job_id

    async def get_status(self, job_id: str) -> Dict[str, Any]:
        """Job status plus section-level progress from the checkpoint."""
        status = await self.job_repo.get_job_status(job_id)
        if not status:
            raise JobNotFoundError(job_id)

        checkpoint = await self.checkpoint_repo.get_checkpoint(job_id)
        if checkpoint:
            status["completed_sections"] = checkpoint["completed_sections"]
            status["total_sections"] = checkpoint["total_sections"]
            status["can_resume"] = checkpoint["can_resume"]
        return status

    async def resume(self, job_id: str) -> OrchestrationResult:
        """Resume a failed job at its checkpoint cursor."""
        return await self.resume_controller.resume(job_id)

    async def list_resumable(self, subject_id: Optional[str] = None) -> List[Dict[str, Any]]:
        """Checkpoints an operator can resume."""
        return await self.checkpoint_repo.list_resumable(subject_id)

    async def cancel(self, job_id: str) -> None:
        """Request cancellation; a running job stops at the next section boundary."""
        if await self.job_repo.request_cancel(job_id):
            logger.info(f"Cancellation requested for job {job_id}")
            return

        job = await self.job_repo.get_job(job_id)
        if not job:
            raise JobNotFoundError(job_id)
        raise NotCancellableError(job_id, job["status"])

    async def delete_checkpoint(self, job_id: str) -> None:
        """Delete a checkpoint, abandoning any partial progress."""
        if not await self.checkpoint_repo.delete_checkpoint(job_id):
            raise JobNotFoundError(job_id)

    async def get_metrics(self) -> Dict[str, Any]:
        """Queue counts, success rate and average processing time."""
        return await self.job_repo.get_metrics(sample_size=100)
