"""Resume controller: re-enter the orchestrator at a failed job's saved cursor."""
import logging

from database.repositories.job_repo import JobRepository
from database.repositories.checkpoint_repo import CheckpointRepository, CheckpointStatus
from generator.orchestrator import GenerationOrchestrator, OrchestrationResult
from shared.errors import JobNotFoundError, NotResumableError

logger = logging.getLogger(__name__)


class ResumeController:
    """Validates resumability, takes ownership of the job and runs it again."""

    def __init__(
        self,
        job_repo: JobRepository,
        checkpoint_repo: CheckpointRepository,
        orchestrator: GenerationOrchestrator
    ):
        self.job_repo = job_repo
        self.checkpoint_repo = checkpoint_repo
        self.orchestrator = orchestrator

    async def resume(self, job_id: str) -> OrchestrationResult:
        """
        Resume a failed job from its checkpoint.

        Raises JobNotFoundError or NotResumableError before touching any
        state, and ClaimConflictError when another run owns the job.
        Otherwise returns the terminal outcome of the new run.
        """
        checkpoint = await self.checkpoint_repo.get_checkpoint(job_id)
        if checkpoint is None:
            raise JobNotFoundError(job_id)

        if checkpoint["status"] == CheckpointStatus.COMPLETED:
            raise NotResumableError(job_id, "generation already completed")

        if not checkpoint["can_resume"]:
            reason = checkpoint.get("error_message") or "checkpoint cannot be resumed"
            raise NotResumableError(job_id, reason)

        reclaimed = await self.job_repo.reclaim_failed_job(job_id)

        if await self.checkpoint_repo.reopen(job_id) is None:
            # Checkpoint changed between the read and the reclaim.
            await self.job_repo.release_job(
                job_id, "Checkpoint is no longer resumable", attempt=reclaimed["attempt"]
            )
            raise NotResumableError(job_id)

        logger.info(
            f"Resuming job {job_id} at section "
            f"{checkpoint['current_section'] + 1}/{checkpoint['total_sections']}"
        )
        return await self.orchestrator.run(job_id, attempt=reclaimed["attempt"])
