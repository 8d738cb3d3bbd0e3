"""Generation orchestrator: the section-by-section control loop."""
import logging
from dataclasses import dataclass, asdict
from typing import Optional, Dict, Any, Tuple

from database.repositories.job_repo import JobRepository, JobStatus, JobType
from database.repositories.checkpoint_repo import CheckpointRepository
from database.repositories.document_repo import DocumentRepository
from database.repositories.activity_repo import ActivityRepository, ActivityType
from database.repositories.subject_repo import SubjectRepository
from generator.cache import GenerationCache
from generator.client import GenerationClient
from generator.rate_limiter import RateLimiter
from generator.sections import (
    SectionDefinition,
    assemble_document,
    get_catalog,
    render_instruction,
)
from shared.config import settings
from shared.errors import (
    CatalogMismatchError,
    ClaimConflictError,
    EngineError,
    JobCancelledError,
    JobNotFoundError,
    SubjectNotFoundError,
    is_retriable,
)
from shared.prompt_context import parse_prompt_context, serialize_prompt_context
from shared.utils import calculate_progress, generation_cache_key

logger = logging.getLogger(__name__)


class OrchestratorState:
    """Orchestrator run states."""
    STARTING = "STARTING"
    GENERATING = "GENERATING"
    ASSEMBLING = "ASSEMBLING"
    DONE = "DONE"
    FAILED = "FAILED"


ACTIVITY_TYPES = {
    JobType.BUSINESS_PLAN: ActivityType.BUSINESS_PLAN_GENERATED,
    JobType.DELIVERABLE: ActivityType.DELIVERABLE_GENERATED,
}


@dataclass
class OrchestrationResult:
    """Terminal outcome of one orchestrator run."""
    job_id: str
    status: str
    state: str
    completed_sections: int
    total_sections: int
    result: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    can_resume: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class GenerationOrchestrator:
    """
    Generates the remaining sections of a claimed job, starting at the
    checkpoint cursor, and drives both the job and its checkpoint into a
    terminal state.

    The caller must own the job (it is PROCESSING and was claimed by the
    caller). Fresh runs and resumes go through the same ``run``.
    """

    def __init__(
        self,
        job_repo: JobRepository,
        checkpoint_repo: CheckpointRepository,
        document_repo: DocumentRepository,
        activity_repo: ActivityRepository,
        client: GenerationClient,
        subject_repo: Optional[SubjectRepository] = None,
        max_attempts: int = None
    ):
        self.job_repo = job_repo
        self.checkpoint_repo = checkpoint_repo
        self.document_repo = document_repo
        self.activity_repo = activity_repo
        self.client = client
        self.subject_repo = subject_repo
        self.max_attempts = max_attempts or settings.max_generation_attempts

    @classmethod
    def from_connections(cls, db, redis_client) -> "GenerationOrchestrator":
        """Wire an orchestrator against MongoDB and the shared Redis cache/limiter."""
        client = GenerationClient(
            cache=GenerationCache(redis_client),
            rate_limiter=RateLimiter(redis_client)
        )
        return cls(
            job_repo=JobRepository(db),
            checkpoint_repo=CheckpointRepository(db),
            document_repo=DocumentRepository(db),
            activity_repo=ActivityRepository(db),
            client=client,
            subject_repo=SubjectRepository(db)
        )

    async def run(self, job_id: str, attempt: Optional[int] = None) -> OrchestrationResult:
        """
        Run the job to COMPLETED or FAILED.

        ``attempt`` is the value the caller's claim returned; when omitted it
        is read from the job.
        """
        state = OrchestratorState.STARTING
        checkpoint = None

        try:
            if attempt is None:
                job = await self.job_repo.get_job(job_id)
                attempt = job.get("attempt") if job else None

            checkpoint, catalog, context = await self._start(job_id)
            total = checkpoint["total_sections"]
            cursor = start_cursor = checkpoint["current_section"]

            if cursor > 0:
                logger.info(f"Job {job_id} continuing at section {cursor + 1}/{total}")

            state = OrchestratorState.GENERATING
            while cursor < total:
                checkpoint = await self._generate_section(job_id, attempt, checkpoint, catalog[cursor], context)
                cursor = checkpoint["current_section"]

            state = OrchestratorState.ASSEMBLING
            result = await self._finish(job_id, attempt, checkpoint, resumed=start_cursor > 0)

        except Exception as e:
            return await self._handle_failure(job_id, attempt, checkpoint, e, state)

        logger.info(f"Job {job_id} completed: {checkpoint['job_type']} v{result['version']}")
        return OrchestrationResult(
            job_id=job_id,
            status=JobStatus.COMPLETED,
            state=OrchestratorState.DONE,
            completed_sections=checkpoint["completed_sections"],
            total_sections=checkpoint["total_sections"],
            result=result
        )

    async def _start(self, job_id: str) -> Tuple[Dict[str, Any], Tuple[SectionDefinition, ...], Dict[str, Any]]:
        """Load and validate everything the loop needs."""
        checkpoint = await self.checkpoint_repo.get_checkpoint(job_id)
        if checkpoint is None:
            raise JobNotFoundError(job_id)

        job_type = checkpoint["job_type"]
        catalog = get_catalog(job_type)
        if len(catalog) != checkpoint["total_sections"]:
            raise CatalogMismatchError(
                f"{job_type} catalog has {len(catalog)} sections, "
                f"checkpoint expects {checkpoint['total_sections']}"
            )

        if self.subject_repo and not await self.subject_repo.subject_exists(checkpoint["subject_id"]):
            raise SubjectNotFoundError(checkpoint["subject_id"])

        context = parse_prompt_context(job_type, checkpoint["prompt_context"])
        return checkpoint, catalog, serialize_prompt_context(context)

    async def _generate_section(
        self,
        job_id: str,
        attempt: Optional[int],
        checkpoint: Dict[str, Any],
        section: SectionDefinition,
        context: Dict[str, Any]
    ) -> Dict[str, Any]:
        """Generate one section and durably append it."""
        if await self.job_repo.is_cancel_requested(job_id):
            raise JobCancelledError(job_id)

        job_type = checkpoint["job_type"]
        cursor = checkpoint["current_section"]
        instruction = render_instruction(job_type, section, context)

        content = await self.client.generate(
            instruction,
            cache_key=generation_cache_key(job_type, section.name, context),
            cache_ttl=settings.generation_cache_ttl_hours * 3600,
            operation=f"{job_type}_{section.name.upper()}"
        )

        # The only point where progress becomes durable.
        checkpoint = await self.checkpoint_repo.append_section(
            job_id,
            {"name": section.name, "title": section.title, "content": content},
            expected_cursor=cursor
        )

        owned = await self.job_repo.update_progress(
            job_id,
            calculate_progress(checkpoint["completed_sections"], checkpoint["total_sections"]),
            attempt=attempt
        )
        if not owned:
            job = await self.job_repo.get_job(job_id)
            raise ClaimConflictError(job_id, job["status"] if job else "MISSING")

        logger.info(
            f"Job {job_id} generated section {checkpoint['current_section']}/"
            f"{checkpoint['total_sections']}: {section.name}"
        )
        return checkpoint

    async def _finish(
        self,
        job_id: str,
        attempt: Optional[int],
        checkpoint: Dict[str, Any],
        resumed: bool
    ) -> Dict[str, Any]:
        """Assemble, store the document and move job and checkpoint to COMPLETED."""
        job_type = checkpoint["job_type"]
        subject_id = checkpoint["subject_id"]

        body = assemble_document(checkpoint["generated_content"])
        saved = await self.document_repo.save_version(subject_id, job_type, body, job_id=job_id)
        result = {"document_id": saved["document_id"], "version": saved["version"]}

        if not await self.job_repo.complete_job(job_id, result, attempt=attempt):
            job = await self.job_repo.get_job(job_id)
            raise ClaimConflictError(job_id, job["status"] if job else "MISSING")

        await self.checkpoint_repo.mark_completed(job_id)

        suffix = " (resumed from checkpoint)" if resumed else ""
        await self._record_activity(
            subject_id,
            ACTIVITY_TYPES.get(job_type, job_type),
            f"Generated {job_type.lower().replace('_', ' ')} v{saved['version']}{suffix}",
            job_id
        )
        return result

    async def _record_activity(self, subject_id: str, activity_type: str, description: str, job_id: str):
        """Audit records are best effort and never fail the job."""
        try:
            await self.activity_repo.record(subject_id, activity_type, description, job_id=job_id)
        except Exception as e:
            logger.warning(f"Failed to record activity for job {job_id}: {e}")

    async def _handle_failure(
        self,
        job_id: str,
        attempt: Optional[int],
        checkpoint: Optional[Dict[str, Any]],
        error: Exception,
        state: str
    ) -> OrchestrationResult:
        """Convert any error into a terminal FAILED job and checkpoint."""
        completed = checkpoint["completed_sections"] if checkpoint else 0
        total = checkpoint["total_sections"] if checkpoint else 0
        code = error.code if isinstance(error, EngineError) else "INTERNAL_ERROR"
        message = error.message if isinstance(error, EngineError) else f"{type(error).__name__}: {error}"

        if isinstance(error, ClaimConflictError):
            return self._disowned(job_id, error.status, completed, total, message, code)

        job = await self.job_repo.get_job(job_id)

        if job and job["status"] == JobStatus.COMPLETED:
            # Document and job are final; only the checkpoint lagged behind.
            await self.checkpoint_repo.mark_completed(job_id)
            logger.warning(f"Job {job_id} completed but finalisation raised: {message}")
            return OrchestrationResult(
                job_id=job_id,
                status=JobStatus.COMPLETED,
                state=OrchestratorState.DONE,
                completed_sections=completed,
                total_sections=total,
                result=job.get("result")
            )

        if job is None:
            return self._disowned(job_id, "MISSING", completed, total, message, code)
        if job["status"] != JobStatus.PROCESSING or (attempt is not None and job.get("attempt") != attempt):
            # Failed by stale recovery or reclaimed by a newer attempt meanwhile.
            return self._disowned(job_id, job["status"], completed, total, message, code)

        attempts = job.get("retry_count", 0) + 1
        retriable = is_retriable(error)
        can_resume = retriable and attempts < self.max_attempts
        if retriable and not can_resume:
            message = f"{message} (giving up after {attempts} attempts)"

        if isinstance(error, EngineError):
            logger.error(f"Job {job_id} failed during {state} at section {completed + 1}: {message}")
        else:
            logger.exception(f"Job {job_id} failed during {state} with an unexpected error")

        await self.checkpoint_repo.mark_failed(job_id, message, can_resume)
        await self.job_repo.fail_job(
            job_id,
            message,
            attempt=attempt,
            retryable=can_resume and not isinstance(error, JobCancelledError)
        )

        return OrchestrationResult(
            job_id=job_id,
            status=JobStatus.FAILED,
            state=OrchestratorState.FAILED,
            completed_sections=completed,
            total_sections=total,
            error=message,
            error_code=code,
            can_resume=can_resume
        )

    @staticmethod
    def _disowned(
        job_id: str,
        status: str,
        completed: int,
        total: int,
        message: str,
        code: str
    ) -> OrchestrationResult:
        """Outcome for a run whose job now belongs to someone else; no state is written."""
        logger.warning(f"Job {job_id} is no longer owned by this run: {message}")
        return OrchestrationResult(
            job_id=job_id,
            status=status,
            state=OrchestratorState.FAILED,
            completed_sections=completed,
            total_sections=total,
            error=message,
            error_code=code
        )
