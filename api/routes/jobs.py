"""Job routes for the REST API."""
from typing import List, Optional
from fastapi import APIRouter, Depends, status

from api.dependencies import get_generation_service
from api.services.generation_service import GenerationService
from api.schemas.requests import JobSubmitRequest
from api.schemas.responses import (
    ErrorResponse,
    JobCancelResponse,
    JobMetricsResponse,
    JobStatusResponse,
    JobSubmitResponse,
    ResumeResponse
)
from database.repositories.job_repo import JobStatus
from generator.sections import get_catalog


router = APIRouter(prefix="/jobs", tags=["jobs"])


@router.post("", response_model=JobSubmitResponse, status_code=status.HTTP_201_CREATED)
async def submit_job(
    request: JobSubmitRequest,
    service: GenerationService = Depends(get_generation_service)
):
    """
    Enqueue a document generation job.

    - Validates the prompt context for the job type
    - Creates the job (PENDING) and its checkpoint (cursor 0)
    - A worker picks the job up and generates sections in order
    """
    job_id = await service.enqueue(request.job_type, request.subject_id, request.prompt_context)

    return JobSubmitResponse(
        job_id=job_id,
        status=JobStatus.PENDING,
        total_sections=len(get_catalog(request.job_type))
    )


@router.get(
    "/{job_id}/status",
    response_model=JobStatusResponse,
    responses={404: {"model": ErrorResponse}}
)
async def get_job_status(
    job_id: str,
    service: GenerationService = Depends(get_generation_service)
):
    """Get the current status of a job. Polled by callers."""
    return JobStatusResponse(**await service.get_status(job_id))


@router.post(
    "/{job_id}/resume",
    response_model=ResumeResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}}
)
async def resume_job(
    job_id: str,
    service: GenerationService = Depends(get_generation_service)
):
    """
    Resume a failed job from its checkpoint.

    Runs synchronously and returns the terminal outcome of the attempt.
    """
    outcome = await service.resume(job_id)
    return ResumeResponse(**outcome.to_dict())


@router.delete(
    "/{job_id}",
    response_model=JobCancelResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}}
)
async def cancel_job(
    job_id: str,
    service: GenerationService = Depends(get_generation_service)
):
    """Request cancellation of a pending or running job."""
    await service.cancel(job_id)

    return JobCancelResponse(
        job_id=job_id,
        message="Cancellation requested; the job stops at the next section boundary."
    )


@router.get("", response_model=List[JobStatusResponse])
async def list_jobs(
    status_filter: Optional[str] = None,
    job_type: Optional[str] = None,
    limit: int = 50,
    skip: int = 0,
    service: GenerationService = Depends(get_generation_service)
):
    """List jobs with optional status and type filters."""
    jobs = await service.job_repo.list_jobs(
        status=status_filter, job_type=job_type, limit=limit, skip=skip
    )

    return [
        JobStatusResponse(
            job_id=job["_id"],
            type=job["type"],
            status=job["status"],
            progress=job.get("progress", 0),
            error=job.get("error"),
            result=job.get("result"),
            retry_count=job.get("retry_count", 0),
            created_at=job["created_at"],
            started_at=job.get("started_at"),
            completed_at=job.get("completed_at")
        )
        for job in jobs
    ]


@router.get("/metrics", response_model=JobMetricsResponse)
async def get_job_metrics(
    service: GenerationService = Depends(get_generation_service)
):
    """Job counts per status, success rate and average processing time."""
    return JobMetricsResponse(**await service.get_metrics())
