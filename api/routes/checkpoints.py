"""Checkpoint routes for operator recovery tooling."""
from typing import List, Optional
from fastapi import APIRouter, Depends, status

from api.dependencies import get_generation_service
from api.services.generation_service import GenerationService
from api.schemas.responses import CheckpointSummary, ErrorResponse, GeneratedSectionSummary


router = APIRouter(prefix="/checkpoints", tags=["checkpoints"])


@router.get("", response_model=List[CheckpointSummary])
async def list_resumable_checkpoints(
    subject_id: Optional[str] = None,
    service: GenerationService = Depends(get_generation_service)
):
    """List resumable checkpoints, optionally for one subject."""
    checkpoints = await service.list_resumable(subject_id)

    return [
        CheckpointSummary(
            job_id=checkpoint["_id"],
            job_type=checkpoint["job_type"],
            subject_id=checkpoint["subject_id"],
            status=checkpoint["status"],
            completed_sections=checkpoint["completed_sections"],
            total_sections=checkpoint["total_sections"],
            sections=[
                GeneratedSectionSummary(name=s["name"], title=s["title"])
                for s in checkpoint["generated_content"]
            ],
            error_message=checkpoint.get("error_message"),
            updated_at=checkpoint["updated_at"]
        )
        for checkpoint in checkpoints
    ]


@router.delete(
    "/{job_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse}}
)
async def delete_checkpoint(
    job_id: str,
    service: GenerationService = Depends(get_generation_service)
):
    """Delete a checkpoint, abandoning its partial progress."""
    await service.delete_checkpoint(job_id)
