"""Request schemas for API endpoints."""
from typing import Any, Dict
from pydantic import BaseModel, Field, field_validator

from database.repositories.job_repo import JobType


class JobSubmitRequest(BaseModel):
    """Request schema for enqueueing a generation job."""
    job_type: str = Field(..., description="Document kind (BUSINESS_PLAN or DELIVERABLE)")
    subject_id: str = Field(..., min_length=1, description="Client the document is generated for")
    prompt_context: Dict[str, Any] = Field(
        ...,
        description="Client parameters captured once and reused by every section"
    )

    @field_validator('job_type')
    @classmethod
    def validate_job_type(cls, v: str) -> str:
        """Normalise and validate the job type."""
        v = v.upper()
        if v not in JobType.ALL:
            raise ValueError(f"job_type must be one of {', '.join(JobType.ALL)}")
        return v
