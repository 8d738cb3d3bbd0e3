"""Response schemas for API endpoints."""
from typing import Any, Dict, List, Optional
from datetime import datetime
from pydantic import BaseModel, Field


class JobSubmitResponse(BaseModel):
    """Response schema for job submission."""
    job_id: str = Field(..., description="Unique job identifier")
    status: str = Field(..., description="Current job status")
    total_sections: int = Field(..., description="Number of sections to generate")
    message: str = Field(default="Job submitted successfully")


class JobStatusResponse(BaseModel):
    """Response schema for job status."""
    job_id: str = Field(..., description="Unique job identifier")
    type: str = Field(..., description="Document kind")
    status: str = Field(..., description="Current job status")
    progress: int = Field(..., description="Advisory progress percentage")
    error: Optional[str] = Field(None, description="Failure message")
    result: Optional[Dict[str, Any]] = Field(None, description="Generated document reference")
    retry_count: int = Field(0, description="Number of failed attempts")
    completed_sections: Optional[int] = Field(None, description="Sections generated so far")
    total_sections: Optional[int] = Field(None, description="Sections in the document")
    can_resume: Optional[bool] = Field(None, description="Whether a failed job can be resumed")
    created_at: datetime = Field(..., description="Job creation timestamp")
    started_at: Optional[datetime] = Field(None, description="First claim timestamp")
    completed_at: Optional[datetime] = Field(None, description="Terminal state timestamp")


class ResumeResponse(BaseModel):
    """Response schema for a resume attempt."""
    job_id: str = Field(..., description="Unique job identifier")
    status: str = Field(..., description="Terminal job status after the attempt")
    completed_sections: int = Field(..., description="Sections generated so far")
    total_sections: int = Field(..., description="Sections in the document")
    result: Optional[Dict[str, Any]] = Field(None, description="Generated document reference")
    error: Optional[str] = Field(None, description="Failure message")
    error_code: Optional[str] = Field(None, description="Failure code")
    can_resume: bool = Field(False, description="Whether another resume is allowed")


class GeneratedSectionSummary(BaseModel):
    """A section stored in a checkpoint, without its content."""
    name: str
    title: str


class CheckpointSummary(BaseModel):
    """Operator view of a resumable checkpoint."""
    job_id: str = Field(..., description="Job the checkpoint belongs to")
    job_type: str = Field(..., description="Document kind")
    subject_id: str = Field(..., description="Client the document is generated for")
    status: str = Field(..., description="Checkpoint status")
    completed_sections: int = Field(..., description="Sections generated so far")
    total_sections: int = Field(..., description="Sections in the document")
    sections: List[GeneratedSectionSummary] = Field(default_factory=list)
    error_message: Optional[str] = Field(None, description="Last failure")
    updated_at: datetime = Field(..., description="Last checkpoint write")


class ErrorResponse(BaseModel):
    """Schema for error responses."""
    error: str = Field(..., description="Error code")
    detail: Optional[str] = Field(None, description="Detailed error information")


class JobCancelResponse(BaseModel):
    """Response schema for job cancellation."""
    job_id: str = Field(..., description="Unique job identifier")
    message: str = Field(..., description="Cancellation message")


class JobMetricsResponse(BaseModel):
    """Queue health summary."""
    total: int = Field(..., description="Jobs on record")
    by_status: Dict[str, int] = Field(..., description="Job count per status")
    success_rate: float = Field(..., description="Completed share of finished jobs, in percent")
    average_processing_seconds: float = Field(
        ..., description="Mean claim-to-completion time of the most recent completed jobs"
    )
