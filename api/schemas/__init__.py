# Schemas module
from .requests import JobSubmitRequest
from .responses import (
    JobSubmitResponse,
    JobStatusResponse,
    ResumeResponse,
    CheckpointSummary,
    GeneratedSectionSummary,
    ErrorResponse,
    JobCancelResponse,
    JobMetricsResponse
)

__all__ = [
    "JobSubmitRequest",
    "JobSubmitResponse",
    "JobStatusResponse",
    "ResumeResponse",
    "CheckpointSummary",
    "GeneratedSectionSummary",
    "ErrorResponse",
    "JobCancelResponse",
    "JobMetricsResponse"
]
