"""Versioned prompt context models, one per job type."""
from typing import Any, Dict, List, Optional, Type
from pydantic import BaseModel, Field, ValidationError

from shared.errors import InvalidPromptContextError, UnknownJobTypeError


class ClientProfile(BaseModel):
    """Client fields shared by every document type."""
    creator_name: str = Field(..., min_length=1)
    brand_name: str = Field(..., min_length=1)
    vision_statement: Optional[str] = None
    target_industry: Optional[str] = None
    target_audience: Optional[str] = None
    demographics: Optional[str] = None
    unique_value_props: Optional[str] = None
    products_services: List[str] = Field(default_factory=list)
    competitors: List[str] = Field(default_factory=list)
    competitive_advantages: Optional[str] = None
    scaling_goals: Optional[str] = None
    team_structure: Optional[str] = None


class BusinessPlanContext(ClientProfile):
    """Prompt context for business plan generation."""
    schema_version: int = 1


class DeliverableContext(ClientProfile):
    """Prompt context for a monthly deliverable."""
    schema_version: int = 1
    month: int = Field(default=1, ge=1, le=12)
    focus_area: Optional[str] = None


CONTEXT_MODELS: Dict[str, Type[ClientProfile]] = {
    "BUSINESS_PLAN": BusinessPlanContext,
    "DELIVERABLE": DeliverableContext,
}


def parse_prompt_context(job_type: str, data: Dict[str, Any]) -> ClientProfile:
    """Validate a raw prompt context for ``job_type``."""
    model = CONTEXT_MODELS.get(job_type)
    if model is None:
        raise UnknownJobTypeError(job_type)

    try:
        context = model.model_validate(data)
    except ValidationError as e:
        raise InvalidPromptContextError(f"Invalid prompt context for {job_type}: {e}") from e

    if context.schema_version != model.model_fields["schema_version"].default:
        raise InvalidPromptContextError(
            f"Unsupported prompt context version {context.schema_version} for {job_type}"
        )
    return context


def serialize_prompt_context(context: ClientProfile) -> Dict[str, Any]:
    """Serialize a context for storage; round-trips through parse_prompt_context."""
    return context.model_dump(mode="json")
