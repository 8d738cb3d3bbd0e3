"""Shared utility functions."""
import uuid
import json
import hashlib
from datetime import datetime, timezone
from typing import Dict, Any


def generate_job_id() -> str:
    """Generate a unique job ID."""
    return f"job_{uuid.uuid4().hex[:12]}"


def generate_document_id() -> str:
    """Generate a unique document ID."""
    return f"doc_{uuid.uuid4().hex[:12]}"


def generate_activity_id() -> str:
    """Generate a unique activity ID."""
    return f"act_{uuid.uuid4().hex[:12]}"


def get_utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes read back from MongoDB."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def calculate_exponential_backoff(attempt: int, base_delay: float = 1.0, max_delay: float = 60.0) -> float:
    """Calculate exponential backoff delay."""
    delay = base_delay * (2 ** attempt)
    return min(delay, max_delay)


def calculate_progress(completed_sections: int, total_sections: int) -> int:
    """Percentage of sections generated, rounded to the nearest integer."""
    if total_sections <= 0:
        return 0
    return round(completed_sections / total_sections * 100)


def generation_cache_key(job_type: str, section_name: str, prompt_context: Dict[str, Any]) -> str:
    """
    Build a content-hash cache key for a section generation call.

    The same prompt context and section always map to the same key, so a
    regenerated section after a crash can be served from cache.
    """
    canonical = json.dumps(
        {"job_type": job_type, "section": section_name, "context": prompt_context},
        sort_keys=True,
        separators=(",", ":"),
        default=str
    )
    return hashlib.sha256(canonical.encode()).hexdigest()
