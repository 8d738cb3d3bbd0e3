"""Activity repository: audit trail of actions taken for a subject."""
from typing import Optional, Dict, Any
from motor.motor_asyncio import AsyncIOMotorDatabase
from shared.utils import generate_activity_id, get_utc_now


class ActivityType:
    """Activity type constants."""
    BUSINESS_PLAN_GENERATED = "BUSINESS_PLAN_GENERATED"
    DELIVERABLE_GENERATED = "DELIVERABLE_GENERATED"


class ActivityRepository:
    """Repository for subject activity records."""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.collection = db.activities

    async def record(
        self,
        subject_id: str,
        activity_type: str,
        description: str,
        job_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """Insert an activity record."""
        activity = {
            "_id": generate_activity_id(),
            "subject_id": subject_id,
            "type": activity_type,
            "description": description,
            "job_id": job_id,
            "created_at": get_utc_now()
        }
        await self.collection.insert_one(activity)
        return activity
