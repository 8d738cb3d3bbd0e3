"""Checkpoint repository for section-level generation progress."""
from typing import Optional, List, Dict, Any
from datetime import timedelta
from motor.motor_asyncio import AsyncIOMotorDatabase
from shared.errors import CheckpointPersistenceError
from shared.utils import get_utc_now


class CheckpointStatus:
    """Checkpoint status constants."""
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class CheckpointRepository:
    """
    Repository for generation checkpoints.

    A checkpoint shares its ``_id`` with the job it tracks. Sections are only
    ever appended, and every append moves ``generated_content``,
    ``completed_sections`` and ``current_section`` together in a single
    document update.
    """

    def __init__(self, db: AsyncIOMotorDatabase):
        self.collection = db.checkpoints

    async def create_checkpoint(
        self,
        job_id: str,
        job_type: str,
        subject_id: str,
        total_sections: int,
        prompt_context: Dict[str, Any]
    ) -> Dict[str, Any]:
        """Create a checkpoint at cursor 0."""
        now = get_utc_now()

        checkpoint = {
            "_id": job_id,
            "job_type": job_type,
            "subject_id": subject_id,
            "total_sections": total_sections,
            "completed_sections": 0,
            "current_section": 0,
            "generated_content": [],
            "prompt_context": prompt_context,
            "status": CheckpointStatus.IN_PROGRESS,
            "can_resume": True,
            "error_message": None,
            "created_at": now,
            "updated_at": now,
            "completed_at": None
        }

        await self.collection.insert_one(checkpoint)
        return checkpoint

    async def get_checkpoint(self, job_id: str) -> Optional[Dict[str, Any]]:
        """Get a checkpoint by job ID."""
        return await self.collection.find_one({"_id": job_id})

    async def append_section(
        self,
        job_id: str,
        section: Dict[str, str],
        expected_cursor: int
    ) -> Dict[str, Any]:
        """
        Append one generated section and advance the cursor.

        The filter pins the cursor the caller generated against, so a
        duplicate or out-of-order append matches nothing and raises instead
        of corrupting the content list.
        """
        checkpoint = await self.collection.find_one_and_update(
            {
                "_id": job_id,
                "status": CheckpointStatus.IN_PROGRESS,
                "current_section": expected_cursor,
                "total_sections": {"$gt": expected_cursor}
            },
            {
                "$push": {
                    "generated_content": {
                        "name": section["name"],
                        "title": section["title"],
                        "content": section["content"]
                    }
                },
                "$inc": {"completed_sections": 1, "current_section": 1},
                "$set": {"updated_at": get_utc_now()}
            },
            return_document=True
        )
        if checkpoint is None:
            raise CheckpointPersistenceError(
                f"Checkpoint {job_id} did not accept section {expected_cursor}"
            )
        return checkpoint

    async def mark_completed(self, job_id: str) -> bool:
        """Mark a checkpoint as completed. Completed checkpoints are never modified again."""
        now = get_utc_now()
        result = await self.collection.update_one(
            {"_id": job_id, "status": {"$ne": CheckpointStatus.COMPLETED}},
            {
                "$set": {
                    "status": CheckpointStatus.COMPLETED,
                    "can_resume": False,
                    "error_message": None,
                    "updated_at": now,
                    "completed_at": now
                }
            }
        )
        return result.modified_count > 0

    async def mark_failed(
        self,
        job_id: str,
        error_message: str,
        can_resume: bool
    ) -> bool:
        """Mark a checkpoint as failed, keeping its partial content."""
        result = await self.collection.update_one(
            {"_id": job_id, "status": {"$ne": CheckpointStatus.COMPLETED}},
            {
                "$set": {
                    "status": CheckpointStatus.FAILED,
                    "can_resume": can_resume,
                    "error_message": error_message,
                    "updated_at": get_utc_now()
                }
            }
        )
        return result.modified_count > 0

    async def reopen(self, job_id: str) -> Optional[Dict[str, Any]]:
        """Put a resumable checkpoint back IN_PROGRESS for another attempt."""
        return await self.collection.find_one_and_update(
            {
                "_id": job_id,
                "can_resume": True,
                "status": {"$in": [CheckpointStatus.FAILED, CheckpointStatus.IN_PROGRESS]}
            },
            {
                "$set": {
                    "status": CheckpointStatus.IN_PROGRESS,
                    "error_message": None,
                    "updated_at": get_utc_now()
                }
            },
            return_document=True
        )

    async def list_resumable(
        self,
        subject_id: Optional[str] = None,
        limit: int = 100
    ) -> List[Dict[str, Any]]:
        """Resumable checkpoints, most recently updated first."""
        query = {
            "can_resume": True,
            "status": {"$in": [CheckpointStatus.IN_PROGRESS, CheckpointStatus.FAILED]}
        }
        if subject_id:
            query["subject_id"] = subject_id

        cursor = self.collection.find(query).sort("updated_at", -1).limit(limit)
        return await cursor.to_list(length=limit)

    async def delete_checkpoint(self, job_id: str) -> bool:
        """Delete a checkpoint."""
        result = await self.collection.delete_one({"_id": job_id})
        return result.deleted_count > 0

    async def cleanup_completed(self, older_than_days: int = 7) -> int:
        """Delete completed checkpoints older than the given number of days."""
        cutoff = get_utc_now() - timedelta(days=older_than_days)
        result = await self.collection.delete_many({
            "status": CheckpointStatus.COMPLETED,
            "completed_at": {"$lt": cutoff}
        })
        return result.deleted_count
