"""Job repository for CRUD operations on Jobs collection."""
from typing import Optional, List, Dict, Any
from datetime import datetime, timedelta
from motor.motor_asyncio import AsyncIOMotorDatabase
from shared.errors import ClaimConflictError, JobNotFoundError
from shared.utils import generate_job_id, get_utc_now


class JobStatus:
    """Job status constants."""
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

    ALL = (PENDING, PROCESSING, COMPLETED, FAILED)


class JobType:
    """Document kinds the engine can generate."""
    BUSINESS_PLAN = "BUSINESS_PLAN"
    DELIVERABLE = "DELIVERABLE"

    ALL = (BUSINESS_PLAN, DELIVERABLE)


class JobRepository:
    """
    Repository for Job CRUD operations.

    Every claim increments ``attempt``. Writes made on behalf of a run pass
    the attempt they were claimed with, so a run that lost the job to a
    newer attempt cannot change it.
    """

    def __init__(self, db: AsyncIOMotorDatabase):
        self.collection = db.jobs

    @staticmethod
    def _owned(job_id: str, attempt: Optional[int]) -> Dict[str, Any]:
        query = {"_id": job_id, "status": JobStatus.PROCESSING}
        if attempt is not None:
            query["attempt"] = attempt
        return query

    async def create_job(
        self,
        job_type: str,
        payload: Dict[str, Any],
        job_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """Create a new PENDING job record."""
        now = get_utc_now()

        job = {
            "_id": job_id or generate_job_id(),
            "type": job_type,
            "status": JobStatus.PENDING,
            "progress": 0,
            "error": None,
            "result": None,
            "retry_count": 0,
            "attempt": 0,
            "retryable": False,
            "payload": payload,
            "cancel_requested": False,
            "created_at": now,
            "updated_at": now,
            "started_at": None,
            "completed_at": None
        }

        await self.collection.insert_one(job)
        return job

    async def get_job(self, job_id: str) -> Optional[Dict[str, Any]]:
        """Get a job by ID."""
        return await self.collection.find_one({"_id": job_id})

    async def claim_job(self, job_id: str) -> Dict[str, Any]:
        """
        Move a PENDING job to PROCESSING.

        The status filter makes this a compare-and-swap: of two callers racing
        on the same job exactly one gets the document back.
        """
        now = get_utc_now()
        job = await self.collection.find_one_and_update(
            {"_id": job_id, "status": JobStatus.PENDING},
            {
                "$set": {
                    "status": JobStatus.PROCESSING,
                    "started_at": now,
                    "updated_at": now
                },
                "$inc": {"attempt": 1}
            },
            return_document=True
        )
        if job is None:
            await self._raise_claim_failure(job_id)
        return job

    async def reclaim_failed_job(self, job_id: str) -> Dict[str, Any]:
        """Move a FAILED job back to PROCESSING for a resume attempt."""
        job = await self.collection.find_one_and_update(
            {"_id": job_id, "status": JobStatus.FAILED},
            {
                "$set": {
                    "status": JobStatus.PROCESSING,
                    "error": None,
                    "result": None,
                    "retryable": False,
                    "cancel_requested": False,
                    "completed_at": None,
                    "updated_at": get_utc_now()
                },
                "$inc": {"attempt": 1}
            },
            return_document=True
        )
        if job is None:
            await self._raise_claim_failure(job_id)
        return job

    async def _raise_claim_failure(self, job_id: str):
        existing = await self.get_job(job_id)
        if not existing:
            raise JobNotFoundError(job_id)
        raise ClaimConflictError(job_id, existing["status"])

    async def release_job(self, job_id: str, error: str, attempt: Optional[int] = None) -> bool:
        """Return a job that never ran back to FAILED without counting a retry."""
        result = await self.collection.update_one(
            self._owned(job_id, attempt),
            {
                "$set": {
                    "status": JobStatus.FAILED,
                    "error": error,
                    "retryable": False,
                    "updated_at": get_utc_now()
                }
            }
        )
        return result.modified_count > 0

    async def complete_job(
        self,
        job_id: str,
        result: Dict[str, Any],
        attempt: Optional[int] = None
    ) -> bool:
        """Mark a PROCESSING job as completed."""
        now = get_utc_now()
        update = await self.collection.update_one(
            self._owned(job_id, attempt),
            {
                "$set": {
                    "status": JobStatus.COMPLETED,
                    "result": result,
                    "error": None,
                    "retryable": False,
                    "progress": 100,
                    "updated_at": now,
                    "completed_at": now
                }
            }
        )
        return update.modified_count > 0

    async def fail_job(
        self,
        job_id: str,
        error: str,
        attempt: Optional[int] = None,
        retryable: bool = False
    ) -> bool:
        """
        Mark a PROCESSING job as failed.

        ``retryable`` jobs are picked up again by the worker once their
        backoff has elapsed.
        """
        now = get_utc_now()
        result = await self.collection.update_one(
            self._owned(job_id, attempt),
            {
                "$set": {
                    "status": JobStatus.FAILED,
                    "error": error,
                    "retryable": retryable,
                    "updated_at": now,
                    "completed_at": now
                },
                "$inc": {"retry_count": 1}
            }
        )
        return result.modified_count > 0

    async def fail_stale_job(
        self,
        job_id: str,
        error: str,
        cutoff: datetime,
        retryable: bool = False
    ) -> bool:
        """Fail a PROCESSING job only if it still has not been updated since ``cutoff``."""
        now = get_utc_now()
        result = await self.collection.update_one(
            {
                "_id": job_id,
                "status": JobStatus.PROCESSING,
                "updated_at": {"$lt": cutoff}
            },
            {
                "$set": {
                    "status": JobStatus.FAILED,
                    "error": error,
                    "retryable": retryable,
                    "updated_at": now,
                    "completed_at": now
                },
                "$inc": {"retry_count": 1}
            }
        )
        return result.modified_count > 0

    async def disable_retry(self, job_id: str) -> bool:
        """Stop automatic retries of a FAILED job; manual resume is unaffected."""
        result = await self.collection.update_one(
            {"_id": job_id, "status": JobStatus.FAILED},
            {"$set": {"retryable": False}}
        )
        return result.modified_count > 0

    async def update_progress(self, job_id: str, percent: int, attempt: Optional[int] = None) -> bool:
        """Update advisory progress. Also refreshes updated_at for stale detection."""
        result = await self.collection.update_one(
            self._owned(job_id, attempt),
            {
                "$set": {
                    "progress": max(0, min(100, int(percent))),
                    "updated_at": get_utc_now()
                }
            }
        )
        return result.modified_count > 0

    async def request_cancel(self, job_id: str) -> bool:
        """Flag a pending or running job for cancellation at the next section boundary."""
        result = await self.collection.update_one(
            {
                "_id": job_id,
                "status": {"$in": [JobStatus.PENDING, JobStatus.PROCESSING]}
            },
            {
                "$set": {
                    "cancel_requested": True,
                    "updated_at": get_utc_now()
                }
            }
        )
        return result.modified_count > 0

    async def is_cancel_requested(self, job_id: str) -> bool:
        """Check the cancellation flag."""
        job = await self.collection.find_one(
            {"_id": job_id},
            {"cancel_requested": 1}
        )
        return bool(job and job.get("cancel_requested"))

    async def next_pending_job(self) -> Optional[Dict[str, Any]]:
        """Oldest PENDING job, or None."""
        return await self.collection.find_one(
            {"status": JobStatus.PENDING},
            sort=[("created_at", 1)]
        )

    async def list_stale_jobs(self, cutoff: datetime, limit: int = 100) -> List[Dict[str, Any]]:
        """PROCESSING jobs with no update since ``cutoff``."""
        cursor = self.collection.find({
            "status": JobStatus.PROCESSING,
            "updated_at": {"$lt": cutoff}
        }).limit(limit)
        return await cursor.to_list(length=limit)

    async def list_retry_candidates(self, cutoff: datetime, limit: int = 20) -> List[Dict[str, Any]]:
        """Retryable FAILED jobs last updated before ``cutoff``, oldest first."""
        cursor = self.collection.find({
            "status": JobStatus.FAILED,
            "retryable": True,
            "cancel_requested": {"$ne": True},
            "updated_at": {"$lt": cutoff}
        }).sort("updated_at", 1).limit(limit)
        return await cursor.to_list(length=limit)

    async def get_job_status(self, job_id: str) -> Optional[Dict[str, Any]]:
        """Get job status information."""
        job = await self.get_job(job_id)
        if not job:
            return None

        return {
            "job_id": job["_id"],
            "type": job["type"],
            "status": job["status"],
            "progress": job.get("progress", 0),
            "error": job.get("error"),
            "result": job.get("result"),
            "retry_count": job.get("retry_count", 0),
            "created_at": job["created_at"],
            "started_at": job.get("started_at"),
            "completed_at": job.get("completed_at")
        }

    async def list_jobs(
        self,
        status: Optional[str] = None,
        job_type: Optional[str] = None,
        limit: int = 50,
        skip: int = 0
    ) -> List[Dict[str, Any]]:
        """List jobs with optional status and type filters."""
        query = {}
        if status:
            query["status"] = status
        if job_type:
            query["type"] = job_type

        cursor = self.collection.find(query).sort("created_at", -1).skip(skip).limit(limit)
        return await cursor.to_list(length=limit)

    async def get_metrics(self, sample_size: int = 100) -> Dict[str, Any]:
        """
        Queue metrics: counts per status, success rate over finished jobs and
        average processing time of the most recent completed jobs.
        """
        counts = {}
        for status in JobStatus.ALL:
            counts[status] = await self.collection.count_documents({"status": status})

        finished = counts[JobStatus.COMPLETED] + counts[JobStatus.FAILED]
        success_rate = counts[JobStatus.COMPLETED] / finished * 100 if finished else 0.0

        cursor = self.collection.find({
            "status": JobStatus.COMPLETED,
            "started_at": {"$ne": None},
            "completed_at": {"$ne": None}
        }).sort("completed_at", -1).limit(sample_size)
        recent = await cursor.to_list(length=sample_size)

        durations = [(job["completed_at"] - job["started_at"]).total_seconds() for job in recent]
        average = sum(durations) / len(durations) if durations else 0.0

        return {
            "total": sum(counts.values()),
            "by_status": counts,
            "success_rate": round(success_rate, 2),
            "average_processing_seconds": round(average, 2)
        }

    async def cleanup_old_jobs(self, older_than_days: int = 30) -> int:
        """Delete completed jobs older than the given number of days."""
        cutoff = get_utc_now() - timedelta(days=older_than_days)
        result = await self.collection.delete_many({
            "status": JobStatus.COMPLETED,
            "completed_at": {"$lt": cutoff}
        })
        return result.deleted_count
