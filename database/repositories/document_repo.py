"""Document repository: versioned generated documents per subject."""
from typing import Optional, Dict, Any
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError
from shared.utils import generate_document_id, get_utc_now


class DocumentStatus:
    """Document status constants."""
    DRAFT = "DRAFT"
    APPROVED = "APPROVED"


class DocumentRepository:
    """Repository for generated document versions."""

    def __init__(self, db: AsyncIOMotorDatabase, max_version_attempts: int = 3):
        self.collection = db.documents
        self.max_version_attempts = max_version_attempts

    async def get_latest(self, subject_id: str, document_type: str) -> Optional[Dict[str, Any]]:
        """Get the highest version of a subject's document."""
        return await self.collection.find_one(
            {"subject_id": subject_id, "document_type": document_type},
            sort=[("version", -1)]
        )

    async def save_version(
        self,
        subject_id: str,
        document_type: str,
        body: str,
        job_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Store ``body`` as the next version of the subject's document.

        Versions are unique per (subject, type); a concurrent writer taking
        the same number triggers a retry with the next one.
        """
        for _ in range(self.max_version_attempts):
            latest = await self.get_latest(subject_id, document_type)
            version = latest["version"] + 1 if latest else 1

            document = {
                "_id": generate_document_id(),
                "subject_id": subject_id,
                "document_type": document_type,
                "version": version,
                "content_markdown": body,
                "status": DocumentStatus.DRAFT,
                "job_id": job_id,
                "created_at": get_utc_now()
            }

            try:
                await self.collection.insert_one(document)
            except DuplicateKeyError:
                continue

            return {"document_id": document["_id"], "version": version}

        raise RuntimeError(
            f"Could not allocate a document version for {subject_id}/{document_type}"
        )
