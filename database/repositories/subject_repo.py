"""Read-only access to the subjects (clients) documents are generated for."""
from motor.motor_asyncio import AsyncIOMotorDatabase


class SubjectRepository:
    """Lookup of subject records."""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.collection = db.clients

    async def subject_exists(self, subject_id: str) -> bool:
        """Check that a subject exists and is not archived."""
        count = await self.collection.count_documents(
            {"_id": subject_id, "archived": {"$ne": True}},
            limit=1
        )
        return count > 0
