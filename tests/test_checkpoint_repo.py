"""Checkpoint repository tests."""
import pytest
from datetime import timedelta
from types import SimpleNamespace

from database.repositories.checkpoint_repo import CheckpointRepository, CheckpointStatus
from shared.errors import CheckpointPersistenceError
from shared.utils import get_utc_now


SECTION = {"name": "summary", "title": "Summary", "content": "## Summary"}


class TestCheckpointQueries:
    """Tests for the updates sent to MongoDB."""

    @pytest.mark.asyncio
    async def test_append_is_single_update_pinned_to_cursor(self, mock_mongo_db):
        """Test content, count and cursor move in one conditional update."""
        mock_mongo_db.checkpoints.find_one_and_update.return_value = {
            "_id": "job_1", "completed_sections": 3, "current_section": 3
        }
        repo = CheckpointRepository(mock_mongo_db)

        await repo.append_section("job_1", SECTION, expected_cursor=2)

        mock_mongo_db.checkpoints.find_one_and_update.assert_called_once()
        query, update = mock_mongo_db.checkpoints.find_one_and_update.call_args[0]
        assert query == {
            "_id": "job_1",
            "status": CheckpointStatus.IN_PROGRESS,
            "current_section": 2,
            "total_sections": {"$gt": 2}
        }
        assert update["$push"] == {"generated_content": SECTION}
        assert update["$inc"] == {"completed_sections": 1, "current_section": 1}

    @pytest.mark.asyncio
    async def test_append_without_match_raises(self, mock_mongo_db):
        """Test a cursor mismatch surfaces as a persistence error."""
        mock_mongo_db.checkpoints.find_one_and_update.return_value = None
        repo = CheckpointRepository(mock_mongo_db)

        with pytest.raises(CheckpointPersistenceError) as exc_info:
            await repo.append_section("job_1", SECTION, expected_cursor=2)

        assert exc_info.value.retriable is True

    @pytest.mark.asyncio
    async def test_mark_failed_never_touches_completed(self, mock_mongo_db):
        """Test mark_failed excludes COMPLETED checkpoints."""
        mock_mongo_db.checkpoints.update_one.return_value = SimpleNamespace(modified_count=0)
        repo = CheckpointRepository(mock_mongo_db)

        assert await repo.mark_failed("job_1", "HTTP 503", can_resume=True) is False

        query, update = mock_mongo_db.checkpoints.update_one.call_args[0]
        assert query["status"] == {"$ne": CheckpointStatus.COMPLETED}
        assert update["$set"]["can_resume"] is True
        assert update["$set"]["error_message"] == "HTTP 503"


class TestCheckpointLifecycle:
    """Tests for checkpoint transitions against the in-memory database."""

    @pytest.mark.asyncio
    async def test_new_checkpoint_starts_at_zero(self, checkpoint_repo):
        """Test create_checkpoint initial state."""
        checkpoint = await checkpoint_repo.create_checkpoint(
            "job_1", "BUSINESS_PLAN", "client_1", 4, {"brand_name": "Glow Co"}
        )

        assert checkpoint["current_section"] == 0
        assert checkpoint["completed_sections"] == 0
        assert checkpoint["generated_content"] == []
        assert checkpoint["status"] == CheckpointStatus.IN_PROGRESS
        assert checkpoint["can_resume"] is True

    @pytest.mark.asyncio
    async def test_duplicate_append_is_rejected(self, checkpoint_repo):
        """Test the same cursor cannot be appended twice."""
        await checkpoint_repo.create_checkpoint("job_1", "BUSINESS_PLAN", "client_1", 4, {})
        await checkpoint_repo.append_section("job_1", SECTION, expected_cursor=0)

        with pytest.raises(CheckpointPersistenceError):
            await checkpoint_repo.append_section("job_1", SECTION, expected_cursor=0)

        checkpoint = await checkpoint_repo.get_checkpoint("job_1")
        assert checkpoint["completed_sections"] == 1
        assert len(checkpoint["generated_content"]) == 1

    @pytest.mark.asyncio
    async def test_append_beyond_total_is_rejected(self, checkpoint_repo):
        """Test the cursor never passes total_sections."""
        await checkpoint_repo.create_checkpoint("job_1", "BUSINESS_PLAN", "client_1", 1, {})
        await checkpoint_repo.append_section("job_1", SECTION, expected_cursor=0)

        with pytest.raises(CheckpointPersistenceError):
            await checkpoint_repo.append_section("job_1", SECTION, expected_cursor=1)

    @pytest.mark.asyncio
    async def test_failed_checkpoint_rejects_appends_until_reopened(self, checkpoint_repo):
        """Test a FAILED checkpoint keeps content and accepts appends after reopen."""
        await checkpoint_repo.create_checkpoint("job_1", "BUSINESS_PLAN", "client_1", 4, {})
        await checkpoint_repo.append_section("job_1", SECTION, expected_cursor=0)
        await checkpoint_repo.mark_failed("job_1", "HTTP 503", can_resume=True)

        with pytest.raises(CheckpointPersistenceError):
            await checkpoint_repo.append_section("job_1", SECTION, expected_cursor=1)

        reopened = await checkpoint_repo.reopen("job_1")
        assert reopened["status"] == CheckpointStatus.IN_PROGRESS
        assert reopened["error_message"] is None
        assert reopened["completed_sections"] == 1

        await checkpoint_repo.append_section("job_1", SECTION, expected_cursor=1)

    @pytest.mark.asyncio
    async def test_reopen_refuses_non_resumable(self, checkpoint_repo):
        """Test reopen needs can_resume."""
        await checkpoint_repo.create_checkpoint("job_1", "BUSINESS_PLAN", "client_1", 4, {})
        await checkpoint_repo.mark_failed("job_1", "HTTP 400", can_resume=False)

        assert await checkpoint_repo.reopen("job_1") is None

    @pytest.mark.asyncio
    async def test_completed_checkpoint_is_final(self, checkpoint_repo):
        """Test a COMPLETED checkpoint cannot be failed or reopened."""
        await checkpoint_repo.create_checkpoint("job_1", "BUSINESS_PLAN", "client_1", 1, {})
        await checkpoint_repo.append_section("job_1", SECTION, expected_cursor=0)
        assert await checkpoint_repo.mark_completed("job_1") is True

        assert await checkpoint_repo.mark_failed("job_1", "late", can_resume=True) is False
        assert await checkpoint_repo.mark_completed("job_1") is False
        assert await checkpoint_repo.reopen("job_1") is None

        checkpoint = await checkpoint_repo.get_checkpoint("job_1")
        assert checkpoint["status"] == CheckpointStatus.COMPLETED
        assert checkpoint["can_resume"] is False

    @pytest.mark.asyncio
    async def test_cleanup_removes_only_old_completed(self, checkpoint_repo, fake_db):
        """Test housekeeping keeps failed and recent checkpoints."""
        for job_id in ("old_done", "new_done", "old_failed"):
            await checkpoint_repo.create_checkpoint(job_id, "BUSINESS_PLAN", "client_1", 1, {})
        await checkpoint_repo.mark_completed("old_done")
        await checkpoint_repo.mark_completed("new_done")
        await checkpoint_repo.mark_failed("old_failed", "HTTP 503", can_resume=True)

        long_ago = get_utc_now() - timedelta(days=30)
        fake_db.checkpoints.documents["old_done"]["completed_at"] = long_ago
        fake_db.checkpoints.documents["old_failed"]["updated_at"] = long_ago

        deleted = await checkpoint_repo.cleanup_completed(older_than_days=7)

        assert deleted == 1
        assert set(fake_db.checkpoints.documents) == {"new_done", "old_failed"}
