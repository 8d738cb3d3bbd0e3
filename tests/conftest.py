"""Pytest configuration and fixtures."""
import pytest
from unittest.mock import MagicMock, AsyncMock

from api.services.generation_service import GenerationService
from database.repositories.job_repo import JobRepository
from database.repositories.checkpoint_repo import CheckpointRepository
from database.repositories.document_repo import DocumentRepository
from database.repositories.activity_repo import ActivityRepository
from database.repositories.subject_repo import SubjectRepository
from generator import sections
from generator.orchestrator import GenerationOrchestrator
from generator.sections import SectionDefinition
from tests.fakes import FakeDatabase, ScriptedGenerationClient


FOUR_SECTION_CATALOG = (
    SectionDefinition(name="summary", title="Summary", order=1),
    SectionDefinition(name="market", title="Market", order=2),
    SectionDefinition(name="offer", title="Offer", order=3),
    SectionDefinition(name="finances", title="Finances", order=4),
)


@pytest.fixture
def mock_mongo_db():
    """Create mock MongoDB database."""
    db = MagicMock()

    for name in ("jobs", "checkpoints", "documents", "activities", "clients"):
        collection = MagicMock()
        collection.find_one = AsyncMock()
        collection.insert_one = AsyncMock()
        collection.update_one = AsyncMock()
        collection.find_one_and_update = AsyncMock()
        collection.delete_one = AsyncMock()
        collection.delete_many = AsyncMock()
        collection.count_documents = AsyncMock()
        collection.find = MagicMock()
        setattr(db, name, collection)

    return db


@pytest.fixture
def mock_redis_client():
    """Create mock Redis client."""
    redis = AsyncMock()

    redis.get = AsyncMock(return_value=None)
    redis.set = AsyncMock(return_value=True)
    redis.incr = AsyncMock(return_value=1)
    redis.expire = AsyncMock(return_value=True)

    return redis


@pytest.fixture
def fake_db():
    """In-memory database with one existing client."""
    db = FakeDatabase()
    db.clients.documents["client_1"] = {"_id": "client_1", "brand_name": "Glow Co"}
    return db


@pytest.fixture
def four_section_catalog(monkeypatch):
    """Swap the business plan catalog for a four-section one."""
    monkeypatch.setitem(sections.SECTION_CATALOGS, "BUSINESS_PLAN", FOUR_SECTION_CATALOG)
    return FOUR_SECTION_CATALOG


@pytest.fixture
def business_plan_context():
    """Create a sample business plan prompt context."""
    return {
        "creator_name": "Ava Stone",
        "brand_name": "Glow Co",
        "vision_statement": "Clean skincare for busy creators",
        "target_industry": "Beauty",
        "target_audience": "Women 25-40 who follow wellness creators",
        "products_services": ["Serum", "Cleanser"],
        "competitors": ["Glossier", "Drunk Elephant"],
        "scaling_goals": "$1M revenue in year two",
    }


@pytest.fixture
def generation_client():
    """Scripted generation client."""
    return ScriptedGenerationClient()


@pytest.fixture
def job_repo(fake_db):
    return JobRepository(fake_db)


@pytest.fixture
def checkpoint_repo(fake_db):
    return CheckpointRepository(fake_db)


@pytest.fixture
def orchestrator(fake_db, generation_client):
    """Orchestrator over the in-memory database."""
    return GenerationOrchestrator(
        job_repo=JobRepository(fake_db),
        checkpoint_repo=CheckpointRepository(fake_db),
        document_repo=DocumentRepository(fake_db),
        activity_repo=ActivityRepository(fake_db),
        client=generation_client,
        subject_repo=SubjectRepository(fake_db),
        max_attempts=5
    )


@pytest.fixture
def service(fake_db, mock_redis_client, orchestrator):
    """Generation service over the in-memory database."""
    return GenerationService(fake_db, mock_redis_client, orchestrator=orchestrator)
