"""FastAPI dependencies."""
from fastapi import Depends
from motor.motor_asyncio import AsyncIOMotorDatabase
import redis.asyncio as redis

from database.connection import get_db, get_redis
from api.services.generation_service import GenerationService


async def get_generation_service(
    db: AsyncIOMotorDatabase = Depends(get_db),
    redis_client: redis.Redis = Depends(get_redis)
) -> GenerationService:
    """Dependency for the generation service."""
    return GenerationService(db, redis_client)
