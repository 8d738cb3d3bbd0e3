# Routes module
from .jobs import router as jobs_router
from .checkpoints import router as checkpoints_router

__all__ = ["jobs_router", "checkpoints_router"]
