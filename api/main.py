"""Main FastAPI application."""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from database.connection import DatabaseConnection
from api.routes import jobs_router, checkpoints_router
from shared.config import settings
from shared.errors import EngineError

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

ERROR_STATUS_CODES = {
    "NOT_FOUND": 404,
    "NOT_RESUMABLE": 409,
    "NOT_CANCELLABLE": 409,
    "CLAIM_CONFLICT": 409,
    "UNKNOWN_JOB_TYPE": 422,
    "INVALID_PROMPT_CONTEXT": 422,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    # Startup
    await DatabaseConnection.init_mongo()
    await DatabaseConnection.init_redis()

    yield

    # Shutdown
    await DatabaseConnection.close_connections()


# Create FastAPI app
app = FastAPI(
    title="Document Generation Engine",
    description="Checkpointed, resumable generation of multi-section client documents",
    version="1.0.0",
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(EngineError)
async def engine_exception_handler(request: Request, exc: EngineError):
    """Map engine errors to their stable codes."""
    status_code = ERROR_STATUS_CODES.get(exc.code, 500)
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(
        status_code=status_code,
        content={"error": exc.code, "detail": exc.message}
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler."""
    logger.exception(f"{request.method} {request.url.path} raised")
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "detail": str(exc)}
    )


# Include routers
app.include_router(jobs_router)
app.include_router(checkpoints_router)


# Health check endpoint
@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


@app.get("/")
async def root():
    """Root endpoint with API info."""
    return {
        "name": "Document Generation Engine",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health"
    }


def run():
    import uvicorn
    uvicorn.run(
        "api.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_debug
    )


if __name__ == "__main__":
    run()
