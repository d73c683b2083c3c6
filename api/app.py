"""
AI Visibility Engine API

FastAPI application:
1. Initializes the database on startup
2. Exposes health endpoints
3. Mounts the assessments router
"""

import logging
import sys

from fastapi import FastAPI

from visibility import __version__
from visibility.database import check_db_connection, init_db
from visibility.utils.config import get_settings

from api.assessments import router as assessments_router

settings = get_settings()

# Configure logging to stdout
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    stream=sys.stdout,
    force=True,
)
logger = logging.getLogger(__name__)

# Quiet down chatty loggers
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)

app = FastAPI(
    title="AI Visibility Engine",
    description="Measures how visible a company is inside AI-generated answers",
    version=__version__,
)

app.include_router(assessments_router)


# ============================================================================
# STARTUP - Initialize Database
# ============================================================================

@app.on_event("startup")
async def startup_event():
    """Initialize database on startup."""
    logger.info("Initializing database...")
    try:
        init_db()
        if check_db_connection():
            logger.info("Database connection verified")
        else:
            logger.warning("Database connection check failed - continuing anyway")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")


# ============================================================================
# HEALTH
# ============================================================================

@app.get("/")
async def root():
    return {
        "service": "AI Visibility Engine",
        "version": __version__,
        "status": "running",
    }


@app.get("/api/health")
async def health():
    """Health check with dependency status."""
    return {
        "status": "healthy",
        "environment": settings.ENVIRONMENT,
        "database": "connected" if check_db_connection() else "unavailable",
        "answer_engine": "configured" if settings.PERPLEXITY_API_KEY else "not configured",
    }


# ============================================================================
# RUN SERVER
# ============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "api.app:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.ENVIRONMENT == "development",
    )
