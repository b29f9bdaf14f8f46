"""
FastAPI main application
"""

import logging

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from mealrelay.core.config import settings
from mealrelay.api.router import api_router
from mealrelay.db.database import SessionLocal
from mealrelay.domain.exceptions import (
    BadRequest,
    Conflict,
    DomainError,
    Forbidden,
    InvalidTransition,
    NotFound,
    TransientFailure,
)

# Import all ORM models to ensure relationships are resolved
import mealrelay.infrastructure.orm  # noqa: F401

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    # Startup - migrations handle database schema
    logger.info(f"Starting {settings.PROJECT_NAME} API ({settings.ENVIRONMENT})")
    yield
    logger.info(f"Shutting down {settings.PROJECT_NAME} API")


app = FastAPI(
    title=f"{settings.PROJECT_NAME} API",
    description=settings.DESCRIPTION,
    version=settings.VERSION,
    lifespan=lifespan
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_HOSTS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_STATUS_BY_ERROR = (
    (NotFound, status.HTTP_404_NOT_FOUND),
    (InvalidTransition, status.HTTP_409_CONFLICT),
    (Conflict, status.HTTP_409_CONFLICT),
    (BadRequest, status.HTTP_400_BAD_REQUEST),
    (Forbidden, status.HTTP_403_FORBIDDEN),
)


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError):
    code = next((c for cls, c in _STATUS_BY_ERROR if isinstance(exc, cls)), status.HTTP_400_BAD_REQUEST)
    body = {"detail": exc.message}
    if isinstance(exc, InvalidTransition):
        body["current_status"] = exc.current.value
        body["valid_transitions"] = [s.value for s in exc.valid_next]
    return JSONResponse(status_code=code, content=body)


@app.exception_handler(TransientFailure)
async def transient_failure_handler(request: Request, exc: TransientFailure):
    logger.warning(f"{request.method} {request.url.path} failed transiently: {exc.message}")
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": exc.message},
        headers={"Retry-After": str(exc.retry_after_seconds)},
    )


# Include API routes
app.include_router(api_router, prefix=settings.API_V1_PREFIX)


@app.get("/")
async def root():
    """Root endpoint"""
    return {"message": f"{settings.PROJECT_NAME} API", "version": settings.VERSION}


@app.get("/health")
async def health_check():
    """Health check endpoint that verifies database connectivity"""
    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
        db_status = "healthy"
    except SQLAlchemyError as e:
        logger.error(f"Database health check failed: {e}")
        db_status = "unhealthy"
    finally:
        db.close()

    return {
        "status": "healthy" if db_status == "healthy" else "degraded",
        "database": db_status,
        "version": settings.VERSION,
    }


if __name__ == "__main__":
    uvicorn.run(
        "mealrelay.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower()
    )
