"""
FastAPI application entry point.

Run with: uvicorn story_coach.main:app --reload
"""

from contextlib import asynccontextmanager
import uuid

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from story_coach import __version__
from story_coach.core.config import settings
from story_coach.core.logging import configure_logging, get_logger, bind_context, clear_context
from story_coach.api.routes import archetypes, coaching, health, stories
from story_coach.api.exception_handlers import setup_exception_handlers

# Configure logging before anything else
configure_logging(write_file=not settings.debug)
log = get_logger(__name__)


# =============================================================================
# Correlation ID Middleware
# =============================================================================


class CorrelationIDMiddleware(BaseHTTPMiddleware):
    """
    Middleware that adds a unique correlation ID to each request.

    - Generates a UUID4 request_id for each incoming request
    - Binds it to structlog context for all logs in that request
    - Adds X-Request-ID header to responses
    """

    async def dispatch(self, request: Request, call_next):
        request_id = str(uuid.uuid4())
        bind_context(request_id=request_id)

        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            clear_context()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Handles startup and shutdown events.
    """
    log.info(
        "application_starting",
        debug=settings.debug,
        llm_enabled=settings.llm_enabled,
    )

    yield

    log.info("application_shutting_down")


app = FastAPI(
    title="Story Coach",
    description="Turns career journal entries into compelling, evidence-backed stories",
    version=__version__,
    lifespan=lifespan,
    debug=settings.debug,
)

# CORS middleware for development
if settings.debug:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

app.add_middleware(CorrelationIDMiddleware)

setup_exception_handlers(app)

app.include_router(health.router, tags=["system"])
app.include_router(archetypes.router)
app.include_router(coaching.router)
app.include_router(stories.router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "story_coach.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
