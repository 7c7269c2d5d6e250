# SPDX-FileCopyrightText: Copyright (c) 2024-2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""FastAPI main application module."""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from mindscribe import __version__
from mindscribe.database import close_db, init_db
from mindscribe.deps import Settings, get_settings
from mindscribe.exceptions import ScribeError
from mindscribe.models.api import ErrorResponse
from mindscribe.routers import health, notes, patients, sessions, transcriptions
from mindscribe.services.llm import NoteGenerator
from mindscribe.services.storage import StorageManager
from mindscribe.services.transcription_service import AssemblyAIClient
from mindscribe.utils.logging import configure_logging
from mindscribe.workers.pipeline import SessionPipeline

logger = logging.getLogger(__name__)


def _error_response(status_code: int, error: str, detail=None, code=None) -> JSONResponse:
    body = ErrorResponse(error=error, detail=detail, code=code)
    return JSONResponse(status_code=status_code, content=body.model_dump())


async def scribe_error_handler(request: Request, exc: ScribeError) -> JSONResponse:
    """Render domain errors as ErrorResponse."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return _error_response(exc.status_code, exc.message, exc.provider_message, exc.code)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Request body and parameter validation errors are client errors (400)."""
    problems = "; ".join(
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}" for error in exc.errors()
    )
    return _error_response(
        status.HTTP_400_BAD_REQUEST, "Invalid request", problems, "validation_error"
    )


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Render framework HTTP errors in the same envelope as domain errors."""
    return _error_response(exc.status_code, str(exc.detail), code=f"http_{exc.status_code}")


def create_app(
    settings: Optional[Settings] = None,
    transcription_client: Optional[AssemblyAIClient] = None,
    note_generator: Optional[NoteGenerator] = None,
) -> FastAPI:
    """
    Build the API application.

    Args:
        settings: Settings to use instead of the environment
        transcription_client: Transcription gateway override
        note_generator: Note-generation gateway override

    Returns:
        Configured FastAPI app
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Lifespan context manager for startup and shutdown events."""
        # Startup
        configure_logging(settings.log_level)
        session_factory = await init_db(settings.database_url, echo=settings.database_echo)

        app.state.storage = StorageManager(settings.upload_dir)
        app.state.pipeline = SessionPipeline(
            session_factory=session_factory,
            storage=app.state.storage,
            transcriber=transcription_client or AssemblyAIClient.from_settings(settings),
            note_generator=note_generator or NoteGenerator.from_settings(settings),
            auto_generate_notes=settings.auto_generate_notes,
        )
        await app.state.pipeline.recover_interrupted()
        logger.info(f"{settings.api_title} {settings.api_version} started")

        yield
        # Shutdown
        await app.state.pipeline.shutdown()
        await close_db()

    app = FastAPI(
        title=settings.api_title,
        description="Clinical session transcription and SOAP/DARE note generation",
        version=__version__,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
        lifespan=lifespan,
    )
    app.dependency_overrides[get_settings] = lambda: settings

    # Rate limiter
    sessions.limiter.enabled = settings.rate_limit_enabled
    app.state.limiter = sessions.limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    app.add_exception_handler(ScribeError, scribe_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(health.router)
    app.include_router(sessions.router)
    app.include_router(transcriptions.router)
    app.include_router(notes.router)
    app.include_router(patients.router)

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "message": "MindScribe API - Clinical Session Documentation",
            "version": __version__,
            "docs": "/api/docs",
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("mindscribe.main:app", host="0.0.0.0", port=8000, reload=True)
