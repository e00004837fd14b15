"""
Main FastAPI application for the testgen backend.
Handles CORS, request logging middleware, lifespan events, error mapping and router registration.
"""
import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Dict, Type

import httpx
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from testgen.config import settings
from testgen.exceptions import (
    ConversionError,
    DocumentParseError,
    GenerationTimeoutError,
    MalformedProviderResponseError,
    MoodleAPIError,
    MoodleNotConfiguredError,
    NoStrategySetError,
    ParserIOError,
    ProviderError,
    ProviderNotConfiguredError,
    TestGenError,
    UnknownProviderError,
    UnsupportedFileTypeError,
)
from testgen.routers import documents, generation, health, moodle
from testgen.services.document_parser import build_parser_factory
from testgen.services.llm_factory import LLMFactory
from testgen.services.moodle_client import MoodleClient
from testgen.services.moodle_exporter import MoodleXMLExporter

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the service singletons at startup and release the HTTP pool at shutdown."""
    logger.info("=" * 60)
    logger.info("  Starting testgen backend …")
    logger.info("=" * 60)

    # Parsers are registered once here; the registry is read-only afterwards
    app.state.parser_factory = build_parser_factory()

    http_client = httpx.AsyncClient(timeout=httpx.Timeout(settings.LLM_TIMEOUT, connect=10.0))
    app.state.llm_factory = LLMFactory.from_settings(http_client=http_client)
    app.state.exporter = MoodleXMLExporter()
    app.state.moodle_client = (
        MoodleClient.from_settings(http_client=http_client)
        if settings.MOODLE_URL and settings.MOODLE_TOKEN
        else None
    )

    providers = app.state.llm_factory.available_providers()
    if providers:
        logger.info("✓ LLM providers configured: %s", ", ".join(providers))
    else:
        logger.warning("⚠ No LLM provider has credentials — generation requests will fail")

    if app.state.moodle_client is not None:
        logger.info("✓ Moodle web service: %s", app.state.moodle_client.base_url)
    else:
        logger.info("  Moodle web service not configured — /api/moodle routes will return 503")

    logger.info("  testgen backend ready on http://%s:%d", settings.HOST, settings.PORT)
    logger.info("=" * 60)

    yield  # ← server is running

    logger.info("Shutting down testgen backend …")
    await http_client.aclose()
    logger.info("✓ Shutdown complete.")


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------

app = FastAPI(
    title="testgen API",
    description=(
        "**testgen** — generate quizzes from study material and export them to Moodle.\n\n"
        "Key endpoints:\n"
        "- `POST /api/documents/parse` — extract text from PDF/DOCX/PPTX/TXT/MD\n"
        "- `POST /api/tests/generate` — generate questions with an LLM provider\n"
        "- `POST /api/tests/export/moodle` — download questions as Moodle XML\n"
        "- `POST /api/moodle/sync` — import questions into a Moodle course\n"
    ),
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)


# ---------------------------------------------------------------------------
# CORS
# ---------------------------------------------------------------------------

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_allowed_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Request / response logging middleware
# ---------------------------------------------------------------------------

@app.middleware("http")
async def log_requests(request: Request, call_next):
    """
    Log every request with method, path, status code, and elapsed time.
    Attaches an ``X-Process-Time`` header (milliseconds) to every response.
    """
    t0 = time.monotonic()
    response = await call_next(request)
    elapsed_ms = round((time.monotonic() - t0) * 1000, 2)

    if request.url.path not in ("/api/health/", "/"):
        logger.info(
            "%s %s → %d  (%.2f ms)",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
        )

    response.headers["X-Process-Time"] = f"{elapsed_ms}ms"
    return response


# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------

# Looked up along the exception's MRO, so subclasses inherit their parent's status
ERROR_STATUS: Dict[Type[TestGenError], int] = {
    UnsupportedFileTypeError: status.HTTP_400_BAD_REQUEST,
    UnknownProviderError: status.HTTP_400_BAD_REQUEST,
    ParserIOError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    DocumentParseError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ConversionError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ProviderNotConfiguredError: status.HTTP_503_SERVICE_UNAVAILABLE,
    MoodleNotConfiguredError: status.HTTP_503_SERVICE_UNAVAILABLE,
    ProviderError: status.HTTP_502_BAD_GATEWAY,
    MalformedProviderResponseError: status.HTTP_502_BAD_GATEWAY,
    MoodleAPIError: status.HTTP_502_BAD_GATEWAY,
    GenerationTimeoutError: status.HTTP_504_GATEWAY_TIMEOUT,
    NoStrategySetError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def status_for(exc: TestGenError) -> int:
    for cls in type(exc).__mro__:
        if cls in ERROR_STATUS:
            return ERROR_STATUS[cls]
    return status.HTTP_500_INTERNAL_SERVER_ERROR


@app.exception_handler(TestGenError)
async def testgen_exception_handler(request: Request, exc: TestGenError):
    """Map a typed service error to its HTTP status."""
    status_code = status_for(exc)
    logger.warning(
        "%s %s failed with %s (%d): %s",
        request.method,
        request.url.path,
        type(exc).__name__,
        status_code,
        exc,
    )
    return JSONResponse(
        status_code=status_code,
        content={"detail": str(exc), "error_type": type(exc).__name__},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Return a structured JSON error for any unhandled exception."""
    logger.error(
        "Unhandled exception on %s %s: %s",
        request.method,
        request.url.path,
        exc,
        exc_info=True,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "detail": "Internal server error",
            "path": str(request.url.path),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
    )


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------

app.include_router(health.router,     prefix="/api/health",    tags=["Health"])
app.include_router(documents.router,  prefix="/api/documents", tags=["Documents"])
app.include_router(generation.router, prefix="/api/tests",     tags=["Tests"])
app.include_router(moodle.router,     prefix="/api/moodle",    tags=["Moodle"])


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------

@app.get("/", tags=["Root"], include_in_schema=False)
async def root():
    """API root — returns basic service info."""
    return {
        "name": "testgen API",
        "version": "0.1.0",
        "description": "Quiz generation and Moodle export backend",
        "docs": "/docs",
        "health": "/api/health",
        "endpoints": {
            "documents": "/api/documents",
            "generate": "/api/tests/generate",
            "export": "/api/tests/export/moodle",
            "moodle": "/api/moodle",
        },
    }


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "testgen.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=True,
        log_level="info",
    )
