"""
FastAPI application entry point for VerifyShot.
Configures the application, middleware, routes, and error handlers.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncGenerator, Dict, Optional

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from verifyshot.agents.base_agent import AgentProcessingError
from verifyshot.backends.registry import BackendCache
from verifyshot.config import PROVIDER_KEY_ENV, ConfigurationError, get_settings
from verifyshot.routers import analysis, chat
from verifyshot.services.analysis_service import AnalysisTimeoutError
from verifyshot.services.ocr_service import NoTextFoundError, OCRError, OCRRateLimitError
from verifyshot.utils.image_handler import ImageValidationError
from verifyshot.utils.logger import get_correlation_id, set_correlation_id, setup_logging

VERSION = "1.0.0"

# Initialize settings and logging
settings = get_settings()
logger = setup_logging(settings.log_level)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager for startup and shutdown events."""
    logger.info("Starting VerifyShot API", version=VERSION, consensus_mode=settings.consensus_mode)
    app.state.backend_cache = BackendCache()

    missing = _missing_required()
    if missing:
        logger.warning("Service is misconfigured, analysis requests will fail", missing=missing)

    yield

    logger.info("Shutting down VerifyShot API")
    app.state.backend_cache.clear()


# Create FastAPI application
app = FastAPI(
    title="VerifyShot API",
    description="Screenshot fact-checking with multi-model consensus and trust scoring",
    version=VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)


@app.middleware("http")
async def correlation_id_middleware(request: Request, call_next) -> Response:
    """Add correlation ID to all requests for tracing."""
    correlation_id = set_correlation_id()

    logger.info("Request started",
                method=request.method,
                url=str(request.url),
                client_ip=request.client.host if request.client else "unknown")

    response = await call_next(request)
    response.headers["X-Correlation-ID"] = correlation_id

    logger.info("Request completed",
                method=request.method,
                url=str(request.url),
                status_code=response.status_code)

    return response


def error_response(status_code: int, code: str, message: str, hint: Optional[str] = None) -> JSONResponse:
    """Build the standard error body."""
    error: Dict[str, Any] = {"code": code, "message": message}
    if hint:
        error["hint"] = hint
    error["correlation_id"] = get_correlation_id()
    return JSONResponse(status_code=status_code, content={"error": error})


# Custom exception handlers
@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request: Request, exc: ConfigurationError) -> JSONResponse:
    """Handle missing or invalid configuration."""
    logger.error("Configuration error", error=str(exc), missing=exc.missing, url=str(request.url))
    return error_response(500, "CONFIGURATION_ERROR", str(exc), hint=exc.hint)


@app.exception_handler(ImageValidationError)
async def image_validation_exception_handler(request: Request, exc: ImageValidationError) -> JSONResponse:
    """Handle image validation errors."""
    logger.warning("Image validation error", error=str(exc), url=str(request.url))
    return error_response(400, "IMAGE_VALIDATION_ERROR", str(exc))


@app.exception_handler(OCRError)
async def ocr_error_handler(request: Request, exc: OCRError) -> JSONResponse:
    """Handle OCR failures, which are fatal to a job."""
    if isinstance(exc, NoTextFoundError):
        logger.warning("No text found in image", error=str(exc))
        return error_response(422, "OCR_NO_TEXT", str(exc),
                              hint="Upload a screenshot that contains readable text")
    if isinstance(exc, OCRRateLimitError):
        logger.warning("OCR rate limited", error=str(exc))
        return error_response(429, "OCR_RATE_LIMITED", str(exc),
                              hint="Wait a few minutes and try again")

    logger.error("OCR failed", error=str(exc), url=str(request.url))
    return error_response(502, "OCR_FAILED", str(exc),
                          hint="Check that the image URL is reachable and try again")


@app.exception_handler(AnalysisTimeoutError)
async def analysis_timeout_handler(request: Request, exc: AnalysisTimeoutError) -> JSONResponse:
    """Handle jobs that exceeded their deadline."""
    logger.error("Analysis timed out", timeout_seconds=exc.timeout_seconds, url=str(request.url))
    return error_response(504, "ANALYSIS_TIMEOUT", str(exc),
                          hint="Try a smaller image or a screenshot with less text")


@app.exception_handler(AgentProcessingError)
async def agent_processing_handler(request: Request, exc: AgentProcessingError) -> JSONResponse:
    """Handle chat model failures."""
    logger.error("Chat request failed", error=str(exc), url=str(request.url))
    return error_response(502, "CHAT_FAILED", str(exc))


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle all other unhandled exceptions."""
    logger.error("Unhandled exception",
                 error=str(exc),
                 error_type=type(exc).__name__,
                 url=str(request.url))
    return error_response(500, "INTERNAL_ERROR", "An unexpected error occurred")


# Include routers
app.include_router(analysis.router)
app.include_router(chat.router)


def _missing_required() -> list:
    current = get_settings()
    try:
        return current.missing_required_keys()
    except ConfigurationError as e:
        return e.missing


@app.get("/health")
async def health_check() -> Dict[str, Any]:
    """Report which environment variables are set, without revealing values."""
    current = get_settings()
    env_vars = {
        "ANTHROPIC_API_KEY": bool(current.anthropic_api_key),
        "GEMINI_API_KEY": bool(current.gemini_api_key),
        "SERPER_API_KEY": bool(current.serper_api_key),
    }
    missing_required = _missing_required()
    missing_optional = [] if current.serper_api_key else ["SERPER_API_KEY"]

    return {
        "status": "misconfigured" if missing_required else "ready",
        "service": "verifyshot-api",
        "version": VERSION,
        "consensusMode": current.consensus_mode,
        "providers": sorted(PROVIDER_KEY_ENV),
        "envVars": env_vars,
        "missingRequired": missing_required,
        "missingOptional": missing_optional,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@app.get("/")
async def root() -> Dict[str, str]:
    """Root endpoint with API information."""
    return {
        "service": "VerifyShot API",
        "version": VERSION,
        "description": "Screenshot fact-checking with multi-model consensus and trust scoring",
        "docs": "/docs",
        "health": "/health"
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "verifyshot.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level=settings.log_level.lower()
    )
