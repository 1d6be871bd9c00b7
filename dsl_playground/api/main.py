"""
FastAPI Application
==================

HTTP surface of the DSL playground: editor intellisense, sandboxed runs and
the element catalog.
"""

from contextlib import asynccontextmanager
import uuid
from typing import AsyncGenerator, Any, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
import uvicorn

from dsl_playground.api.dependencies import build_services
from dsl_playground.api.routes.elements import router as elements_router
from dsl_playground.api.routes.health import router as health_router
from dsl_playground.api.routes.intellisense import router as intellisense_router
from dsl_playground.api.routes.run import router as run_router
from dsl_playground.config.logging import get_logger
from dsl_playground.config.settings import Settings, get_settings
from dsl_playground.core.sandbox.pool import EvaluationRejected
from dsl_playground.models.schemas import ErrorResponse

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    settings: Settings = app.state.settings
    logger.info("Starting FastAPI application", environment=settings.environment)

    try:
        services = build_services(settings)
    except Exception as e:
        logger.error("Failed to build playground services", error=str(e))
        raise RuntimeError(f"Playground initialization failed: {e}")

    await services.pool.initialize()
    app.state.services = services

    try:
        yield
    finally:
        logger.info("Shutting down FastAPI application")
        try:
            await services.pool.close()
        except Exception as e:
            logger.error("Error closing evaluation pool", error=str(e))


def _request_id(request: Request) -> Optional[str]:
    return getattr(request.state, "request_id", None)


async def add_request_id(request: Request, call_next) -> JSONResponse:  # type: ignore
    """Add request ID to all requests."""
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request.state.request_id = request_id

    response = await call_next(request)  # type: ignore
    response.headers["X-Request-ID"] = request_id  # type: ignore

    return response  # type: ignore


async def custom_http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Custom HTTP exception handler with structured error response."""
    error_response = ErrorResponse(
        error=str(exc.detail),
        error_code=str(exc.status_code),
        details=None,
        request_id=_request_id(request),
    )

    logger.error(
        "HTTP exception",
        status_code=exc.status_code,
        detail=exc.detail,
        request_id=error_response.request_id,
    )

    return JSONResponse(status_code=exc.status_code, content=error_response.model_dump(mode="json"))


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Reject malformed request bodies with a structured 422 response."""
    error_response = ErrorResponse(
        error="Invalid request",
        error_code="VALIDATION_ERROR",
        details={"errors": jsonable_encoder(exc.errors())},
        request_id=_request_id(request),
    )

    logger.warning("Request validation failed", errors=len(exc.errors()), request_id=error_response.request_id)

    return JSONResponse(status_code=422, content=error_response.model_dump(mode="json"))


async def evaluation_rejected_handler(request: Request, exc: EvaluationRejected) -> JSONResponse:
    """Report a saturated evaluation pool as temporarily unavailable."""
    error_response = ErrorResponse(
        error="All evaluation workers are busy. Please try again in a moment.",
        error_code="EVALUATION_CAPACITY_EXHAUSTED",
        details={"message": str(exc)} if request.app.state.settings.debug else None,
        request_id=_request_id(request),
    )

    logger.warning("Evaluation rejected", reason=str(exc), request_id=error_response.request_id)

    return JSONResponse(
        status_code=503,
        content=error_response.model_dump(mode="json"),
        headers={"Retry-After": "1"},
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """General exception handler for unexpected errors."""
    error_response = ErrorResponse(
        error="Internal server error",
        error_code="INTERNAL_ERROR",
        details={"exception": str(exc)} if request.app.state.settings.debug else None,
        request_id=_request_id(request),
    )

    logger.error(
        "Unhandled exception",
        exception=str(exc),
        request_id=error_response.request_id,
        exc_info=True,
    )

    return JSONResponse(status_code=500, content=error_response.model_dump(mode="json"))


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Application factory function for creating FastAPI app instances.

    Args:
        settings: Settings for this instance, defaults to the global settings

    Returns:
        FastAPI application instance
    """
    settings = settings or get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="Sandboxed evaluation and editor intellisense for the UI description DSL",
        version=settings.app_version,
        lifespan=lifespan,
        docs_url="/docs" if settings.enable_docs else None,
        redoc_url="/redoc" if settings.enable_docs else None,
    )
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_hosts,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=1000)
    app.middleware("http")(add_request_id)

    app.add_exception_handler(HTTPException, custom_http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, validation_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(EvaluationRejected, evaluation_rejected_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, general_exception_handler)

    app.include_router(intellisense_router)
    app.include_router(run_router)
    app.include_router(elements_router)
    app.include_router(health_router)

    @app.get("/", tags=["General"])
    async def root() -> dict[str, Any]:
        """
        Root endpoint with basic API information.
        """
        return {
            "name": settings.app_name,
            "version": settings.app_version,
            "docs_url": "/docs" if settings.enable_docs else None,
            "health_check": "/api/v1/health",
            "endpoints": {
                "completions": "POST /api/v1/completions",
                "signatures": "POST /api/v1/signatures",
                "run": "POST /api/v1/run",
                "playground": "POST /api/v1/playground",
                "elements": "GET /api/v1/elements",
            },
        }

    return app


app = create_app()


# Development server runner
def run_development_server() -> None:
    """Run development server with auto-reload."""
    settings = get_settings()
    uvicorn.run(
        "dsl_playground.api.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
        access_log=True,
    )


if __name__ == "__main__":
    run_development_server()
