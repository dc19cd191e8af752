"""
Web Search Server Main Application
FastAPI server for the intent-aware multi-backend web search orchestrator
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, List

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import settings, setup_logging
from core.exceptions import AppException, ErrorCode
from api import health_router, search_router
from websearch.service import SearchService

# Configure logging
setup_logging()
logger = logging.getLogger("websearch.server")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application lifespan events
    """
    logger.info("Starting Web Search Server")
    logger.info(f"Environment: {settings.environment}")
    logger.info(f"Debug mode: {settings.debug}")

    # Tests inject their own service before startup
    if getattr(app.state, "search_service", None) is None:
        app.state.search_service = SearchService(settings)
    service = app.state.search_service
    logger.info(
        f"Search service ready: {len(service.providers)} backends, "
        f"deadline {service.deadline_seconds:.1f}s, cache {'on' if service.cache is not None else 'off'}"
    )

    try:
        yield
    finally:
        logger.info("Shutting down Web Search Server")
        await service.close()


# Create FastAPI application
app = FastAPI(
    title="Web Search Server",
    description="Intent-aware multi-backend web search with scoring, refinement and citations",
    version="1.0.0",
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
    lifespan=lifespan
)

if settings.enable_cors:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

app.include_router(search_router)
app.include_router(health_router)


@app.get("/")
async def root():
    return {
        "service": "Web Search Server",
        "version": "1.0.0",
        "endpoints": {
            "search": "/api/v1/search/web",
            "classify": "/api/v1/search/classify",
            "stats": "/api/v1/search/stats",
            "cache": "/api/v1/search/cache",
            "health": "/api/v1/health",
        },
    }


# =============================================================================
# Exception Handlers - every error leaves in the same envelope
# =============================================================================

def _error_response(request: Request, status_code: int, errors: List[Dict[str, Any]]) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "data": None,
            "meta": {
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "path": request.url.path,
            },
            "errors": errors,
        },
    )


@app.exception_handler(AppException)
async def app_exception_handler(request: Request, exc: AppException):
    """ValidationError (400), NoResultsError (404), SearchTimeoutError (504), ..."""
    if exc.status_code >= 500:
        logger.warning(f"{exc.code.value} on {request.url.path}: {exc.message}")
    return _error_response(request, exc.status_code, [exc.to_dict()])


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies: one error entry per offending field"""
    errors = [
        {
            "code": ErrorCode.VALIDATION_ERROR.value,
            "message": err.get("msg", "invalid value"),
            "details": {"field": ".".join(str(p) for p in err.get("loc", ()) if p != "body")},
        }
        for err in exc.errors()
    ]
    return _error_response(request, 422, errors)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Anything unexpected is logged with its traceback and reported as ERR_9001"""
    logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
    details = {"type": type(exc).__name__}
    if settings.debug:
        details["detail"] = str(exc)
    return _error_response(request, 500, [{
        "code": ErrorCode.INTERNAL_ERROR.value,
        "message": "An unexpected error occurred",
        "details": details,
    }])


if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level="debug" if settings.debug else "info",
    )
