"""Main FastAPI application for the Tarana referral and credit API."""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from sqlalchemy.exc import SQLAlchemyError
from starlette.middleware.base import BaseHTTPMiddleware

from tarana import __version__
from tarana.api.rate_limit import limiter
from tarana.api.v1.credits import router as credits_router
from tarana.api.v1.referrals import router as referrals_router
from tarana.api.v1.tiers import router as tiers_router
from tarana.errors import ReferralSystemError, UnauthorizedError, ValidationError
from tarana.logging_config import configure_logging, get_logger
from tarana.settings import settings
from tarana.storage.db import db
from tarana.tiers.catalog import TIER_CATALOG, validate_catalog

logger = get_logger(__name__)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)

        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

        # JSON only, nothing to load
        response.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none'"

        return response


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup
    configure_logging()
    logger.info("app_starting", env=settings.env, credit_procedure=settings.credit_procedure)

    validate_catalog(TIER_CATALOG)

    db.create_tables()
    logger.info("database_tables_created")

    yield

    # Shutdown
    logger.info("app_shutting_down")


def error_envelope(exc: ReferralSystemError) -> dict:
    return {
        "success": False,
        "error": exc.title,
        "code": exc.code,
        "details": exc.message,
    }


def create_app() -> FastAPI:
    """Create and configure FastAPI application.

    Returns:
        Configured FastAPI app
    """
    # Hide API docs in production
    is_production = settings.env == "production"

    app = FastAPI(
        title="Tarana API",
        description="Referral tiers and daily credit accounting",
        version=__version__,
        docs_url=None if is_production else "/api/docs",
        redoc_url=None if is_production else "/api/redoc",
        openapi_url=None if is_production else "/api/openapi.json",
        lifespan=lifespan,
    )

    # Security Headers middleware (must be added before CORS)
    app.add_middleware(SecurityHeadersMiddleware)

    allowed_origins = [
        origin.strip()
        for origin in settings.allowed_origins.split(",")
        if origin.strip()
    ]

    # Block wildcard in production
    if is_production and "*" in allowed_origins:
        logger.error("cors_wildcard_blocked", message="Wildcard CORS not allowed in production")
        allowed_origins = []

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "Accept"],
        max_age=3600,
    )

    # Rate limiting (shared instance from rate_limit module)
    app.state.limiter = limiter

    @app.exception_handler(RateLimitExceeded)
    async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
        return JSONResponse(
            status_code=429,
            content={
                "success": False,
                "error": "Too many requests",
                "code": "RATE_LIMITED",
                "details": "Too many requests. Please try again later.",
            },
        )

    @app.exception_handler(ReferralSystemError)
    async def referral_error_handler(request: Request, exc: ReferralSystemError):
        if exc.status_code >= 500:
            logger.error(
                "request_failed",
                path=request.url.path,
                code=exc.code,
                retryable=exc.retryable,
                error=exc.message,
            )
        headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, UnauthorizedError) else None
        return JSONResponse(
            status_code=exc.status_code,
            content=error_envelope(exc),
            headers=headers,
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        problems = []
        for error in exc.errors():
            location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
            problems.append(f"{location}: {error.get('msg')}" if location else error.get("msg", ""))
        return JSONResponse(
            status_code=400,
            content=error_envelope(ValidationError("; ".join(problems) or "Malformed request")),
        )

    @app.exception_handler(SQLAlchemyError)
    async def database_error_handler(request: Request, exc: SQLAlchemyError):
        logger.error("database_error", path=request.url.path, error=str(exc))
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "error": "Internal server error",
                "code": "DATABASE_ERROR",
                "details": "The credit store is temporarily unavailable",
            },
        )

    # Include v1 API routers
    app.include_router(credits_router, prefix="/api/v1")
    app.include_router(referrals_router, prefix="/api/v1")
    app.include_router(tiers_router, prefix="/api/v1")

    # Health check endpoint
    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "version": __version__,
            "env": settings.env,
            "creditProcedure": settings.credit_procedure,
        }

    # Root endpoint
    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "name": "Tarana API",
            "version": __version__,
            "docs": "/api/docs",
        }

    return app


# Create app instance
app = create_app()
