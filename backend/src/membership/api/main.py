"""Main FastAPI application for the membership API."""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded

from membership import __version__
from membership.api.rate_limit import limiter
from membership.api.v1.auth import router as auth_router
from membership.api.v1.awards import router as awards_router
from membership.api.v1.bank_accounts import router as bank_accounts_router
from membership.api.v1.profiles import router as profiles_router
from membership.api.v1.referral import router as referral_router
from membership.banking.crypto import get_vault
from membership.errors import ConfigurationError, MembershipError
from membership.logging_config import configure_logging, get_logger
from membership.settings import missing_secrets, settings
from membership.storage.db import db

configure_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup
    logger.info("app_starting", env=settings.env)

    problems = missing_secrets(settings)
    if problems:
        for problem in problems:
            logger.critical("startup_configuration_invalid", problem=problem)
        raise ConfigurationError("; ".join(problems))

    # Fail before serving if the bank key cannot build a vault
    get_vault()

    db.create_tables()
    logger.info("database_tables_created")

    yield

    # Shutdown
    logger.info("app_shutting_down")


def create_app() -> FastAPI:
    """Create and configure FastAPI application.

    Returns:
        Configured FastAPI app
    """
    # Hide API docs in production
    is_production = settings.env == "production"

    app = FastAPI(
        title="Membership API",
        description="Registration, referrals, bank accounts and awards",
        version=__version__,
        docs_url=None if is_production else "/api/docs",
        redoc_url=None if is_production else "/api/redoc",
        openapi_url=None if is_production else "/api/openapi.json",
        lifespan=lifespan,
    )

    # CORS middleware - SECURITY: Never allow wildcard in production
    allowed_origins = [
        origin.strip()
        for origin in settings.allowed_origins.split(",")
        if origin.strip()
    ]

    if is_production and "*" in allowed_origins:
        logger.error("cors_wildcard_blocked", message="Wildcard CORS not allowed in production")
        allowed_origins = []

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "Accept"],
        max_age=3600,
    )

    # Rate limiting (shared instance from rate_limit module)
    app.state.limiter = limiter

    @app.exception_handler(RateLimitExceeded)
    async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
        return JSONResponse(
            status_code=429,
            content={"kind": "RateLimited", "message": "Too many requests. Please try again later."},
        )

    @app.exception_handler(MembershipError)
    async def membership_error_handler(request: Request, exc: MembershipError):
        if exc.status_code >= 500:
            logger.error(
                "request_failed",
                path=request.url.path,
                kind=exc.kind,
                error=exc.message,
            )
        else:
            logger.info(
                "request_rejected",
                path=request.url.path,
                kind=exc.kind,
                status=exc.status_code,
            )
        headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)

    # Include v1 API routers
    app.include_router(auth_router, prefix="/api/v1")
    app.include_router(profiles_router, prefix="/api/v1")
    app.include_router(referral_router, prefix="/api/v1")
    app.include_router(bank_accounts_router, prefix="/api/v1")
    app.include_router(awards_router, prefix="/api/v1")

    # Health check endpoint
    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "version": __version__,
            "env": settings.env,
        }

    return app


# Create app instance
app = create_app()
