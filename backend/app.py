from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from slowapi.errors import RateLimitExceeded
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker
from contextlib import asynccontextmanager
from typing import Optional
import logging
import sys
import uuid

from settings import Settings, StartupError, load_settings, SERVICE_NAME, SERVICE_VERSION
from db import get_engine, init_database, bootstrap_platform_admin, get_session
from models import LedgerImmutableError
from auth_routes import router as auth_router, limiter
from api.routes_profile import router as profile_router
from api.routes_users import router as users_router
from api.routes_plans import router as plans_router
from api.routes_resellers import router as resellers_router
from api.routes_vendors import router as vendors_router
from api.routes_wallet import router as wallet_router
from api.routes_rcs import router as rcs_router
from api.routes_contacts import router as contacts_router
from api.routes_templates import router as templates_router
from api.routes_campaigns import router as campaigns_router
from api.routes_clients import router as clients_router
from api.routes_dashboard import router as dashboard_router

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings) -> None:
    """Console logging, plus a UTF-8 log file when LOG_FILE is set"""
    handlers = [logging.StreamHandler()]
    if settings.log_file:
        handlers.append(logging.FileHandler(settings.log_file, encoding='utf-8'))

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s - [%(name)s] - %(levelname)s - %(message)s",
        handlers=handlers,
        force=True,
    )


def error_response(status_code: int, message: str, errors=None, headers=None) -> JSONResponse:
    content = {"success": False, "message": message}
    if errors is not None:
        content["errors"] = jsonable_encoder(errors)
    return JSONResponse(status_code=status_code, content=content, headers=headers)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings

    init_database(app.state.engine)
    logger.info("Database initialized")

    if settings.admin_email and settings.admin_password:
        with get_session(app.state.engine) as session:
            bootstrap_platform_admin(session, settings.admin_email, settings.admin_password)

    logger.info(f"{SERVICE_NAME} {SERVICE_VERSION} started")
    yield

    app.state.engine.dispose()
    logger.info("Application shutdown")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the API application.

    The engine, session factory and settings live on app.state; request
    handlers reach them through the get_db / get_settings dependencies.
    """
    if settings is None:
        settings = load_settings()

    app = FastAPI(title="NotifyNow API", version=SERVICE_VERSION, lifespan=lifespan)

    engine = get_engine(settings.database_url)
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = sessionmaker(bind=engine)

    # Rate limits: login (5/min), signup (3/hr); counters are kept per app
    app.state.limiter = limiter
    app.state.rate_limit_scope = uuid.uuid4().hex

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=False,  # Must be False when using wildcard
        allow_methods=["*"],
        allow_headers=["*"],
        max_age=86400,  # Cache preflight for 24 hours
    )

    # Security headers middleware
    @app.middleware("http")
    async def add_security_headers(request: Request, call_next):
        """Add security headers to all responses"""
        response = await call_next(request)
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Permissions-Policy"] = "geolocation=(), microphone=(), camera=()"
        return response

    # Every error leaves the API as {success: false, message, errors?}
    @app.exception_handler(RateLimitExceeded)
    async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
        return error_response(429, f"Rate limit exceeded: {exc.detail}")

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        if isinstance(exc.detail, str):
            return error_response(exc.status_code, exc.detail, headers=getattr(exc, "headers", None))
        return error_response(exc.status_code, "Request failed", errors=exc.detail,
                              headers=getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return error_response(400, "Validation failed", errors=exc.errors())

    @app.exception_handler(IntegrityError)
    async def integrity_error_handler(request: Request, exc: IntegrityError):
        logger.warning(f"Integrity error on {request.method} {request.url.path}: {exc.orig}")
        return error_response(409, "Conflicts with existing data")

    @app.exception_handler(LedgerImmutableError)
    async def ledger_error_handler(request: Request, exc: LedgerImmutableError):
        return error_response(409, str(exc))

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return error_response(500, "Internal server error")

    # Include routers
    app.include_router(auth_router)
    app.include_router(profile_router)
    app.include_router(users_router)
    app.include_router(plans_router)
    app.include_router(resellers_router)
    app.include_router(vendors_router)
    app.include_router(wallet_router)
    app.include_router(rcs_router)
    app.include_router(contacts_router)
    app.include_router(templates_router)
    app.include_router(campaigns_router)
    app.include_router(clients_router)
    app.include_router(dashboard_router)

    @app.get("/api/health")
    async def health():
        return {"success": True, "service": SERVICE_NAME, "version": SERVICE_VERSION}

    return app


def main() -> None:
    """Process entry point"""
    try:
        settings = load_settings()
    except StartupError as e:
        logging.basicConfig(level=logging.ERROR)
        logger.error(f"Startup failed: {e}")
        sys.exit(1)

    configure_logging(settings)

    import uvicorn
    uvicorn.run(
        "app:create_app",
        factory=True,
        host=settings.app_host,
        port=settings.app_port
    )


if __name__ == "__main__":
    main()
