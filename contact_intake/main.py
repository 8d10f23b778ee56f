"""FastAPI application factory with middleware, routers, and lifespan."""

import logging
import time
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import settings, setup_logging
from .contacts.exceptions import InvalidPriority, NotFound, StoreError, ValidationError
from .contacts.routes import router as contacts_router
from .contacts.validation import to_field_errors
from .database.base import Database
from .dependencies import AdminAuthRequired
from .notifications.service import ContactNotifier, smtp_configured
from .rate_limit import limiter

logger = logging.getLogger(__name__)

_startup_time: float = 0.0


def _run_migrations() -> None:
    """Run Alembic migrations (upgrade head) on startup."""
    from alembic import command
    from alembic.config import Config

    alembic_cfg = Config()
    alembic_cfg.set_main_option("script_location", str(Path(__file__).parent.parent / "alembic"))
    alembic_cfg.set_main_option("sqlalchemy.url", settings.effective_database_url)
    command.upgrade(alembic_cfg, "head")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup/shutdown lifecycle."""
    global _startup_time
    _startup_time = time.time()

    setup_logging()
    _run_migrations()

    db = Database.from_settings(settings).open()
    app.state.db = db
    app.state.notifier = ContactNotifier(db)
    logger.info("Email notifications: %s", "configured" if smtp_configured() else "not configured")

    try:
        yield
    finally:
        db.close()


def _error(message: str, status_code: int, **extra) -> JSONResponse:
    return JSONResponse({"success": False, "message": message, **extra}, status_code=status_code)


def _rate_limit_handler(request: Request, exc: RateLimitExceeded) -> Response:
    retry_after = str(exc.limit.limit.get_expiry())
    return JSONResponse(
        {
            "success": False,
            "message": "Too many contact form submissions. Please try again later.",
            "retry_after": int(retry_after),
        },
        status_code=429,
        headers={"Retry-After": retry_after},
    )


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Contact Intake Service",
        version=settings.app_version,
        lifespan=lifespan,
    )

    # --- Exception handlers ---
    @app.exception_handler(ValidationError)
    async def validation_handler(request: Request, exc: ValidationError):
        return _error(
            exc.reason,
            400,
            errors=[{"field": e.field, "reason": e.reason} for e in exc.errors],
        )

    @app.exception_handler(InvalidPriority)
    async def invalid_priority_handler(request: Request, exc: InvalidPriority):
        return _error(str(exc), 400, errors=[{"field": "priority", "reason": "Invalid priority level"}])

    @app.exception_handler(NotFound)
    async def not_found_handler(request: Request, exc: NotFound):
        return _error("Contact not found", 404)

    @app.exception_handler(StoreError)
    async def store_error_handler(request: Request, exc: StoreError):
        return _error("Server error. Please try again later.", 500)

    @app.exception_handler(AdminAuthRequired)
    async def admin_auth_handler(request: Request, exc: AdminAuthRequired):
        return _error("Admin token required", 401)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return await validation_handler(request, ValidationError(to_field_errors(exc.errors())))

    app.add_exception_handler(RateLimitExceeded, _rate_limit_handler)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        message = "Route not found" if exc.status_code == 404 else str(exc.detail)
        return _error(message, exc.status_code)

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
        return _error("Internal server error", 500)

    # --- Middleware stack (LIFO: last added = outermost) ---
    app.state.limiter = limiter
    app.add_middleware(SlowAPIMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    if settings.trusted_hosts_list != ["*"]:
        app.add_middleware(
            TrustedHostMiddleware,
            allowed_hosts=settings.trusted_hosts_list,
        )

    @app.middleware("http")
    async def security_headers(request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        return response

    # --- Routers ---
    app.include_router(contacts_router)

    from .api_v1 import api_v1_router

    app.include_router(api_v1_router)

    # --- Health check ---
    @app.get("/health")
    def health(request: Request):
        db = getattr(request.app.state, "db", None)
        db_status = "ok" if db is not None and db.is_open and db.ping() else "unreachable"

        status = "ok" if db_status == "ok" else "degraded"
        uptime = round(time.time() - _startup_time, 1) if _startup_time else 0.0

        return {
            "status": status,
            "db": db_status,
            "version": settings.app_version,
            "uptime_seconds": uptime,
        }

    @app.get("/api")
    def api_info():
        return {
            "success": True,
            "message": "Contact Intake API",
            "version": settings.app_version,
            "endpoints": {
                "POST /contact": "Submit contact form",
                "GET /api/v1/contacts": "List contacts (admin)",
                "GET /api/v1/contacts/search": "Search contacts (admin)",
                "GET /api/v1/contacts/stats": "Contact statistics (admin)",
                "GET /api/v1/contacts/{id}": "Get single contact (admin)",
                "POST /api/v1/contacts/{id}/{action}": "Apply read/replied/archived/priority/note (admin)",
                "GET /health": "Health check",
                "GET /api": "API information",
            },
        }

    return app


app = create_app()
