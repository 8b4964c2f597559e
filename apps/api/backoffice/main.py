"""FastAPI application entry point."""
import logging
import uuid

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from backoffice.core.config import settings
from backoffice.core.structured_logging import build_log_context
from backoffice.db.session import engine
from backoffice.services.errors import BackofficeError, StorageError


logger = logging.getLogger(__name__)

# ============================================================================
# Sentry Integration (optional, for production error tracking)
# ============================================================================

if settings.SENTRY_DSN and settings.ENV != "dev":
    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.ENV,
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            SqlalchemyIntegration(),
        ],
        traces_sample_rate=0.1,  # 10% of requests for performance monitoring
        send_default_pii=False,  # Don't send PII to Sentry
    )
    logging.info("Sentry initialized for error tracking")


# ============================================================================
# FastAPI App
# ============================================================================

app = FastAPI(
    title="Back Office API",
    description="Language-school back office: staff reconciliation, RBAC and family-graph repair",
    version=settings.VERSION,
    docs_url="/docs" if settings.ENV == "dev" else None,
    redoc_url="/redoc" if settings.ENV == "dev" else None,
)

# CORS middleware - must be added before routers
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,  # Required for cookies
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
    expose_headers=["X-Request-ID"],
)


# ============================================================================
# Error Handling
# ============================================================================

def _log_context(request: Request) -> dict:
    return build_log_context(
        request_id=request.headers.get("X-Request-ID") or uuid.uuid4().hex,
        route=request.url.path,
        method=request.method,
    )


async def backoffice_error_handler(request: Request, exc: BackofficeError) -> JSONResponse:
    """Typed service errors → {"detail", "code"} with the error's status."""
    if exc.status_code >= 500:
        logger.error("Service error: %s", exc.message, extra=_log_context(request))
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "code": exc.code},
    )


async def storage_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """Unhandled database failures surface as StorageError (503)."""
    logger.exception("Database error", extra=_log_context(request))
    error = StorageError("Storage unavailable")
    return JSONResponse(
        status_code=error.status_code,
        content={"detail": error.message, "code": error.code},
    )


app.add_exception_handler(BackofficeError, backoffice_error_handler)
app.add_exception_handler(SQLAlchemyError, storage_error_handler)


# ============================================================================
# Routers
# ============================================================================

from backoffice.routers import (
    auth_router,
    family_groups_router,
    invitations_router,
    onboarding_router,
    permissions_router,
    teachers_router,
    textbooks_router,
)

app.include_router(auth_router)

# Teachers and invitations (manage:teachers)
app.include_router(teachers_router)
app.include_router(invitations_router)

# Public onboarding (unauthenticated, token is the credential)
app.include_router(onboarding_router)

# Roles & permissions (manage:roles / manage:permissions)
app.include_router(permissions_router)

# Family-graph maintenance (manage:family_groups + admin section)
app.include_router(family_groups_router)

# Textbook library
app.include_router(textbooks_router)


# ============================================================================
# Health Check
# ============================================================================

@app.get("/health")
def health():
    """
    Health check endpoint.

    Verifies database connectivity and returns environment info.
    """
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
    return {"status": "ok", "env": settings.ENV, "version": settings.VERSION}
