"""FastAPI application entry point."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from chatdesk.core.config import settings
from chatdesk.core.errors import ServiceError
from chatdesk.core.presence import presence_store
from chatdesk.core.structured_logging import configure_logging
from chatdesk.db.session import SessionLocal, engine
from chatdesk.services import catalog_service

configure_logging()
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
        traces_sample_rate=0.1,
        send_default_pii=False,  # Visitor data stays out of Sentry
    )
    logger.info("Sentry initialized for error tracking")

# ============================================================================
# Rate Limiting
# ============================================================================

from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from chatdesk.core.rate_limit import limiter


# ============================================================================
# Lifespan
# ============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup: seed the permission/plan/role catalog and connect the presence store.
    Shutdown: stop presence reconnects and close the Redis pool.
    """
    if settings.BOOTSTRAP_CATALOG:
        with SessionLocal() as db:
            catalog_service.ensure_catalog(db)
    await presence_store.start()
    yield
    await presence_store.stop()


# ============================================================================
# FastAPI App
# ============================================================================

app = FastAPI(
    title="Chatdesk API",
    description="Multi-tenant customer support chat API",
    version=settings.VERSION,
    docs_url="/docs" if settings.ENV == "dev" else None,
    redoc_url="/redoc" if settings.ENV == "dev" else None,
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    """Render service-layer errors as {"detail": ...} with the mapped status."""
    return JSONResponse(status_code=exc.status_code, content=exc.to_detail())


# CORS middleware - must be added before routers
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=[
        "Content-Type",
        "Authorization",
        "X-Requested-With",
        "X-Widget-Key",
        "X-Tenant-Slug",
        "X-Subdomain",
    ],
)

# ============================================================================
# Routers
# ============================================================================

from chatdesk.routers import (
    admin,
    analytics,
    auth,
    chats,
    companies,
    departments,
    messages,
    permissions,
    plans,
    roles,
    subscriptions,
    users,
    widget,
)
from chatdesk.routers import websocket as ws_router

# Auth (company and admin login surfaces, refresh, logout, me)
app.include_router(auth.router)

# Tenants and their users
app.include_router(companies.router)
app.include_router(users.router)
app.include_router(roles.router)
app.include_router(permissions.router)
app.include_router(departments.router)

# Billing
app.include_router(plans.router)
app.include_router(subscriptions.router)

# Chat
app.include_router(chats.router)
app.include_router(messages.router)
app.include_router(widget.router)
app.include_router(ws_router.router)

# Reporting and platform admin
app.include_router(analytics.router)
app.include_router(admin.router)


# ============================================================================
# Health Check
# ============================================================================

@app.get("/health")
def health():
    """
    Health check endpoint.

    Verifies database connectivity and reports presence store state.
    """
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
    return {
        "status": "ok",
        "env": settings.ENV,
        "version": settings.VERSION,
        "presence": presence_store.state.value,
    }
