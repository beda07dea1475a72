"""FastAPI application entry point."""
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from orthoflow.core.config import settings
from orthoflow.core.structured_logging import configure_logging
from orthoflow.db.session import engine

configure_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

# ============================================================================
# Rate Limiting
# ============================================================================

from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from orthoflow.core.rate_limit import limiter


# ============================================================================
# FastAPI App
# ============================================================================

app = FastAPI(
    title="Orthoflow API",
    description="Aligner treatment-case and lab-production workflow API",
    version=settings.VERSION,
    docs_url="/docs" if settings.ENV == "dev" else None,
    redoc_url="/redoc" if settings.ENV == "dev" else None,
)

# Add rate limiter (default limits apply to every route)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=[
        "Content-Type",
        "X-Actor-Role",
        "X-Actor-Clinic-Id",
        "X-Actor-Dentist-Id",
        "X-Actor-User-Id",
    ],
)

# ============================================================================
# Routers
# ============================================================================

from orthoflow.routers import cases, dashboard, lab, scans

app.include_router(cases.router, prefix="/cases", tags=["cases"])
app.include_router(lab.router, prefix="/lab", tags=["lab"])
app.include_router(scans.router, prefix="/scans", tags=["scans"])

# Alerts and KPIs (paths defined in the router)
app.include_router(dashboard.router)


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
