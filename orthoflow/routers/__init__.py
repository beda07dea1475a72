"""API routers."""

from orthoflow.routers.cases import router as cases_router
from orthoflow.routers.dashboard import router as dashboard_router
from orthoflow.routers.lab import router as lab_router
from orthoflow.routers.scans import router as scans_router

__all__ = [
    "cases_router",
    "dashboard_router",
    "lab_router",
    "scans_router",
]
