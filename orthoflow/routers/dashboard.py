"""Dashboard router - replenishment alerts and KPI counters."""

from fastapi import APIRouter, Depends

from orthoflow.core.deps import get_actor, get_store
from orthoflow.schemas.auth import Actor
from orthoflow.schemas.dashboard import DashboardStats, LabKpis, ReplenishmentAlert
from orthoflow.services import kpi_service, replenishment_service
from orthoflow.services.document_store import DocumentStore

router = APIRouter(tags=["dashboard"])


@router.get("/alerts", response_model=list[ReplenishmentAlert])
def list_alerts(
    actor: Actor = Depends(get_actor),
    store: DocumentStore = Depends(get_store),
):
    """Replenishment alerts for visible cases, most urgent first."""
    return replenishment_service.list_replenishment_alerts(store.load(), actor)


@router.get("/kpis/dashboard", response_model=DashboardStats)
def get_dashboard_stats(
    actor: Actor = Depends(get_actor),
    store: DocumentStore = Depends(get_store),
):
    return kpi_service.get_dashboard_stats(store.load(), actor)


@router.get("/kpis/lab", response_model=LabKpis)
def get_lab_kpis(
    actor: Actor = Depends(get_actor),
    store: DocumentStore = Depends(get_store),
):
    return kpi_service.get_lab_kpis(store.load(), actor)
