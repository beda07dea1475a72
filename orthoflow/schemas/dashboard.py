"""Read-model schemas for alerts and KPI summaries."""

from datetime import date

from pydantic import BaseModel, ConfigDict

from orthoflow.db.enums import AlertSeverity, AlertType


class ReplenishmentAlert(BaseModel):
    model_config = ConfigDict(use_enum_values=True, validate_default=True)

    id: str
    case_id: str
    type: AlertType
    severity: AlertSeverity
    title: str
    message: str
    due_date: date
    days_left: int


class DashboardStats(BaseModel):
    """Headline counters over the records visible to the actor."""

    active_patients: int = 0
    ongoing_cases: int = 0
    deliveries_today: int = 0
    pending_aligners: int = 0
    overdue: int = 0
    contracts_pending: int = 0
    scans_pending: int = 0
    replenishment_alerts: int = 0


class LabKpis(BaseModel):
    awaiting_start: int = 0
    in_production: int = 0
    quality_control: int = 0
    ready: int = 0
    overdue: int = 0
