"""Pydantic schemas for workflow documents and API request/response models."""

from orthoflow.schemas.audit import AuditLog
from orthoflow.schemas.auth import Actor
from orthoflow.schemas.case import (
    BudgetClose,
    Case,
    CaseCreate,
    CaseMutationResponse,
    CaseSupplySummary,
    CaseUpdate,
    ContractApprove,
    DeliveryLot,
    DeliveryLotCreate,
    Installation,
    InstallationCreate,
    PatientDeliveryLot,
    Tray,
    TrayUpdate,
)
from orthoflow.schemas.dashboard import DashboardStats, LabKpis, ReplenishmentAlert
from orthoflow.schemas.directory import Clinic, Dentist, Patient
from orthoflow.schemas.lab import (
    AdvanceOrderCreate,
    LabItem,
    LabItemCreate,
    LabItemResponse,
    LabItemUpdate,
    LabMove,
    LabOrderOutcome,
)
from orthoflow.schemas.scan import CaseFromScanCreate, Scan, ScanCreate
from orthoflow.schemas.state import WorkflowState

__all__ = [
    "Actor",
    "AdvanceOrderCreate",
    "AuditLog",
    "BudgetClose",
    "Case",
    "CaseCreate",
    "CaseMutationResponse",
    "CaseFromScanCreate",
    "CaseSupplySummary",
    "CaseUpdate",
    "Clinic",
    "ContractApprove",
    "DashboardStats",
    "DeliveryLot",
    "DeliveryLotCreate",
    "Dentist",
    "Installation",
    "InstallationCreate",
    "LabItem",
    "LabItemCreate",
    "LabItemResponse",
    "LabItemUpdate",
    "LabKpis",
    "LabMove",
    "LabOrderOutcome",
    "Patient",
    "PatientDeliveryLot",
    "ReplenishmentAlert",
    "Scan",
    "ScanCreate",
    "Tray",
    "TrayUpdate",
    "WorkflowState",
]
