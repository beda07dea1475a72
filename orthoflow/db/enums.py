"""Enum definitions for application constants."""

from enum import Enum


class Role(str, Enum):
    """
    Actor roles.

    - MASTER_ADMIN / DENTIST_ADMIN: back-office administrators (see everything)
    - LAB_TECH / RECEPTIONIST: internal staff (see everything, no admin actions)
    - DENTIST_CLIENT: external dentist, scoped to their own patients
    - CLINIC_CLIENT: external clinic, scoped to the clinic and its dentists
    """
    MASTER_ADMIN = "master_admin"
    DENTIST_ADMIN = "dentist_admin"
    DENTIST_CLIENT = "dentist_client"
    CLINIC_CLIENT = "clinic_client"
    LAB_TECH = "lab_tech"
    RECEPTIONIST = "receptionist"

    @classmethod
    def has_value(cls, value: str) -> bool:
        """Check if value is a valid role."""
        return value in cls._value2member_map_

    @classmethod
    def external(cls) -> list[str]:
        """Roles whose reads are restricted by clinic/dentist linkage."""
        return [cls.DENTIST_CLIENT.value, cls.CLINIC_CLIENT.value]

    @classmethod
    def admins(cls) -> list[str]:
        """Roles allowed to run administrative actions (e.g. deleting orders)."""
        return [cls.MASTER_ADMIN.value, cls.DENTIST_ADMIN.value]


class Arch(str, Enum):
    """Dental arch covered by a case, lot, or order."""
    UPPER = "upper"
    LOWER = "lower"
    BOTH = "both"


class CaseStatus(str, Enum):
    """Coarse case status shown in listings."""
    PLANNING = "planning"
    IN_PRODUCTION = "in_production"
    IN_DELIVERY = "in_delivery"
    FINALIZED = "finalized"


class CasePhase(str, Enum):
    """
    Fine-grained workflow step.

    planning → budget → contract_pending → contract_approved
    → in_production → finalized
    """
    PLANNING = "planning"
    BUDGET = "budget"
    CONTRACT_PENDING = "contract_pending"
    CONTRACT_APPROVED = "contract_approved"
    IN_PRODUCTION = "in_production"
    FINALIZED = "finalized"


class ContractStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"


class TrayState(str, Enum):
    """
    Aligner tray states.

    pending → in_production → ready → delivered, with a side state
    ``rework`` reachable from in_production, ready and delivered.
    """
    PENDING = "pending"
    IN_PRODUCTION = "in_production"
    READY = "ready"
    DELIVERED = "delivered"
    REWORK = "rework"


class LabStatus(str, Enum):
    """Lab work-order pipeline (ordered)."""
    AWAITING_START = "awaiting_start"
    IN_PRODUCTION = "in_production"
    QUALITY_CONTROL = "quality_control"
    READY = "ready"


class LabPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    URGENT = "urgent"


class RequestKind(str, Enum):
    """Why a lab work order exists."""
    PRODUCTION = "production"
    REWORK = "rework"
    PROGRAMMED_REPLENISHMENT = "programmed_replenishment"


class TreatmentOrigin(str, Enum):
    INTERNAL = "internal"
    EXTERNAL = "external"


class ScanStatus(str, Enum):
    """Intake scan workflow: pending → approved/rejected → converted."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CONVERTED = "converted"


class DentistKind(str, Enum):
    DENTIST = "dentist"
    CLINIC = "clinic"


class AuditEntity(str, Enum):
    CASE = "case"
    LAB = "lab"
    SCAN = "scan"
    PATIENT = "patient"


class AlertType(str, Enum):
    WARNING_15D = "warning_15d"
    WARNING_10D = "warning_10d"
    OVERDUE = "overdue"


class AlertSeverity(str, Enum):
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"
