"""Scan service - intake scans, review, and conversion into treatment cases."""

import logging

from orthoflow.core.case_access import can_access_scan, list_scans_for_actor
from orthoflow.core.errors import (
    Forbidden,
    OperationResult,
    ScanAlreadyConverted,
    ScanNotApproved,
    ScanNotFound,
)
from orthoflow.db.enums import AuditEntity, Role, ScanStatus
from orthoflow.schemas.auth import Actor
from orthoflow.schemas.case import Case, ScanFile
from orthoflow.schemas.scan import CaseFromScanCreate, Scan, ScanAttachment, ScanCreate
from orthoflow.schemas.state import WorkflowState
from orthoflow.services import audit_service, case_service, code_service
from orthoflow.services.document_store import DocumentStore
from orthoflow.utils.dates import utcnow
from orthoflow.utils.ids import new_id

logger = logging.getLogger(__name__)


def get_scan_or_raise(state: WorkflowState, scan_id: str) -> Scan:
    scan = state.get_scan(scan_id)
    if scan is None:
        raise ScanNotFound(f"Scan {scan_id} not found.")
    return scan


def list_scans(store: DocumentStore, actor: Actor | None) -> list[Scan]:
    """Visible scans, most recent scan date first."""
    state = store.load()
    return sorted(list_scans_for_actor(state, actor), key=lambda s: s.scan_date, reverse=True)


def get_scan(store: DocumentStore, actor: Actor | None, scan_id: str) -> Scan | None:
    state = store.load()
    if not can_access_scan(state, actor, scan_id):
        return None
    return state.get_scan(scan_id)


def _pin_to_actor(data: ScanCreate, actor: Actor | None) -> dict:
    fields = data.model_dump(exclude={"attachments"})
    if actor is None or not actor.is_external:
        return fields
    if actor.role == Role.DENTIST_CLIENT.value:
        if not actor.dentist_id:
            raise Forbidden("Dentist account is not linked to a dentist record.")
        fields["dentist_id"] = actor.dentist_id
        fields["requested_by_dentist_id"] = actor.dentist_id
    else:
        if not actor.clinic_id:
            raise Forbidden("Clinic account is not linked to a clinic record.")
        fields["clinic_id"] = actor.clinic_id
    return fields


def create_scan(
    store: DocumentStore, data: ScanCreate, actor: Actor | None = None
) -> OperationResult[Scan]:
    """
    Register a scan; the service order code is allocated from the clinic's prefix.

    Scans registered by dentist or clinic clients are pinned to the actor's
    own dentist or clinic.
    """

    def _op(state: WorkflowState) -> Scan:
        fields = _pin_to_actor(data, actor)
        now = utcnow()
        prefix = code_service.treatment_prefix(state, fields["clinic_id"])
        scan = Scan(
            id=new_id("scan"),
            service_order_code=code_service.next_treatment_code(state, prefix),
            attachments=[
                ScanAttachment(id=new_id("scan_file"), created_at=now, **attachment.model_dump())
                for attachment in data.attachments
            ],
            created_at=now,
            updated_at=now,
            **fields,
        )
        state.scans.insert(0, scan)
        audit_service.record_event(
            state,
            AuditEntity.SCAN,
            scan.id,
            "scan.create",
            f"Scan {scan.service_order_code} registered.",
            actor,
        )
        return scan

    return store.execute("create_scan", _op)


def _set_status(
    store: DocumentStore, scan_id: str, status: ScanStatus, actor: Actor | None
) -> OperationResult[Scan]:
    def _op(state: WorkflowState) -> Scan:
        scan = get_scan_or_raise(state, scan_id)
        if scan.status == ScanStatus.CONVERTED.value or scan.linked_case_id:
            raise ScanAlreadyConverted("This scan was already converted into a case.")
        scan.status = status.value
        scan.updated_at = utcnow()
        audit_service.record_event(
            state,
            AuditEntity.SCAN,
            scan.id,
            f"scan.{status.value}",
            f"Scan {scan.service_order_code or scan.id} marked {status.value}.",
            actor,
        )
        return scan

    return store.execute(f"scan_{status.value}", _op, scan_id=scan_id)


def approve_scan(store: DocumentStore, scan_id: str, actor: Actor | None = None) -> OperationResult[Scan]:
    return _set_status(store, scan_id, ScanStatus.APPROVED, actor)


def reject_scan(store: DocumentStore, scan_id: str, actor: Actor | None = None) -> OperationResult[Scan]:
    return _set_status(store, scan_id, ScanStatus.REJECTED, actor)


def create_case_from_scan(
    store: DocumentStore,
    scan_id: str,
    data: CaseFromScanCreate,
    actor: Actor | None = None,
) -> OperationResult[Case]:
    """
    Convert an approved scan into a case.

    Patient, dentist, clinic, arch, and attachment references are copied; the
    scan's service order code becomes the treatment code and the scan is
    marked converted.
    """

    def _op(state: WorkflowState) -> Case:
        scan = get_scan_or_raise(state, scan_id)
        if scan.linked_case_id or scan.status == ScanStatus.CONVERTED.value:
            raise ScanAlreadyConverted("This scan was already converted into a case.")
        if scan.status != ScanStatus.APPROVED.value:
            raise ScanNotApproved("Only approved scans can be converted into a case.")

        case = case_service.build_case(
            state,
            patient_name=scan.patient_name,
            scan_date=scan.scan_date,
            arch=scan.arch,
            total_trays_upper=data.upper_qty,
            total_trays_lower=data.lower_qty,
            change_every_days=data.change_every_days,
            attachment_bonding_tray=data.attachment_bonding_tray,
            patient_id=scan.patient_id,
            dentist_id=scan.dentist_id,
            requested_by_dentist_id=scan.requested_by_dentist_id,
            clinic_id=scan.clinic_id,
            treatment_code=scan.service_order_code,
            complaint=scan.complaint,
            dentist_guidance=scan.dentist_guidance,
            source_scan_id=scan.id,
            scan_files=[ScanFile(**attachment.model_dump()) for attachment in scan.attachments],
        )
        scan.status = ScanStatus.CONVERTED.value
        scan.linked_case_id = case.id
        scan.service_order_code = case.treatment_code
        scan.updated_at = utcnow()

        audit_service.record_event(
            state,
            AuditEntity.CASE,
            case.id,
            "case.create_from_scan",
            f"Case {case.treatment_code} created from scan {scan.id}.",
            actor,
        )
        logger.info(f"Scan {scan.id} converted into case {case.id}")
        return case

    return store.execute("create_case_from_scan", _op, scan_id=scan_id)
