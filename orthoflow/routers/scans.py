"""Scans router - intake scans and conversion into cases."""

from fastapi import APIRouter, Depends, HTTPException

from orthoflow.core.deps import get_actor, get_store, require_internal, unwrap
from orthoflow.schemas.auth import Actor
from orthoflow.schemas.case import Case
from orthoflow.schemas.scan import CaseFromScanCreate, Scan, ScanCreate
from orthoflow.services import scan_service
from orthoflow.services.document_store import DocumentStore

router = APIRouter()


@router.get("", response_model=list[Scan])
def list_scans(
    actor: Actor = Depends(get_actor),
    store: DocumentStore = Depends(get_store),
):
    return scan_service.list_scans(store, actor)


@router.post("", response_model=Scan, status_code=201)
def create_scan(
    data: ScanCreate,
    actor: Actor = Depends(get_actor),
    store: DocumentStore = Depends(get_store),
):
    return unwrap(scan_service.create_scan(store, data, actor))


@router.get("/{scan_id}", response_model=Scan)
def get_scan(
    scan_id: str,
    actor: Actor = Depends(get_actor),
    store: DocumentStore = Depends(get_store),
):
    scan = scan_service.get_scan(store, actor, scan_id)
    if not scan:
        raise HTTPException(status_code=404, detail="Scan not found")
    return scan


@router.post("/{scan_id}/approve", response_model=Scan)
def approve_scan(
    scan_id: str,
    actor: Actor = Depends(require_internal),
    store: DocumentStore = Depends(get_store),
):
    return unwrap(scan_service.approve_scan(store, scan_id, actor))


@router.post("/{scan_id}/reject", response_model=Scan)
def reject_scan(
    scan_id: str,
    actor: Actor = Depends(require_internal),
    store: DocumentStore = Depends(get_store),
):
    return unwrap(scan_service.reject_scan(store, scan_id, actor))


@router.post("/{scan_id}/case", response_model=Case, status_code=201)
def create_case_from_scan(
    scan_id: str,
    data: CaseFromScanCreate,
    actor: Actor = Depends(require_internal),
    store: DocumentStore = Depends(get_store),
):
    """Convert an approved scan into a treatment case."""
    return unwrap(scan_service.create_case_from_scan(store, scan_id, data, actor))
