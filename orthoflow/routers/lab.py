"""Lab router - work orders and the production status pipeline."""

from fastapi import APIRouter, Depends, HTTPException

from orthoflow.core.deps import get_actor, get_store, require_internal, unwrap
from orthoflow.core.errors import OperationResult
from orthoflow.schemas.auth import Actor
from orthoflow.schemas.lab import (
    AdvanceOrderCreate,
    LabItem,
    LabItemCreate,
    LabItemResponse,
    LabItemUpdate,
    LabMove,
    LabOrderOutcome,
)
from orthoflow.services import lab_service
from orthoflow.services.document_store import DocumentStore

router = APIRouter()


def _response(result: OperationResult[LabOrderOutcome]) -> LabItemResponse:
    outcome = unwrap(result)
    return LabItemResponse(
        item=outcome.item,
        sync_message=outcome.sync_message,
        warnings=result.warnings,
    )


@router.get("", response_model=list[LabItem])
def list_lab_items(
    actor: Actor = Depends(get_actor),
    store: DocumentStore = Depends(get_store),
):
    """
    List visible work orders by due date.

    Programmed replenishments are generated (and duplicates dropped) before
    the list is built.
    """
    return lab_service.list_lab_items(store, actor)


@router.post("", response_model=LabItemResponse, status_code=201)
def create_lab_item(
    data: LabItemCreate,
    actor: Actor = Depends(require_internal),
    store: DocumentStore = Depends(get_store),
):
    return _response(lab_service.add_lab_item(store, data, actor))


@router.get("/{item_id}", response_model=LabItem)
def get_lab_item(
    item_id: str,
    actor: Actor = Depends(get_actor),
    store: DocumentStore = Depends(get_store),
):
    item = lab_service.get_lab_item(store, actor, item_id)
    if not item:
        raise HTTPException(status_code=404, detail="Lab item not found")
    return item


@router.patch("/{item_id}", response_model=LabItemResponse)
def update_lab_item(
    item_id: str,
    data: LabItemUpdate,
    actor: Actor = Depends(require_internal),
    store: DocumentStore = Depends(get_store),
):
    return _response(lab_service.update_lab_item(store, item_id, data, actor))


@router.post("/{item_id}/move", response_model=LabItemResponse)
def move_lab_item(
    item_id: str,
    data: LabMove,
    actor: Actor = Depends(require_internal),
    store: DocumentStore = Depends(get_store),
):
    """Move one step along awaiting_start -> in_production -> quality_control -> ready."""
    return _response(lab_service.move_lab_item(store, item_id, data.status, actor))


@router.post("/{item_id}/advance", response_model=LabItem, status_code=201)
def create_advance_order(
    item_id: str,
    data: AdvanceOrderCreate,
    actor: Actor = Depends(require_internal),
    store: DocumentStore = Depends(get_store),
):
    return unwrap(lab_service.create_advance_lab_order(store, item_id, data, actor))


@router.delete("/{item_id}")
def delete_lab_item(
    item_id: str,
    actor: Actor = Depends(require_internal),
    store: DocumentStore = Depends(get_store),
):
    """Admin only. The linked rework/production counterpart is removed too."""
    removed = unwrap(lab_service.delete_lab_item(store, item_id, actor))
    return {"deleted": removed}
