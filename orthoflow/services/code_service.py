"""Code allocation for treatments (``A-0001``/``C-0001``) and lab requests (``A-0001/2``)."""

import re

from orthoflow.core.config import settings
from orthoflow.db.enums import RequestKind
from orthoflow.schemas.case import Case
from orthoflow.schemas.state import WorkflowState

TREATMENT_CODE_PATTERN = re.compile(r"^([A-Z])-(\d{4})$")
REQUEST_CODE_PATTERN = re.compile(r"^(.+)/(\d+)$")

INTERNAL_PREFIX = "A"
EXTERNAL_PREFIX = "C"
INTERNAL_CLINIC_ID = "clinic_arrimo"


def is_internal_clinic(state: WorkflowState, clinic_id: str | None) -> bool:
    """A clinic is internal when flagged so, or when it is the lab's own clinic."""
    clinic = state.get_clinic(clinic_id)
    if clinic is None:
        return False
    return (
        clinic.is_internal
        or clinic.id == INTERNAL_CLINIC_ID
        or clinic.trade_name.strip().upper() == settings.INTERNAL_CLINIC_TRADE_NAME.upper()
    )


def treatment_prefix(state: WorkflowState, clinic_id: str | None) -> str:
    return INTERNAL_PREFIX if is_internal_clinic(state, clinic_id) else EXTERNAL_PREFIX


def next_treatment_code(state: WorkflowState, prefix: str) -> str:
    """Next sequential code for ``prefix`` across case and scan codes."""
    codes = [case.treatment_code for case in state.cases]
    codes += [scan.service_order_code for scan in state.scans]
    highest = 0
    for code in codes:
        match = TREATMENT_CODE_PATTERN.match(code or "")
        if match and match.group(1) == prefix:
            highest = max(highest, int(match.group(2)))
    return f"{prefix}-{highest + 1:04d}"


def next_request_revision(state: WorkflowState, base_code: str) -> int:
    """One plus the highest ``base_code/N`` suffix among all lab items."""
    highest = 0
    for item in state.lab_items:
        match = REQUEST_CODE_PATTERN.match(item.request_code or "")
        if match and match.group(1) == base_code:
            highest = max(highest, int(match.group(2)))
    return highest + 1


def is_revision_of(request_code: str | None, base_code: str) -> bool:
    match = REQUEST_CODE_PATTERN.match(request_code or "")
    return bool(match) and match.group(1) == base_code


def allocate_request_code(
    state: WorkflowState,
    case: Case,
    request_kind: str,
    exclude_item_id: str | None = None,
) -> str:
    """
    Request code for a new order of ``case``.

    The first production order reuses the treatment code verbatim; every
    other order gets the next revision suffix.
    """
    base_code = case.code
    has_base = any(
        item.case_id == case.id
        and item.request_code == base_code
        and item.id != exclude_item_id
        for item in state.lab_items
    )
    if request_kind == RequestKind.PRODUCTION.value and not has_base:
        return base_code
    return f"{base_code}/{next_request_revision(state, base_code)}"
