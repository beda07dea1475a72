"""Structured logging helpers (PHI-safe)."""

import logging
from typing import Any


def build_log_context(
    *,
    operation: str | None = None,
    case_id: str | None = None,
    lab_item_id: str | None = None,
    scan_id: str | None = None,
    actor_role: str | None = None,
    error_code: str | None = None,
) -> dict[str, Any]:
    """Return a PHI-safe log context dict (ids and codes only, never names)."""
    context: dict[str, Any] = {}
    if operation:
        context["operation"] = operation
    if case_id:
        context["case_id"] = case_id
    if lab_item_id:
        context["lab_item_id"] = lab_item_id
    if scan_id:
        context["scan_id"] = scan_id
    if actor_role:
        context["actor_role"] = actor_role
    if error_code:
        context["error_code"] = error_code
    return context


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging once for the API process."""
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
