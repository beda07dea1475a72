"""Identifier helpers for document records."""

import uuid


def new_id(prefix: str) -> str:
    """Return a prefixed random id (e.g. ``lab_3f9c0a1b2d4e``)."""
    return f"{prefix}_{uuid.uuid4().hex[:12]}"
