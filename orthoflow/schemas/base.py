"""Shared pydantic base for records stored in the workflow document."""

from pydantic import BaseModel, ConfigDict


class DocumentModel(BaseModel):
    """Enums are stored as their plain string values so the document stays JSON-native."""

    model_config = ConfigDict(use_enum_values=True, validate_default=True, extra="ignore")
