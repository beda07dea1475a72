"""Actor schema consumed by the scoped query layer."""

from pydantic import BaseModel, ConfigDict

from orthoflow.db.enums import Role


class Actor(BaseModel):
    """
    Authenticated identity supplied by the auth/session collaborator.

    Passed explicitly into every scoped read; there is no ambient
    "current user" lookup.
    """

    model_config = ConfigDict(use_enum_values=True, validate_default=True, frozen=True)

    role: Role
    clinic_id: str | None = None
    dentist_id: str | None = None
    user_id: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role in Role.admins()

    @property
    def is_external(self) -> bool:
        return self.role in Role.external()
