# This project was developed with assistance from AI tools.
"""Authentication and authorization schemas."""

from docflow_db.enums import UserRole
from pydantic import BaseModel, ConfigDict, Field


class UserContext(BaseModel):
    """Injected by auth middleware into every authenticated request.

    Workflow services take this as an explicit argument; the acting user is
    never read from ambient request state.
    """

    model_config = ConfigDict(frozen=True)

    user_id: str
    role: UserRole
    email: str
    name: str

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


class TokenPayload(BaseModel):
    """Decoded JWT token claims from Keycloak."""

    sub: str
    email: str = ""
    preferred_username: str = ""
    name: str = ""
    realm_access: dict = Field(default_factory=dict)
