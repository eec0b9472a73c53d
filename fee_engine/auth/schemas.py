from typing import Dict, Optional
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

UNRESTRICTED_ROLES = ("SUPER_ADMIN", "PLATFORM_ADMIN")


class TokenClaims(BaseModel):
    """Claims the fee service reads from an access token. user_id falls back to the standard sub claim."""

    user_id: Optional[UUID] = None
    sub: Optional[str] = None
    tenant_id: UUID
    role: str = Field(..., min_length=1)
    permissions: Dict[str, Dict[str, bool]] = Field(default_factory=dict)

    @model_validator(mode="after")
    def resolve_user_id(self) -> "TokenClaims":
        if self.user_id is None:
            if not self.sub:
                raise ValueError("token has neither user_id nor sub")
            self.user_id = UUID(self.sub)
        return self


class CurrentUser(BaseModel):
    """Capabilities of the caller, decoded from the bearer token and passed explicitly to services.

    permissions maps a module to its allowed actions, e.g. {"fees": {"create": true, "read": true}}.
    """

    id: UUID
    tenant_id: UUID
    role: str
    permissions: Dict[str, Dict[str, bool]]

    def can(self, module: str, action: str) -> bool:
        if self.role in UNRESTRICTED_ROLES:
            return True
        return bool((self.permissions or {}).get(module, {}).get(action, False))
