"""
Authenticated principal Data Transfer Objects.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class Role(str, Enum):
    """Roles carried in the ``user_type`` claim."""
    ADMINISTRATOR = "administrator"
    MANAGER = "manager"
    CUSTOMER = "customer"
    ASTROLOGER = "astrologer"


@dataclass(frozen=True)
class PrincipalDTO:
    """Identity derived from a verified bearer credential. Never persisted."""
    id: str
    email: str
    role: Role
    token_issued_at: Optional[datetime] = None
    token_expires_at: Optional[datetime] = None
    name: Optional[str] = None

    def has_role(self, *roles: Role | str) -> bool:
        return self.role.value in {Role(r).value for r in roles}
