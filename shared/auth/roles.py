"""
Role Ladder
===========

Site roles are ordered; a higher role holds every capability of the
roles beneath it.

Version: 0.1.0
"""

from enum import Enum

from pydantic import BaseModel, Field


class Role(str, Enum):
    """Member roles at a site."""

    HOST = "host"
    RECEPTION = "reception"
    SITE_ADMIN = "site_admin"


ROLE_LEVELS: dict[str, int] = {
    Role.HOST.value: 1,
    Role.RECEPTION.value: 2,
    Role.SITE_ADMIN.value: 3,
}

# Roles that receive deny-list alerts and reception-tier escalations
RESPONDER_ROLES = (Role.RECEPTION, Role.SITE_ADMIN)


def has_min_role(role: str | Role, required: str | Role) -> bool:
    """
    Check whether a role meets a minimum role.

    Unknown roles rank below every known role.
    """
    role_value = role.value if isinstance(role, Role) else role
    required_value = required.value if isinstance(required, Role) else required
    return ROLE_LEVELS.get(role_value, 0) >= ROLE_LEVELS.get(required_value, 0)


class Actor(BaseModel):
    """The member issuing a workflow command."""

    id: str = Field(..., description="Member ID")
    role: Role
    site_id: str = Field(..., description="Site the session is bound to")
    name: str | None = None

    def has_min_role(self, required: Role) -> bool:
        """Check this actor against a minimum role."""
        return has_min_role(self.role, required)

    @property
    def is_responder(self) -> bool:
        """Reception and site admins respond to escalations."""
        return self.role in RESPONDER_ROLES
