"""
Authentication Module
=====================

JWT-based session tokens and the site role ladder.

Features:
- JWT token generation and validation
- host < reception < site_admin role ordering
- FastAPI dependencies for route protection

Usage:
    from shared.auth import create_access_token, require_min_role, Role

    token = create_access_token({"sub": member_id, "role": "reception", "site_id": site_id})

    @app.post("/visits/{visit_id}/check-in")
    async def check_in(actor: Actor = Depends(require_min_role(Role.RECEPTION))):
        ...
"""

from shared.auth.dependencies import (
    get_current_actor,
    oauth2_scheme,
    require_host,
    require_min_role,
    require_reception,
    require_site_admin,
)
from shared.auth.jwt import TokenData, create_access_token, decode_token
from shared.auth.roles import RESPONDER_ROLES, ROLE_LEVELS, Actor, Role, has_min_role

__all__ = [
    # JWT
    "create_access_token",
    "decode_token",
    "TokenData",
    # Roles
    "Actor",
    "Role",
    "ROLE_LEVELS",
    "RESPONDER_ROLES",
    "has_min_role",
    # Dependencies
    "get_current_actor",
    "require_min_role",
    "require_host",
    "require_reception",
    "require_site_admin",
    "oauth2_scheme",
]
