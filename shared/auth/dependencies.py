"""
FastAPI Authentication Dependencies
===================================

Dependency injection for route protection.

Version: 0.1.0
"""

from collections.abc import Awaitable, Callable
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer

from shared.auth.jwt import decode_token
from shared.auth.roles import Actor, Role
from shared.logging import get_logger


logger = get_logger(__name__)

# OAuth2 scheme for token extraction from Authorization header
oauth2_scheme = OAuth2PasswordBearer(
    tokenUrl="/auth/token",
    auto_error=False,
)


async def get_current_actor(
    token: Annotated[str | None, Depends(oauth2_scheme)],
) -> Actor:
    """
    Extract and validate the acting member from a JWT token.

    Raises:
        HTTPException: 401 if token is missing or invalid
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if token is None:
        logger.warning("auth_token_missing")
        raise credentials_exception

    token_data = decode_token(token)

    if token_data is None:
        logger.warning("auth_token_invalid")
        raise credentials_exception

    logger.debug("actor_authenticated", actor_id=token_data.sub, role=token_data.role.value)

    return Actor(
        id=token_data.sub,
        role=token_data.role,
        site_id=token_data.site_id,
        name=token_data.name,
    )


def require_min_role(required: Role) -> Callable[[Actor], Awaitable[Actor]]:
    """
    Create a dependency that requires at least the given role.

    Usage:
        @router.post("/evacuation")
        async def activate(actor: Actor = Depends(require_min_role(Role.SITE_ADMIN))):
            ...
    """

    async def role_checker(
        actor: Annotated[Actor, Depends(get_current_actor)],
    ) -> Actor:
        if not actor.has_min_role(required):
            logger.warning(
                "insufficient_role",
                actor_id=actor.id,
                role=actor.role.value,
                required_role=required.value,
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return actor

    return role_checker


# Common role dependencies
require_host = require_min_role(Role.HOST)
require_reception = require_min_role(Role.RECEPTION)
require_site_admin = require_min_role(Role.SITE_ADMIN)
