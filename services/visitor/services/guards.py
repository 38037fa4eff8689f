"""
Command Guards
==============

Capability checks every workflow command applies to its explicit actor.

Version: 0.1.0
"""

from collections.abc import Callable
from datetime import datetime

from services.visitor.errors import PermissionDenied
from shared.auth.roles import Actor, Role
from shared.logging import get_logger


logger = get_logger(__name__)

Clock = Callable[[], datetime]


def require_role(actor: Actor, required: Role) -> None:
    """Raise PermissionDenied unless the actor holds at least `required`."""
    if not actor.has_min_role(required):
        logger.warning(
            "insufficient_role",
            actor_id=actor.id,
            role=actor.role.value,
            required_role=required.value,
        )
        raise PermissionDenied(actor_id=actor.id, required_role=required.value)


def require_same_site(actor: Actor, site_id: str) -> None:
    """Sessions may only act on records at their own site."""
    if actor.site_id != site_id:
        logger.warning("cross_site_access_denied", actor_id=actor.id, site_id=site_id)
        raise PermissionDenied("This record belongs to another site", site_id=site_id)
