"""
Deny List Service
=================

Site-admin maintenance of barred visitors.

Version: 0.1.0
"""

from services.visitor.errors import ConcurrentUpdate, ValidationFailed
from services.visitor.models.access import DenyListCreate, DenyListEntry, DenyListUpdate
from services.visitor.models.audit import AuditAction, AuditEntityType
from services.visitor.models.base import utcnow
from services.visitor.models.site import Visitor
from services.visitor.services.audit import AuditService
from services.visitor.services.guards import Clock, require_role, require_same_site
from services.visitor.store.base import Store
from shared.auth.roles import Actor, Role
from shared.logging import get_logger


logger = get_logger(__name__)


class DenyListService:
    """CRUD over a site's deny list."""

    def __init__(self, store: Store, audit: AuditService, clock: Clock = utcnow) -> None:
        self.store = store
        self.audit = audit
        self.clock = clock

    async def list_entries(self, actor: Actor, include_inactive: bool = False) -> list[DenyListEntry]:
        """Deny-list entries at the actor's site, newest first."""
        require_role(actor, Role.SITE_ADMIN)
        where: dict[str, object] = {"site_id": actor.site_id}
        if not include_inactive:
            where["is_active"] = True
        return await self.store.find(
            DenyListEntry,
            where=where,
            order_by="created_at",
            descending=True,
        )

    async def add(self, actor: Actor, request: DenyListCreate) -> DenyListEntry:
        require_role(actor, Role.SITE_ADMIN)
        now = self.clock()
        if not request.is_permanent and request.expires_at is not None and request.expires_at <= now:
            raise ValidationFailed("Expiry must be in the future")
        if request.visitor_id:
            await self.store.require(Visitor, request.visitor_id)

        entry = await self.store.insert(
            DenyListEntry(
                site_id=actor.site_id,
                visitor_id=request.visitor_id,
                visitor_name=request.visitor_name,
                visitor_email=str(request.visitor_email) if request.visitor_email else None,
                reason=request.reason,
                is_permanent=request.is_permanent,
                expires_at=None if request.is_permanent else request.expires_at,
                added_by=actor.id,
                created_at=now,
                updated_at=now,
            )
        )

        logger.info(
            "deny_list_added",
            deny_list_id=entry.id,
            site_id=entry.site_id,
            is_permanent=entry.is_permanent,
        )
        await self.audit.log(
            AuditAction.DENY_LIST_ADDED,
            AuditEntityType.DENY_LIST,
            entry.id,
            actor.id,
            {"visitor_id": entry.visitor_id, "is_permanent": entry.is_permanent},
        )
        return entry

    async def update(
        self,
        actor: Actor,
        entry_id: str,
        request: DenyListUpdate,
    ) -> DenyListEntry:
        require_role(actor, Role.SITE_ADMIN)
        entry = await self.store.require(DenyListEntry, entry_id)
        require_same_site(actor, entry.site_id)

        patch = request.model_dump(exclude_unset=True)
        if "reason" in patch:
            reason = (patch["reason"] or "").strip()
            if not reason:
                raise ValidationFailed("A reason is required")
            patch["reason"] = reason

        is_permanent = patch.get("is_permanent", entry.is_permanent)
        if is_permanent is None:
            raise ValidationFailed("is_permanent cannot be cleared")
        if is_permanent:
            patch["expires_at"] = None
        elif patch.get("expires_at", entry.expires_at) is None:
            raise ValidationFailed("Temporary entries need an expiry")

        patch["updated_at"] = self.clock()
        updated = await self.store.update(DenyListEntry, entry_id, patch)

        logger.info("deny_list_updated", deny_list_id=entry_id, fields=sorted(patch))
        await self.audit.log(
            AuditAction.DENY_LIST_UPDATED,
            AuditEntityType.DENY_LIST,
            entry_id,
            actor.id,
            {"fields": sorted(k for k in patch if k != "updated_at")},
        )
        return updated

    async def deactivate(self, actor: Actor, entry_id: str) -> DenyListEntry:
        """Lift a deny-list entry. Lifting an inactive entry is a no-op."""
        require_role(actor, Role.SITE_ADMIN)
        entry = await self.store.require(DenyListEntry, entry_id)
        require_same_site(actor, entry.site_id)
        if not entry.is_active:
            return entry

        try:
            updated = await self.store.update(
                DenyListEntry,
                entry_id,
                {"is_active": False, "updated_at": self.clock()},
                expected={"is_active": True},
            )
        except ConcurrentUpdate:
            return await self.store.require(DenyListEntry, entry_id)

        logger.info("deny_list_removed", deny_list_id=entry_id)
        await self.audit.log(
            AuditAction.DENY_LIST_REMOVED,
            AuditEntityType.DENY_LIST,
            entry_id,
            actor.id,
        )
        return updated
