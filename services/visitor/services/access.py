"""
Access Decision Engine
======================

Decides, at check-in, whether a visitor is blocked, may move unescorted or
must wait for an escort, and fans the outcome out to the visit's hosts.

Decision order:
1. Deny list, matched by visitor ID, then by email (case-insensitive)
2. Internal staff are unescorted
3. An approved, unexpired pre-approval grants unescorted access
4. Everyone else awaits an escort

Version: 0.1.0
"""

from datetime import datetime

from services.visitor.errors import DeniedVisitor
from services.visitor.models.access import DenyListEntry, PreApproval, PreApprovalStatus
from services.visitor.models.audit import AuditAction, AuditEntityType
from services.visitor.models.base import utcnow
from services.visitor.models.notification import Notification, NotificationType
from services.visitor.models.site import Site, Visitor, VisitorType
from services.visitor.models.visit import AccessStatus, HostContact, Visit
from services.visitor.services.audit import AuditService
from services.visitor.services.guards import Clock
from services.visitor.services.notifications import NotificationService
from services.visitor.store.base import Store
from shared.auth.roles import RESPONDER_ROLES, Actor
from shared.logging import get_logger


logger = get_logger(__name__)


class AccessDecisionEngine:
    """Computes access status for a check-in."""

    def __init__(
        self,
        store: Store,
        notifications: NotificationService,
        audit: AuditService,
        clock: Clock = utcnow,
    ) -> None:
        self.store = store
        self.notifications = notifications
        self.audit = audit
        self.clock = clock

    async def find_deny_entry(
        self,
        visitor: Visitor,
        site_id: str,
        now: datetime | None = None,
    ) -> DenyListEntry | None:
        """Effective deny-list entry for a visitor at a site, if any."""
        now = now or self.clock()

        by_id = await self.store.find(
            DenyListEntry,
            where={"site_id": site_id, "visitor_id": visitor.id, "is_active": True},
            predicate=lambda e: e.is_effective(now),
            order_by="created_at",
            limit=1,
        )
        if by_id:
            return by_id[0]

        email = (visitor.email or "").lower()
        if not email:
            return None
        by_email = await self.store.find(
            DenyListEntry,
            where={"site_id": site_id, "is_active": True},
            predicate=lambda e: (
                e.visitor_email is not None
                and e.visitor_email.lower() == email
                and e.is_effective(now)
            ),
            order_by="created_at",
            limit=1,
        )
        return by_email[0] if by_email else None

    async def effective_pre_approval(
        self,
        visitor_id: str,
        site_id: str,
        now: datetime | None = None,
    ) -> PreApproval | None:
        """Approved, unexpired pre-approval for a visitor at a site, if any."""
        now = now or self.clock()
        approvals = await self.store.find(
            PreApproval,
            where={
                "visitor_id": visitor_id,
                "site_id": site_id,
                "status": PreApprovalStatus.APPROVED,
            },
            predicate=lambda p: p.is_effective(now),
            order_by="expires_at",
            descending=True,
            limit=1,
        )
        return approvals[0] if approvals else None

    async def decide(
        self,
        visit: Visit,
        visitor: Visitor,
        site: Site,
        actor: Actor,
    ) -> AccessStatus:
        """
        Decide access for a check-in.

        Raises:
            DeniedVisitor: an effective deny-list entry matches the visitor
        """
        now = self.clock()

        entry = await self.find_deny_entry(visitor, site.id, now)
        if entry is not None:
            await self._alert_denied(visit, visitor, site, entry, actor)
            raise DeniedVisitor(entry)

        if visitor.visitor_type == VisitorType.INTERNAL_STAFF:
            return AccessStatus.UNESCORTED

        if await self.effective_pre_approval(visitor.id, site.id, now) is not None:
            return AccessStatus.UNESCORTED

        return AccessStatus.AWAITING_ESCORT

    async def _alert_denied(
        self,
        visit: Visit,
        visitor: Visitor,
        site: Site,
        entry: DenyListEntry,
        actor: Actor,
    ) -> None:
        logger.warning(
            "deny_list_check_blocked",
            visit_id=visit.id,
            visitor_id=visitor.id,
            deny_list_id=entry.id,
            site_id=site.id,
        )
        try:
            staff = await self.notifications.staff_at_site(site.id, RESPONDER_ROLES)
            await self.notifications.send_to_users(
                [member.id for member in staff],
                NotificationType.DENY_LIST_ALERT,
                title="Deny-list match at check-in",
                body=f"{visitor.name} attempted to check in at {site.name}. Reason on file: {entry.reason}",
                visit_id=visit.id,
            )
        except Exception as e:
            logger.error("deny_list_alert_failed", visit_id=visit.id, error=str(e))

        await self.audit.log(
            AuditAction.DENY_LIST_CHECK_BLOCKED,
            AuditEntityType.VISIT,
            visit.id,
            actor.id,
            {"deny_list_id": entry.id, "visitor_id": visitor.id},
        )

    async def notify_hosts(
        self,
        visit: Visit,
        visitor: Visitor,
        access_status: AccessStatus,
    ) -> list[Notification]:
        """Alert every host contact of an arrival, and ask for an escort if needed."""
        contacts = await self.store.find(
            HostContact,
            where={"visit_id": visit.id},
            order_by="created_at",
        )
        # Primary contacts first
        user_ids = [c.user_id for c in sorted(contacts, key=lambda c: c.is_backup)]

        sent = await self.notifications.send_to_users(
            user_ids,
            NotificationType.CHECKIN_HOST_ALERT,
            title="Your visitor has arrived",
            body=f"{visitor.name} has checked in.",
            visit_id=visit.id,
        )
        if access_status == AccessStatus.AWAITING_ESCORT:
            sent += await self.notifications.send_to_users(
                user_ids,
                NotificationType.ESCORT_REQUIRED,
                title="Escort required",
                body=f"{visitor.name} is waiting at reception and needs an escort.",
                visit_id=visit.id,
                requires_acknowledgement=True,
            )
        return sent
