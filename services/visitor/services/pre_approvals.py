"""
Pre-Approval Service
====================

Hosts request unescorted access for a visitor; site admins decide.

Lifecycle:
    PENDING -> APPROVED -> REVOKED
    PENDING -> REJECTED
    APPROVED lapses once expires_at passes (checked on read)

Version: 0.1.0
"""

from datetime import timedelta

from services.visitor.errors import ConcurrentUpdate, InvalidTransition, ValidationFailed
from services.visitor.models.access import PreApproval, PreApprovalCreate, PreApprovalStatus
from services.visitor.models.audit import AuditAction, AuditEntityType
from services.visitor.models.base import utcnow
from services.visitor.models.notification import NotificationType
from services.visitor.models.site import Site, Visitor
from services.visitor.services.audit import AuditService
from services.visitor.services.guards import Clock, require_role, require_same_site
from services.visitor.services.notifications import NotificationService
from services.visitor.store.base import Store
from shared.auth.roles import Actor, Role
from shared.logging import get_logger


logger = get_logger(__name__)


class PreApprovalService:
    """Request and decide pre-approvals."""

    def __init__(
        self,
        store: Store,
        notifications: NotificationService,
        audit: AuditService,
        default_days: int = 90,
        clock: Clock = utcnow,
    ) -> None:
        self.store = store
        self.notifications = notifications
        self.audit = audit
        self.default_days = default_days
        self.clock = clock

    async def list_requests(
        self,
        actor: Actor,
        status: PreApprovalStatus | None = None,
    ) -> list[PreApproval]:
        """Admins see the whole site; hosts see their own requests."""
        require_role(actor, Role.HOST)
        where: dict[str, object] = {"site_id": actor.site_id}
        if status is not None:
            where["status"] = status
        if not actor.has_min_role(Role.SITE_ADMIN):
            where["requested_by"] = actor.id
        return await self.store.find(
            PreApproval,
            where=where,
            order_by="created_at",
            descending=True,
        )

    async def request(self, actor: Actor, request: PreApprovalCreate) -> PreApproval:
        require_role(actor, Role.HOST)
        visitor = await self.store.require(Visitor, request.visitor_id)
        now = self.clock()

        approval = await self.store.insert(
            PreApproval(
                visitor_id=visitor.id,
                site_id=actor.site_id,
                requested_by=actor.id,
                reason=request.reason,
                created_at=now,
                updated_at=now,
            )
        )

        admins = await self.notifications.staff_at_site(actor.site_id, [Role.SITE_ADMIN])
        await self.notifications.send_to_users(
            [a.id for a in admins],
            NotificationType.PRE_APPROVAL_REQUEST,
            title="Pre-approval requested",
            body=f"Unescorted access requested for {visitor.name}.",
        )

        logger.info("pre_approval_requested", pre_approval_id=approval.id, visitor_id=visitor.id)
        await self.audit.log(
            AuditAction.PRE_APPROVAL_REQUESTED,
            AuditEntityType.PRE_APPROVAL,
            approval.id,
            actor.id,
            {"visitor_id": visitor.id},
        )
        return approval

    async def _decide(
        self,
        actor: Actor,
        approval_id: str,
        source: PreApprovalStatus,
        patch: dict[str, object],
        action: AuditAction,
    ) -> PreApproval:
        require_role(actor, Role.SITE_ADMIN)
        approval = await self.store.require(PreApproval, approval_id)
        require_same_site(actor, approval.site_id)
        if approval.status != source:
            raise InvalidTransition(
                f"Only {source.value} pre-approvals can be changed this way",
                status=approval.status.value,
            )

        try:
            decided = await self.store.update(
                PreApproval,
                approval_id,
                {**patch, "updated_at": self.clock()},
                expected={"status": source},
            )
        except ConcurrentUpdate as e:
            raise InvalidTransition("This pre-approval was already decided") from e

        await self.notifications.send_to_users(
            [decided.requested_by],
            NotificationType.PRE_APPROVAL_DECISION,
            title=f"Pre-approval {decided.status.value}",
            body=f"Your pre-approval request is now {decided.status.value}.",
        )

        logger.info(
            "pre_approval_decided",
            pre_approval_id=approval_id,
            status=decided.status.value,
        )
        await self.audit.log(
            action,
            AuditEntityType.PRE_APPROVAL,
            approval_id,
            actor.id,
            {"visitor_id": decided.visitor_id, "status": decided.status.value},
        )
        return decided

    async def approve(self, actor: Actor, approval_id: str) -> PreApproval:
        """Approve a pending request for the site's default validity."""
        site = await self.store.require(Site, actor.site_id)
        days = site.pre_approval_default_days or self.default_days
        return await self._decide(
            actor,
            approval_id,
            PreApprovalStatus.PENDING,
            {
                "status": PreApprovalStatus.APPROVED,
                "approved_by": actor.id,
                "expires_at": self.clock() + timedelta(days=days),
            },
            AuditAction.PRE_APPROVAL_APPROVED,
        )

    async def reject(self, actor: Actor, approval_id: str, reason: str) -> PreApproval:
        reason = reason.strip()
        if not reason:
            raise ValidationFailed("A rejection reason is required")
        return await self._decide(
            actor,
            approval_id,
            PreApprovalStatus.PENDING,
            {"status": PreApprovalStatus.REJECTED, "approved_by": actor.id, "reason": reason},
            AuditAction.PRE_APPROVAL_REJECTED,
        )

    async def revoke(self, actor: Actor, approval_id: str) -> PreApproval:
        return await self._decide(
            actor,
            approval_id,
            PreApprovalStatus.APPROVED,
            {
                "status": PreApprovalStatus.REVOKED,
                "revoked_at": self.clock(),
                "revoked_by": actor.id,
            },
            AuditAction.PRE_APPROVAL_REVOKED,
        )
