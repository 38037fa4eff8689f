"""
Notification Service
====================

Creates notifications, resolves site staff for fan-out and handles the
recipient-side inbox commands (read, acknowledge).

Version: 0.1.0
"""

from collections.abc import Iterable, Sequence

from services.visitor.errors import ConcurrentUpdate, PermissionDenied
from services.visitor.models.audit import AuditAction, AuditEntityType
from services.visitor.models.base import utcnow
from services.visitor.models.notification import Notification, NotificationType, RecipientType
from services.visitor.models.site import Member
from services.visitor.services.audit import AuditService
from services.visitor.services.guards import Clock
from services.visitor.store.base import Store
from shared.auth.roles import Actor, Role
from shared.logging import get_logger


logger = get_logger(__name__)

INBOX_LIMIT = 100


class NotificationService:
    """Outbound alerts and the recipient inbox."""

    def __init__(self, store: Store, audit: AuditService, clock: Clock = utcnow) -> None:
        self.store = store
        self.audit = audit
        self.clock = clock

    # =========================================================================
    # Sending
    # =========================================================================

    async def send_to_users(
        self,
        user_ids: Iterable[str],
        notification_type: NotificationType,
        title: str,
        body: str,
        visit_id: str | None = None,
        requires_acknowledgement: bool = False,
        action_url: str | None = None,
    ) -> list[Notification]:
        """Send one notification per distinct user, in the given order."""
        now = self.clock()
        recipients = list(dict.fromkeys(user_ids))
        notifications = [
            Notification(
                recipient_type=RecipientType.USER,
                recipient_user_id=user_id,
                visit_id=visit_id,
                notification_type=notification_type,
                title=title,
                body=body,
                action_url=action_url,
                requires_acknowledgement=requires_acknowledgement,
                created_at=now,
            )
            for user_id in recipients
        ]
        stored = await self.store.insert_many(notifications)
        logger.info(
            "notifications_sent",
            notification_type=notification_type.value,
            visit_id=visit_id,
            recipients=len(stored),
        )
        return stored

    async def send_to_visitor(
        self,
        visitor_id: str,
        notification_type: NotificationType,
        title: str,
        body: str,
        visit_id: str | None = None,
        action_url: str | None = None,
    ) -> Notification:
        """Send a notification to a visitor."""
        notification = Notification(
            recipient_type=RecipientType.VISITOR,
            recipient_visitor_id=visitor_id,
            visit_id=visit_id,
            notification_type=notification_type,
            title=title,
            body=body,
            action_url=action_url,
            created_at=self.clock(),
        )
        return await self.store.insert(notification)

    async def staff_at_site(
        self,
        site_id: str,
        roles: Sequence[Role] | None = None,
    ) -> list[Member]:
        """Active members at a site, optionally restricted to some roles."""
        where: dict[str, object] = {"site_id": site_id, "is_active": True}
        if roles is not None:
            where["role"] = list(roles)
        return await self.store.find(Member, where=where, order_by="created_at")

    # =========================================================================
    # Inbox
    # =========================================================================

    async def inbox(self, actor: Actor, limit: int = INBOX_LIMIT) -> list[Notification]:
        """Notifications addressed to the actor, newest first."""
        return await self.store.find(
            Notification,
            where={"recipient_user_id": actor.id},
            order_by="created_at",
            descending=True,
            limit=limit,
        )

    async def _own(self, notification_id: str, actor: Actor) -> Notification:
        notification = await self.store.require(Notification, notification_id)
        if notification.recipient_user_id != actor.id:
            raise PermissionDenied(
                "Only the recipient can update this notification",
                notification_id=notification_id,
            )
        return notification

    async def mark_read(self, notification_id: str, actor: Actor) -> Notification:
        """Flag a notification as read."""
        notification = await self._own(notification_id, actor)
        if notification.is_read:
            return notification
        return await self.store.update(Notification, notification_id, {"is_read": True})

    async def acknowledge(self, notification_id: str, actor: Actor) -> Notification:
        """
        Acknowledge a notification.

        Idempotent: acknowledging twice keeps the first timestamp.
        """
        notification = await self._own(notification_id, actor)
        if notification.is_acknowledged:
            return notification

        try:
            acknowledged = await self.store.update(
                Notification,
                notification_id,
                {"acknowledged_at": self.clock(), "is_read": True},
                expected={"acknowledged_at": None},
            )
        except ConcurrentUpdate:
            return await self.store.require(Notification, notification_id)

        logger.info(
            "notification_acknowledged",
            notification_id=notification_id,
            notification_type=acknowledged.notification_type.value,
            visit_id=acknowledged.visit_id,
        )
        await self.audit.log(
            AuditAction.NOTIFICATION_ACKNOWLEDGED,
            AuditEntityType.NOTIFICATION,
            notification_id,
            actor.id,
            {"visit_id": acknowledged.visit_id},
        )
        return acknowledged
