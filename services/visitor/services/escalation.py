"""
Escalation Scheduler
====================

Periodically re-notifies when an escort request goes unanswered.

Chain per visit:
1. `escort_required` to every host contact (sent at check-in)
2. After the site's escalation window: `escalation` to the backup contact,
   or straight to reception when the visit has no backup
3. Once the backup's `escalation` itself goes stale: `escalation_reception`
   broadcast to every reception and site-admin member

Each tick takes at most one action per visit. A notification is claimed
(`escalated` false -> true) with a conditional write before anything is
sent, so concurrent ticks never escalate it twice. A failed send releases
the claim, leaving the notification for the next tick.

The polling loop runs only while at least one reception or site-admin
session is registered.

Version: 0.1.0
"""

import asyncio
from collections import defaultdict
from collections.abc import Awaitable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import TypeVar

from services.visitor.errors import (
    ConcurrentUpdate,
    NotFound,
    PermissionDenied,
    StoreUnavailable,
)
from services.visitor.models.audit import AuditAction, AuditEntityType
from services.visitor.models.base import utcnow
from services.visitor.models.notification import Notification, NotificationType
from services.visitor.models.site import Site
from services.visitor.models.visit import HostContact, Visit, VisitStatus
from services.visitor.services.audit import AuditService
from services.visitor.services.guards import Clock
from services.visitor.services.notifications import NotificationService
from services.visitor.store.base import Store
from shared.auth.roles import RESPONDER_ROLES, Actor
from shared.logging import get_logger


logger = get_logger(__name__)

T = TypeVar("T")


class EscalationTier(str, Enum):
    """Escalation notification sent at each tier."""

    BACKUP = NotificationType.ESCALATION.value
    RECEPTION = NotificationType.ESCALATION_RECEPTION.value

    @property
    def notification_type(self) -> NotificationType:
        return NotificationType(self.value)


@dataclass
class EscalationOutcome:
    """What one tick did for one visit."""

    visit_id: str
    notification_id: str
    tier: EscalationTier | None = None
    recipients: list[str] = field(default_factory=list)
    skipped: str | None = None
    error: str | None = None


@dataclass
class TickReport:
    """Summary of one escalation pass over a site."""

    site_id: str
    started_at: datetime
    stale: int = 0
    outcomes: list[EscalationOutcome] = field(default_factory=list)

    @property
    def escalated(self) -> list[EscalationOutcome]:
        return [o for o in self.outcomes if o.tier is not None]

    @property
    def failed(self) -> list[EscalationOutcome]:
        return [o for o in self.outcomes if o.error is not None]


class EscalationScheduler:
    """
    Escalates unacknowledged escort requests.

    Handles:
    - Responder session registration (starts and stops the loop)
    - Periodic and on-demand ticks, never overlapping
    - Per-visit escalation with bounded store calls
    """

    def __init__(
        self,
        store: Store,
        notifications: NotificationService,
        audit: AuditService,
        poll_seconds: float = 30.0,
        store_timeout_seconds: float = 10.0,
        default_window_minutes: int = 10,
        clock: Clock = utcnow,
    ) -> None:
        self.store = store
        self.notifications = notifications
        self.audit = audit
        self.poll_seconds = poll_seconds
        self.store_timeout_seconds = store_timeout_seconds
        self.default_window = timedelta(minutes=default_window_minutes)
        self.clock = clock

        self._responders: dict[str, set[str]] = defaultdict(set)
        self._task: asyncio.Task[None] | None = None
        self._in_flight = asyncio.Lock()

    # =========================================================================
    # Sessions and loop
    # =========================================================================

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def active_sites(self) -> list[str]:
        return [site_id for site_id, members in self._responders.items() if members]

    def register_responder(self, actor: Actor) -> None:
        """Register a reception or site-admin session; starts the loop if idle."""
        if not actor.is_responder:
            raise PermissionDenied("Only reception and site admins run escalations")
        self._responders[actor.site_id].add(actor.id)
        logger.info("escalation_responder_registered", site_id=actor.site_id, member_id=actor.id)
        if not self.is_running:
            self.start()

    async def unregister_responder(self, actor: Actor) -> None:
        """Drop a session; stops the loop once no responder remains."""
        members = self._responders.get(actor.site_id)
        if members is not None:
            members.discard(actor.id)
            if not members:
                del self._responders[actor.site_id]
        logger.info("escalation_responder_unregistered", site_id=actor.site_id, member_id=actor.id)
        if not self.active_sites:
            await self.stop()

    def start(self) -> None:
        if self.is_running:
            return
        self._task = asyncio.create_task(self._run(), name="escalation-scheduler")
        logger.info("escalation_scheduler_started", poll_seconds=self.poll_seconds)

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("escalation_scheduler_stopped")

    async def _run(self) -> None:
        while True:
            await self.run_once()
            await asyncio.sleep(self.poll_seconds)

    async def run_once(self) -> list[TickReport] | None:
        """Tick every site with a registered responder; None if a tick is in flight."""
        if self._in_flight.locked():
            logger.debug("escalation_tick_in_flight")
            return None
        async with self._in_flight:
            reports = []
            for site_id in self.active_sites:
                try:
                    reports.append(await self._tick(site_id, min(self._responders[site_id])))
                except Exception:
                    logger.exception("escalation_tick_failed", site_id=site_id)
            return reports

    async def tick(self, site_id: str, actor_id: str | None = None) -> TickReport | None:
        """
        Run one pass for a site; None if a tick is already in flight.

        Escalations fired are audited against `actor_id`, the responder
        whose session ran the tick.
        """
        if self._in_flight.locked():
            logger.debug("escalation_tick_in_flight", site_id=site_id)
            return None
        async with self._in_flight:
            return await self._tick(site_id, actor_id)

    # =========================================================================
    # Tick
    # =========================================================================

    async def _call(self, awaitable: Awaitable[T]) -> T:
        """Bound a store call so one slow query cannot stall the tick."""
        try:
            return await asyncio.wait_for(awaitable, timeout=self.store_timeout_seconds)
        except TimeoutError as e:
            raise StoreUnavailable("Store call timed out during escalation") from e

    async def _tick(self, site_id: str, actor_id: str | None) -> TickReport:
        now = self.clock()
        report = TickReport(site_id=site_id, started_at=now)

        site = await self._call(self.store.require(Site, site_id))
        window = (
            timedelta(minutes=site.notification_escalation_minutes)
            if site.notification_escalation_minutes is not None
            else self.default_window
        )
        cutoff = now - window

        stale = await self._call(
            self.store.find(
                Notification,
                where={
                    "notification_type": [NotificationType.ESCORT_REQUIRED, NotificationType.ESCALATION],
                    "requires_acknowledgement": True,
                    "acknowledged_at": None,
                    "escalated": False,
                },
                predicate=lambda n: n.visit_id is not None and n.created_at < cutoff,
                order_by="created_at",
            )
        )
        by_visit: dict[str, list[Notification]] = defaultdict(list)
        for notification in stale:
            by_visit[notification.visit_id].append(notification)
        if not by_visit:
            return report

        visits = await self._call(
            self.store.find(Visit, where={"id": list(by_visit), "site_id": site_id})
        )
        report.stale = sum(len(by_visit[v.id]) for v in visits)

        for visit in visits:
            try:
                outcome = await self._escalate_visit(site, visit, by_visit[visit.id], actor_id)
            except Exception as e:
                logger.exception("escalation_failed", visit_id=visit.id, site_id=site_id)
                outcome = EscalationOutcome(
                    visit_id=visit.id,
                    notification_id=by_visit[visit.id][0].id,
                    error=str(e),
                )
            if outcome is not None:
                report.outcomes.append(outcome)

        logger.info(
            "escalation_tick_completed",
            site_id=site_id,
            stale=report.stale,
            escalated=len(report.escalated),
            failed=len(report.failed),
        )
        return report

    async def _escalate_visit(
        self,
        site: Site,
        visit: Visit,
        stale: list[Notification],
        actor_id: str | None,
    ) -> EscalationOutcome | None:
        """Take at most one escalation step for a visit."""
        contacts = await self._call(
            self.store.find(HostContact, where={"visit_id": visit.id}, order_by="created_at")
        )
        backup_ids = [c.user_id for c in contacts if c.is_backup]

        # Escort requests to backups never seed the chain; the backup tier covers them
        stale_escalations = [n for n in stale if n.notification_type == NotificationType.ESCALATION]
        primary_requests = [
            n
            for n in stale
            if n.notification_type == NotificationType.ESCORT_REQUIRED
            and n.recipient_user_id not in backup_ids
        ]
        if not stale_escalations and not primary_requests:
            return None

        notification = (stale_escalations or primary_requests)[0]
        outcome = EscalationOutcome(visit_id=visit.id, notification_id=notification.id)

        if visit.status != VisitStatus.CHECKED_IN:
            outcome.skipped = "visit_not_on_site"
            return outcome

        history = await self._call(
            self.store.find(
                Notification,
                where={
                    "visit_id": visit.id,
                    "notification_type": [
                        NotificationType.ESCORT_REQUIRED,
                        NotificationType.ESCALATION,
                        NotificationType.ESCALATION_RECEPTION,
                    ],
                },
                order_by="created_at",
            )
        )
        if any(
            n.is_acknowledged
            for n in history
            if n.notification_type in (NotificationType.ESCORT_REQUIRED, NotificationType.ESCALATION)
        ):
            outcome.skipped = "escort_acknowledged"
            return outcome
        if any(n.notification_type == NotificationType.ESCALATION_RECEPTION for n in history):
            outcome.skipped = "reception_already_notified"
            return outcome

        prior = [n for n in history if n.notification_type == NotificationType.ESCALATION]
        if not stale_escalations and prior:
            outcome.skipped = "backup_window_open"
            return outcome

        if backup_ids and not prior:
            tier = EscalationTier.BACKUP
            recipients = [backup_ids[0]]
        else:
            tier = EscalationTier.RECEPTION
            staff = await self._call(self.notifications.staff_at_site(site.id, RESPONDER_ROLES))
            if not staff:
                raise NotFound("Reception staff", site.id)
            recipients = [m.id for m in staff]

        try:
            await self._call(
                self.store.update(
                    Notification,
                    notification.id,
                    {"escalated": True},
                    expected={"escalated": False},
                )
            )
        except ConcurrentUpdate:
            outcome.skipped = "already_claimed"
            return outcome

        try:
            await self._call(
                self.notifications.send_to_users(
                    recipients,
                    tier.notification_type,
                    title="Escort request escalated",
                    body=(
                        "A visitor has been waiting for an escort since "
                        f"{visit.actual_arrival or notification.created_at:%H:%M} and nobody has responded."
                    ),
                    visit_id=visit.id,
                    requires_acknowledgement=tier == EscalationTier.BACKUP,
                )
            )
        except Exception:
            await self._release(notification.id)
            raise

        outcome.tier = tier
        outcome.recipients = recipients
        logger.info(
            "escalation_sent",
            visit_id=visit.id,
            notification_id=notification.id,
            tier=tier.value,
            recipients=len(recipients),
        )
        await self.audit.log(
            AuditAction.ESCALATION_TRIGGERED,
            AuditEntityType.NOTIFICATION,
            notification.id,
            actor_id,
            {"visit_id": visit.id, "escalation_type": tier.value, "recipients": recipients},
        )
        return outcome

    async def _release(self, notification_id: str) -> None:
        """Return a claimed notification to the pool so the next tick retries it."""
        try:
            await self._call(
                self.store.update(
                    Notification,
                    notification_id,
                    {"escalated": False},
                    expected={"escalated": True},
                )
            )
        except Exception:
            logger.exception("escalation_release_failed", notification_id=notification_id)
