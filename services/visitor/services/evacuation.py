"""
Evacuation Gate
===============

Site-wide emergency mode. While an evacuation is open, check-in and
sign-out are refused so the on-site roster stays stable for the muster
headcount.

Version: 0.1.0
"""

from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt

from services.visitor.errors import (
    ConcurrentUpdate,
    EvacuationActive,
    EvacuationAlreadyClosed,
    InvalidTransition,
    ValidationFailed,
)
from services.visitor.models.audit import AuditAction, AuditEntityType
from services.visitor.models.base import utcnow
from services.visitor.models.evacuation import EvacuationEvent, Headcount
from services.visitor.models.notification import NotificationType
from services.visitor.models.site import Site
from services.visitor.models.visit import Visit, VisitStatus
from services.visitor.services.audit import AuditService
from services.visitor.services.guards import Clock, require_role, require_same_site
from services.visitor.services.notifications import NotificationService
from services.visitor.store.base import Store
from shared.auth.roles import Actor, Role
from shared.logging import get_logger


logger = get_logger(__name__)


class EvacuationGate:
    """Activates, reconciles and closes evacuations."""

    def __init__(
        self,
        store: Store,
        notifications: NotificationService,
        audit: AuditService,
        accounting_retries: int = 3,
        clock: Clock = utcnow,
    ) -> None:
        self.store = store
        self.notifications = notifications
        self.audit = audit
        self.accounting_retries = accounting_retries
        self.clock = clock

    # =========================================================================
    # Gate
    # =========================================================================

    async def active_event(self, site_id: str) -> EvacuationEvent | None:
        """The open evacuation at a site, if any."""
        events = await self.store.find(
            EvacuationEvent,
            where={"site_id": site_id, "closed_at": None},
            limit=1,
        )
        return events[0] if events else None

    async def is_active(self, site_id: str) -> bool:
        return await self.active_event(site_id) is not None

    async def ensure_inactive(self, site_id: str) -> None:
        """
        Veto a roster-changing transition during an evacuation.

        Raises:
            EvacuationActive: an evacuation is open at the site
        """
        event = await self.active_event(site_id)
        if event is not None:
            logger.warning("transition_blocked_by_evacuation", site_id=site_id, event_id=event.id)
            raise EvacuationActive(event_id=event.id)

    async def on_site(self, site_id: str) -> list[Visit]:
        """Visits currently checked in at a site."""
        return await self.store.find(
            Visit,
            where={"site_id": site_id, "status": VisitStatus.CHECKED_IN},
            order_by="actual_arrival",
        )

    # =========================================================================
    # Commands
    # =========================================================================

    async def activate(self, actor: Actor, notes: str | None = None) -> EvacuationEvent:
        """
        Open an evacuation at the actor's site.

        Raises:
            InvalidTransition: an evacuation is already open at the site
        """
        require_role(actor, Role.SITE_ADMIN)
        site = await self.store.require(Site, actor.site_id)
        roster = await self.on_site(site.id)
        now = self.clock()

        event = EvacuationEvent(
            site_id=site.id,
            activated_by=actor.id,
            activated_at=now,
            headcount_at_activation=len(roster),
            notes=notes,
            created_at=now,
        )
        try:
            event = await self.store.insert_unique(
                event,
                conflict_where={"site_id": site.id, "closed_at": None},
            )
        except ConcurrentUpdate as e:
            raise InvalidTransition(
                "An evacuation is already active at this site",
                site_id=site.id,
            ) from e

        logger.warning(
            "evacuation_activated",
            site_id=site.id,
            event_id=event.id,
            headcount=event.headcount_at_activation,
        )

        try:
            members = await self.notifications.staff_at_site(site.id)
            await self.notifications.send_to_users(
                [m.id for m in members],
                NotificationType.EVACUATION_ACTIVATED,
                title="EVACUATION IN PROGRESS",
                body=f"An evacuation has been declared at {site.name}. Proceed to the muster point.",
            )
        except Exception as e:
            logger.error("evacuation_broadcast_failed", event_id=event.id, error=str(e))

        await self.audit.log(
            AuditAction.EVACUATION_ACTIVATED,
            AuditEntityType.EVACUATION_EVENT,
            event.id,
            actor.id,
            {"headcount": event.headcount_at_activation},
        )
        return event

    async def close(
        self,
        actor: Actor,
        event_id: str,
        notes: str | None = None,
    ) -> EvacuationEvent:
        """
        Close an evacuation.

        Raises:
            EvacuationAlreadyClosed: the event was already closed
        """
        require_role(actor, Role.SITE_ADMIN)
        event = await self.store.require(EvacuationEvent, event_id)
        require_same_site(actor, event.site_id)
        if not event.is_open:
            raise EvacuationAlreadyClosed(event_id=event_id)

        patch: dict[str, object] = {"closed_at": self.clock(), "closed_by": actor.id}
        if notes is not None:
            patch["notes"] = notes
        try:
            closed = await self.store.update(
                EvacuationEvent,
                event_id,
                patch,
                expected={"closed_at": None},
            )
        except ConcurrentUpdate as e:
            raise EvacuationAlreadyClosed(event_id=event_id) from e

        logger.info(
            "evacuation_closed",
            event_id=event_id,
            site_id=closed.site_id,
            headcount_at_activation=closed.headcount_at_activation,
            headcount_accounted=closed.headcount_accounted,
        )
        await self.audit.log(
            AuditAction.EVACUATION_CLOSED,
            AuditEntityType.EVACUATION_EVENT,
            event_id,
            actor.id,
            {
                "headcount_at_activation": closed.headcount_at_activation,
                "headcount_accounted": closed.headcount_accounted,
                "notes": closed.notes,
            },
        )
        return closed

    async def mark_accounted(
        self,
        actor: Actor,
        event_id: str,
        visit_id: str,
        accounted: bool = True,
    ) -> EvacuationEvent:
        """Mark a visitor as present (or no longer present) at the muster point."""
        require_role(actor, Role.SITE_ADMIN)
        visit = await self.store.require(Visit, visit_id)

        retrying = AsyncRetrying(
            retry=retry_if_exception_type(ConcurrentUpdate),
            stop=stop_after_attempt(self.accounting_retries),
            reraise=True,
            before_sleep=lambda retry_state: logger.debug(
                "evacuation_accounting_retry",
                event_id=event_id,
                attempt=retry_state.attempt_number,
            ),
        )
        return await retrying(self._apply_accounting, actor, event_id, visit, accounted)

    async def _apply_accounting(
        self,
        actor: Actor,
        event_id: str,
        visit: Visit,
        accounted: bool,
    ) -> EvacuationEvent:
        event = await self.store.require(EvacuationEvent, event_id)
        require_same_site(actor, event.site_id)
        if not event.is_open:
            raise EvacuationAlreadyClosed(event_id=event_id)
        if visit.site_id != event.site_id:
            raise ValidationFailed("Visit is not at the evacuated site", visit_id=visit.id)

        ids = list(event.accounted_visit_ids)
        if accounted == (visit.id in ids):
            return event
        if accounted:
            ids.append(visit.id)
        else:
            ids.remove(visit.id)

        return await self.store.update(
            EvacuationEvent,
            event_id,
            {
                "accounted_visit_ids": ids,
                "headcount_accounted": len(ids),
                "accounting_revision": event.accounting_revision + 1,
            },
            expected={
                "accounting_revision": event.accounting_revision,
                "closed_at": None,
            },
        )

    async def headcount(self, actor: Actor, event_id: str) -> Headcount:
        """Reconcile the on-site roster against visitors accounted for."""
        require_role(actor, Role.RECEPTION)
        event = await self.store.require(EvacuationEvent, event_id)
        require_same_site(actor, event.site_id)

        roster = await self.on_site(event.site_id)
        accounted = set(event.accounted_visit_ids)
        return Headcount(
            event_id=event.id,
            headcount_at_activation=event.headcount_at_activation,
            on_site=roster,
            accounted_visit_ids=event.accounted_visit_ids,
            missing=[v for v in roster if v.id not in accounted],
        )
