"""
Visit State Machine
===================

Owns every visit status transition. Each transition is a conditional
write on the visit's current status, so of two racing commands exactly
one commits and the other fails with a descriptive error.

Workflow:
    SCHEDULED --check_in--> CHECKED_IN --sign_out--> DEPARTED
    SCHEDULED --cancel--> CANCELLED

Check-in order of checks:
    status, evacuation gate, prerequisites, access decision, write,
    evacuation gate again (the write is rolled back if one opened),
    host notifications, audit.

Version: 0.1.0
"""

from dataclasses import dataclass, field
from enum import Enum

from services.visitor.errors import (
    AlreadyCancelled,
    AlreadyCheckedIn,
    ConcurrentUpdate,
    EvacuationActive,
    InvalidTransition,
    NotCheckedIn,
    PrerequisitesOutstanding,
    ValidationFailed,
)
from services.visitor.models.audit import AuditAction, AuditEntityType
from services.visitor.models.base import utcnow
from services.visitor.models.notification import NotificationType
from services.visitor.models.site import Member, Site, Visitor
from services.visitor.models.visit import (
    HostContact,
    Visit,
    VisitCreate,
    VisitDocument,
    VisitStatus,
)
from services.visitor.services.access import AccessDecisionEngine
from services.visitor.services.audit import AuditService
from services.visitor.services.evacuation import EvacuationGate
from services.visitor.services.guards import Clock, require_role, require_same_site
from services.visitor.services.induction import InductionService
from services.visitor.services.notifications import NotificationService
from services.visitor.store.base import Store
from shared.auth.roles import Actor, Role
from shared.logging import get_logger


logger = get_logger(__name__)


class VisitAction(str, Enum):
    """Commands that move a visit between states."""

    CHECK_IN = "check_in"
    SIGN_OUT = "sign_out"
    CANCEL = "cancel"


@dataclass
class VisitLifecycle:
    """Legal visit transitions."""

    transitions: dict[VisitStatus, dict[VisitAction, VisitStatus]] = field(
        default_factory=lambda: {
            VisitStatus.SCHEDULED: {
                VisitAction.CHECK_IN: VisitStatus.CHECKED_IN,
                VisitAction.CANCEL: VisitStatus.CANCELLED,
            },
            VisitStatus.CHECKED_IN: {
                VisitAction.SIGN_OUT: VisitStatus.DEPARTED,
            },
        }
    )

    def can_transition(self, current: VisitStatus, action: VisitAction) -> bool:
        """Check if transition is valid."""
        return action in self.transitions.get(current, {})

    def get_next_status(self, current: VisitStatus, action: VisitAction) -> VisitStatus | None:
        """Get the next status after an action."""
        if not self.can_transition(current, action):
            return None
        return self.transitions[current][action]

    def source_status(self, action: VisitAction) -> VisitStatus:
        """The only status an action may start from."""
        for status, actions in self.transitions.items():
            if action in actions:
                return status
        raise KeyError(action)


def rejection(current: VisitStatus, action: VisitAction) -> InvalidTransition:
    """Describe why `action` is illegal from `current`."""
    if current == VisitStatus.CANCELLED:
        return AlreadyCancelled(status=current.value)
    if action == VisitAction.CHECK_IN:
        return AlreadyCheckedIn(status=current.value)
    if action == VisitAction.SIGN_OUT:
        return NotCheckedIn(status=current.value)
    return InvalidTransition("Only scheduled visits can be cancelled", status=current.value)


class VisitStateMachine:
    """
    Service for visit lifecycle commands.

    Handles:
    - Scheduling visits with host contacts and documents
    - Check-in (gate, prerequisites, access decision, host fan-out)
    - Sign-out and cancellation
    """

    def __init__(
        self,
        store: Store,
        access: AccessDecisionEngine,
        gate: EvacuationGate,
        induction: InductionService,
        notifications: NotificationService,
        audit: AuditService,
        clock: Clock = utcnow,
    ) -> None:
        self.store = store
        self.access = access
        self.gate = gate
        self.induction = induction
        self.notifications = notifications
        self.audit = audit
        self.clock = clock
        self.lifecycle = VisitLifecycle()

    async def get(self, visit_id: str, actor: Actor) -> Visit:
        visit = await self.store.require(Visit, visit_id)
        require_same_site(actor, visit.site_id)
        return visit

    async def _load(self, visit_id: str, actor: Actor, action: VisitAction) -> Visit:
        visit = await self.get(visit_id, actor)
        if not self.lifecycle.can_transition(visit.status, action):
            raise rejection(visit.status, action)
        return visit

    async def _transition(
        self,
        visit: Visit,
        action: VisitAction,
        patch: dict[str, object],
    ) -> Visit:
        """Conditionally write the next status; the loser of a race gets a rejection."""
        source = self.lifecycle.source_status(action)
        target = self.lifecycle.get_next_status(source, action)
        now = self.clock()
        try:
            return await self.store.update(
                Visit,
                visit.id,
                {**patch, "status": target, "updated_at": now},
                expected={"status": source},
            )
        except ConcurrentUpdate as e:
            current = await self.store.require(Visit, visit.id)
            logger.info(
                "visit_transition_conflict",
                visit_id=visit.id,
                action=action.value,
                status=current.status.value,
            )
            raise rejection(current.status, action) from e

    async def _undo_if_evacuating(
        self,
        before: Visit,
        after: Visit,
        restore: dict[str, object],
    ) -> None:
        """Roll back a transition that landed after an evacuation was activated."""
        try:
            await self.gate.ensure_inactive(before.site_id)
        except EvacuationActive:
            await self.store.update(
                Visit,
                before.id,
                {**restore, "status": before.status, "updated_at": self.clock()},
                expected={"status": after.status},
            )
            logger.warning(
                "visit_transition_rolled_back",
                visit_id=before.id,
                site_id=before.site_id,
                status=before.status.value,
            )
            raise

    # =========================================================================
    # Scheduling
    # =========================================================================

    async def _site_member(self, user_id: str, site_id: str) -> Member:
        member = await self.store.require(Member, user_id)
        if member.site_id != site_id or not member.is_active:
            raise ValidationFailed("Hosts must be active members of this site", user_id=user_id)
        return member

    async def schedule(self, actor: Actor, request: VisitCreate) -> Visit:
        """Schedule a visit at the actor's site."""
        require_role(actor, Role.HOST)
        site = await self.store.require(Site, actor.site_id)
        visitor = await self.store.require(Visitor, request.visitor_id)

        host = await self._site_member(request.host_user_id or actor.id, site.id)
        backup = None
        if request.backup_user_id and request.backup_user_id != host.id:
            backup = await self._site_member(request.backup_user_id, site.id)

        now = self.clock()
        visit = await self.store.insert(
            Visit(
                visitor_id=visitor.id,
                site_id=site.id,
                host_user_id=host.id,
                purpose=request.purpose,
                planned_arrival=request.planned_arrival,
                planned_departure=request.planned_departure,
                is_walk_in=request.is_walk_in,
                created_at=now,
                updated_at=now,
            )
        )

        contacts = [HostContact(visit_id=visit.id, user_id=host.id, created_at=now)]
        if backup is not None:
            contacts.append(
                HostContact(visit_id=visit.id, user_id=backup.id, is_backup=True, created_at=now)
            )
        await self.store.insert_many(contacts)
        await self.store.insert_many(
            [
                VisitDocument(
                    visit_id=visit.id,
                    document_name=d.document_name,
                    document_content=d.document_content,
                    created_at=now,
                )
                for d in request.documents
            ]
        )

        await self.notifications.send_to_visitor(
            visitor.id,
            NotificationType.VISIT_SCHEDULED,
            title=f"Your visit to {site.name}",
            body=f"You are expected at {site.name} on {visit.planned_arrival:%d %b %Y %H:%M}.",
            visit_id=visit.id,
        )
        if visit.is_walk_in:
            await self.notifications.send_to_users(
                [host.id],
                NotificationType.WALK_IN_HOST_CONFIRM,
                title="Walk-in visitor",
                body=f"{visitor.name} has arrived without a booking and named you as host.",
                visit_id=visit.id,
            )

        logger.info(
            "visit_scheduled",
            visit_id=visit.id,
            site_id=site.id,
            visitor_id=visitor.id,
            is_walk_in=visit.is_walk_in,
        )
        await self.audit.log(
            AuditAction.VISIT_SCHEDULED,
            AuditEntityType.VISIT,
            visit.id,
            actor.id,
            {"visitor_id": visitor.id, "host_user_id": host.id, "is_walk_in": visit.is_walk_in},
        )
        return visit

    # =========================================================================
    # Transitions
    # =========================================================================

    async def check_in(self, visit_id: str, actor: Actor) -> Visit:
        """
        Check a visitor in.

        Raises:
            AlreadyCheckedIn / AlreadyCancelled: the visit is not scheduled
            EvacuationActive: an evacuation is open at the site
            PrerequisitesOutstanding: induction or documents missing
            DeniedVisitor: the visitor is on the deny list
        """
        require_role(actor, Role.RECEPTION)
        visit = await self._load(visit_id, actor, VisitAction.CHECK_IN)
        await self.gate.ensure_inactive(visit.site_id)

        site = await self.store.require(Site, visit.site_id)
        visitor = await self.store.require(Visitor, visit.visitor_id)

        outstanding = await self.induction.outstanding(visit, site)
        if outstanding:
            raise PrerequisitesOutstanding(outstanding)

        access_status = await self.access.decide(visit, visitor, site, actor)

        checked_in = await self._transition(
            visit,
            VisitAction.CHECK_IN,
            {
                "actual_arrival": self.clock(),
                "access_status": access_status,
                "checked_in_by": actor.id,
            },
        )
        # An evacuation activated mid-command still vetoes the write
        await self._undo_if_evacuating(
            visit,
            checked_in,
            {"actual_arrival": None, "access_status": None, "checked_in_by": None},
        )

        logger.info(
            "visit_checked_in",
            visit_id=visit.id,
            site_id=visit.site_id,
            access_status=access_status.value,
        )

        try:
            await self.access.notify_hosts(checked_in, visitor, access_status)
        except Exception as e:
            logger.error("host_notification_failed", visit_id=visit.id, error=str(e))

        await self.audit.log(
            AuditAction.VISIT_CHECKED_IN,
            AuditEntityType.VISIT,
            visit.id,
            actor.id,
            {"access_status": access_status.value},
        )
        return checked_in

    async def sign_out(self, visit_id: str, actor: Actor) -> Visit:
        """
        Sign a visitor out.

        Raises:
            NotCheckedIn / AlreadyCancelled: the visit is not checked in
            EvacuationActive: an evacuation is open at the site
        """
        require_role(actor, Role.RECEPTION)
        visit = await self._load(visit_id, actor, VisitAction.SIGN_OUT)
        await self.gate.ensure_inactive(visit.site_id)

        departed = await self._transition(
            visit,
            VisitAction.SIGN_OUT,
            {"actual_departure": self.clock(), "access_status": None},
        )
        await self._undo_if_evacuating(
            visit,
            departed,
            {"actual_departure": None, "access_status": visit.access_status},
        )

        logger.info("visit_signed_out", visit_id=visit.id, site_id=visit.site_id)
        await self.audit.log(
            AuditAction.VISIT_SIGNED_OUT,
            AuditEntityType.VISIT,
            visit.id,
            actor.id,
        )
        return departed

    async def cancel(self, visit_id: str, actor: Actor) -> Visit:
        """Cancel a scheduled visit and tell its hosts."""
        require_role(actor, Role.HOST)
        visit = await self._load(visit_id, actor, VisitAction.CANCEL)
        cancelled = await self._transition(visit, VisitAction.CANCEL, {})

        contacts = await self.store.find(HostContact, where={"visit_id": visit.id})
        try:
            await self.notifications.send_to_users(
                [c.user_id for c in contacts],
                NotificationType.VISIT_CANCELLED,
                title="Visit cancelled",
                body=f"The visit planned for {visit.planned_arrival:%d %b %Y %H:%M} was cancelled.",
                visit_id=visit.id,
            )
        except Exception as e:
            logger.error("cancel_notification_failed", visit_id=visit.id, error=str(e))

        logger.info("visit_cancelled", visit_id=visit.id, site_id=visit.site_id)
        await self.audit.log(
            AuditAction.VISIT_CANCELLED,
            AuditEntityType.VISIT,
            visit.id,
            actor.id,
        )
        return cancelled
