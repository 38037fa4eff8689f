"""
Escalation Routes
=================

Reception and site-admin sessions register here; the escalation loop runs
while at least one is registered. `/tick` runs a pass on demand.

Version: 0.1.0
"""

from datetime import datetime

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from services.visitor.container import WorkflowContainer, get_container
from services.visitor.services.escalation import EscalationTier, TickReport
from shared.auth import Actor, require_reception


router = APIRouter()


class SessionStatus(BaseModel):
    site_id: str
    scheduler_running: bool


class OutcomeResponse(BaseModel):
    visit_id: str
    notification_id: str
    tier: EscalationTier | None = None
    recipients: list[str] = []
    skipped: str | None = None
    error: str | None = None


class TickResponse(BaseModel):
    """Result of an on-demand escalation pass."""

    site_id: str
    ran: bool
    started_at: datetime | None = None
    stale: int = 0
    outcomes: list[OutcomeResponse] = []

    @classmethod
    def of(cls, site_id: str, report: TickReport | None) -> "TickResponse":
        if report is None:
            return cls(site_id=site_id, ran=False)
        return cls(
            site_id=site_id,
            ran=True,
            started_at=report.started_at,
            stale=report.stale,
            outcomes=[
                OutcomeResponse(
                    visit_id=o.visit_id,
                    notification_id=o.notification_id,
                    tier=o.tier,
                    recipients=o.recipients,
                    skipped=o.skipped,
                    error=o.error,
                )
                for o in report.outcomes
            ],
        )


@router.post("/sessions", response_model=SessionStatus)
async def register_session(
    actor: Actor = Depends(require_reception),
    container: WorkflowContainer = Depends(get_container),
) -> SessionStatus:
    container.escalation.register_responder(actor)
    return SessionStatus(site_id=actor.site_id, scheduler_running=container.escalation.is_running)


@router.delete("/sessions", response_model=SessionStatus)
async def unregister_session(
    actor: Actor = Depends(require_reception),
    container: WorkflowContainer = Depends(get_container),
) -> SessionStatus:
    await container.escalation.unregister_responder(actor)
    return SessionStatus(site_id=actor.site_id, scheduler_running=container.escalation.is_running)


@router.post("/tick", response_model=TickResponse)
async def run_tick(
    actor: Actor = Depends(require_reception),
    container: WorkflowContainer = Depends(get_container),
) -> TickResponse:
    """Run one escalation pass for the caller's site; `ran` is false if one is in flight."""
    report = await container.escalation.tick(actor.site_id, actor.id)
    return TickResponse.of(actor.site_id, report)
