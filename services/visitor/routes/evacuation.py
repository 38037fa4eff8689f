"""
Evacuation Routes
=================

Version: 0.1.0
"""

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from services.visitor.container import WorkflowContainer, get_container
from services.visitor.models.evacuation import EvacuationEvent
from services.visitor.models.visit import Visit
from shared.auth import Actor, require_reception, require_site_admin


router = APIRouter()


class EvacuationNotes(BaseModel):
    notes: str | None = Field(default=None, max_length=2000)


class AccountedRequest(BaseModel):
    """Mark a visitor present (or not) at the muster point."""

    visit_id: str
    accounted: bool = True


class HeadcountResponse(BaseModel):
    event_id: str
    headcount_at_activation: int
    on_site: list[Visit]
    accounted_visit_ids: list[str]
    missing: list[Visit]
    accounted: int
    all_accounted: bool


@router.get("/active", response_model=EvacuationEvent | None)
async def active_evacuation(
    actor: Actor = Depends(require_reception),
    container: WorkflowContainer = Depends(get_container),
) -> EvacuationEvent | None:
    """The open evacuation at the caller's site, or null."""
    return await container.gate.active_event(actor.site_id)


@router.post("", response_model=EvacuationEvent, status_code=status.HTTP_201_CREATED)
async def activate_evacuation(
    request: EvacuationNotes | None = None,
    actor: Actor = Depends(require_site_admin),
    container: WorkflowContainer = Depends(get_container),
) -> EvacuationEvent:
    """
    Declare an evacuation at the caller's site.

    Check-in and sign-out are refused until it is closed.
    """
    notes = request.notes if request else None
    return await container.gate.activate(actor, notes=notes)


@router.post("/{event_id}/close", response_model=EvacuationEvent)
async def close_evacuation(
    event_id: str,
    request: EvacuationNotes | None = None,
    actor: Actor = Depends(require_site_admin),
    container: WorkflowContainer = Depends(get_container),
) -> EvacuationEvent:
    notes = request.notes if request else None
    return await container.gate.close(actor, event_id, notes=notes)


@router.post("/{event_id}/accounted", response_model=EvacuationEvent)
async def mark_accounted(
    event_id: str,
    request: AccountedRequest,
    actor: Actor = Depends(require_site_admin),
    container: WorkflowContainer = Depends(get_container),
) -> EvacuationEvent:
    return await container.gate.mark_accounted(
        actor,
        event_id,
        request.visit_id,
        accounted=request.accounted,
    )


@router.get("/{event_id}/headcount", response_model=HeadcountResponse)
async def headcount(
    event_id: str,
    actor: Actor = Depends(require_reception),
    container: WorkflowContainer = Depends(get_container),
) -> HeadcountResponse:
    """On-site roster against visitors accounted for at the muster point."""
    result = await container.gate.headcount(actor, event_id)
    return HeadcountResponse(
        event_id=result.event_id,
        headcount_at_activation=result.headcount_at_activation,
        on_site=result.on_site,
        accounted_visit_ids=result.accounted_visit_ids,
        missing=result.missing,
        accounted=result.accounted,
        all_accounted=result.all_accounted,
    )
