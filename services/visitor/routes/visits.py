"""
Visit Routes
============

Visit scheduling, check-in, sign-out, cancellation and check-in
prerequisites.

Version: 0.1.0
"""

from fastapi import APIRouter, Depends, status

from services.visitor.container import WorkflowContainer, get_container
from services.visitor.models.audit import AuditEntityType, AuditEntry
from services.visitor.models.visit import Visit, VisitCreate, VisitDocument, VisitView
from shared.auth import Actor, get_current_actor, require_host, require_reception
from shared.logging import get_logger


logger = get_logger(__name__)

router = APIRouter()


@router.post("", response_model=Visit, status_code=status.HTTP_201_CREATED)
async def schedule_visit(
    request: VisitCreate,
    actor: Actor = Depends(require_host),
    container: WorkflowContainer = Depends(get_container),
) -> Visit:
    """
    Schedule a visit at the caller's site.

    The scheduling member is the primary host unless another is named.
    """
    return await container.visits.schedule(actor, request)


@router.get("/{visit_id}", response_model=VisitView)
async def get_visit(
    visit_id: str,
    actor: Actor = Depends(get_current_actor),
    container: WorkflowContainer = Depends(get_container),
) -> VisitView:
    visit = await container.visits.get(visit_id, actor)
    return VisitView.of(visit, container.queries.clock())


@router.get("/{visit_id}/documents", response_model=list[VisitDocument])
async def list_visit_documents(
    visit_id: str,
    actor: Actor = Depends(get_current_actor),
    container: WorkflowContainer = Depends(get_container),
) -> list[VisitDocument]:
    await container.visits.get(visit_id, actor)
    return await container.induction.documents(visit_id)


@router.get("/{visit_id}/audit", response_model=list[AuditEntry])
async def get_visit_audit(
    visit_id: str,
    actor: Actor = Depends(require_reception),
    container: WorkflowContainer = Depends(get_container),
) -> list[AuditEntry]:
    """Audit history of a visit, newest first."""
    await container.visits.get(visit_id, actor)
    return await container.audit.for_entity(AuditEntityType.VISIT, visit_id)


@router.post("/{visit_id}/check-in", response_model=Visit)
async def check_in(
    visit_id: str,
    actor: Actor = Depends(require_reception),
    container: WorkflowContainer = Depends(get_container),
) -> Visit:
    """
    Check a visitor in.

    Fails with 409 if already processed, 423 during an evacuation,
    422 while induction or documents are outstanding and 403 for a
    deny-list match.
    """
    return await container.visits.check_in(visit_id, actor)


@router.post("/{visit_id}/sign-out", response_model=Visit)
async def sign_out(
    visit_id: str,
    actor: Actor = Depends(require_reception),
    container: WorkflowContainer = Depends(get_container),
) -> Visit:
    return await container.visits.sign_out(visit_id, actor)


@router.post("/{visit_id}/cancel", response_model=Visit)
async def cancel_visit(
    visit_id: str,
    actor: Actor = Depends(require_host),
    container: WorkflowContainer = Depends(get_container),
) -> Visit:
    return await container.visits.cancel(visit_id, actor)


@router.post("/{visit_id}/induction", response_model=Visit)
async def complete_induction(
    visit_id: str,
    actor: Actor = Depends(require_reception),
    container: WorkflowContainer = Depends(get_container),
) -> Visit:
    """Record the visitor's induction against the site's current content."""
    return await container.induction.complete_induction(visit_id, actor)


@router.post("/{visit_id}/documents/accept", response_model=Visit)
async def accept_documents(
    visit_id: str,
    actor: Actor = Depends(require_reception),
    container: WorkflowContainer = Depends(get_container),
) -> Visit:
    return await container.induction.accept_documents(visit_id, actor)
