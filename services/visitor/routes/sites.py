"""
Site Board Routes
=================

Read projections for a site's reception board, plus a websocket that
pushes a fresh board after every visit change at the site.

Version: 0.1.0
"""

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect, status

from services.visitor.container import WorkflowContainer, get_container
from services.visitor.errors import PermissionDenied
from services.visitor.models.visit import Visit, VisitView
from services.visitor.services.projections import watch_projection
from shared.auth import Actor, decode_token, require_host
from shared.logging import get_logger


logger = get_logger(__name__)

router = APIRouter()


def _same_site(actor: Actor, site_id: str) -> None:
    if actor.site_id != site_id:
        raise PermissionDenied("This record belongs to another site", site_id=site_id)


@router.get("/{site_id}/visits/today", response_model=list[VisitView])
async def todays_visits(
    site_id: str,
    actor: Actor = Depends(require_host),
    container: WorkflowContainer = Depends(get_container),
) -> list[VisitView]:
    _same_site(actor, site_id)
    return await container.queries.today(site_id)


@router.get("/{site_id}/visits/checked-in", response_model=list[VisitView])
async def checked_in_visits(
    site_id: str,
    actor: Actor = Depends(require_host),
    container: WorkflowContainer = Depends(get_container),
) -> list[VisitView]:
    _same_site(actor, site_id)
    return await container.queries.checked_in(site_id)


@router.get("/{site_id}/visits/overdue", response_model=list[VisitView])
async def overdue_visits(
    site_id: str,
    actor: Actor = Depends(require_host),
    container: WorkflowContainer = Depends(get_container),
) -> list[VisitView]:
    """Checked-in visits past their planned departure."""
    _same_site(actor, site_id)
    return await container.queries.overdue(site_id)


@router.get("/{site_id}/visits/awaiting-escort", response_model=list[VisitView])
async def awaiting_escort_visits(
    site_id: str,
    actor: Actor = Depends(require_host),
    container: WorkflowContainer = Depends(get_container),
) -> list[VisitView]:
    _same_site(actor, site_id)
    return await container.queries.awaiting_escort(site_id)


@router.get("/{site_id}/visits/upcoming", response_model=list[VisitView])
async def upcoming_visits(
    site_id: str,
    limit: int = Query(default=50, ge=1, le=200),
    actor: Actor = Depends(require_host),
    container: WorkflowContainer = Depends(get_container),
) -> list[VisitView]:
    _same_site(actor, site_id)
    return await container.queries.upcoming(site_id, limit=limit)


@router.get("/{site_id}/visitors/{visitor_id}/visits", response_model=list[VisitView])
async def visitor_history(
    site_id: str,
    visitor_id: str,
    actor: Actor = Depends(require_host),
    container: WorkflowContainer = Depends(get_container),
) -> list[VisitView]:
    _same_site(actor, site_id)
    return await container.queries.for_visitor(visitor_id, site_id)


@router.websocket("/{site_id}/visits/live")
async def live_board(
    websocket: WebSocket,
    site_id: str,
    token: str = Query(...),
) -> None:
    """
    Stream the site board.

    Authenticates with `?token=`; the first message is the current board.
    """
    token_data = decode_token(token)
    if token_data is None or token_data.site_id != site_id:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    container: WorkflowContainer = websocket.app.state.container
    await websocket.accept()
    logger.info("live_board_connected", site_id=site_id, member_id=token_data.sub)

    stream = watch_projection(
        container.feed,
        Visit.__collection__,
        {"site_id": site_id},
        lambda: container.queries.board(site_id),
    )
    try:
        async for board in stream:
            await websocket.send_text(board.model_dump_json())
    except WebSocketDisconnect:
        logger.info("live_board_disconnected", site_id=site_id, member_id=token_data.sub)
    finally:
        await stream.aclose()
