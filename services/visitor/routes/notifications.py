"""
Notification Routes
===================

The caller's inbox. Only a notification's recipient may read or
acknowledge it.

Version: 0.1.0
"""

from fastapi import APIRouter, Depends, Query

from services.visitor.container import WorkflowContainer, get_container
from services.visitor.models.notification import Notification
from shared.auth import Actor, get_current_actor


router = APIRouter()


@router.get("", response_model=list[Notification])
async def list_notifications(
    limit: int = Query(default=100, ge=1, le=500),
    actor: Actor = Depends(get_current_actor),
    container: WorkflowContainer = Depends(get_container),
) -> list[Notification]:
    """Notifications addressed to the caller, newest first."""
    return await container.notifications.inbox(actor, limit=limit)


@router.post("/{notification_id}/read", response_model=Notification)
async def mark_read(
    notification_id: str,
    actor: Actor = Depends(get_current_actor),
    container: WorkflowContainer = Depends(get_container),
) -> Notification:
    return await container.notifications.mark_read(notification_id, actor)


@router.post("/{notification_id}/acknowledge", response_model=Notification)
async def acknowledge(
    notification_id: str,
    actor: Actor = Depends(get_current_actor),
    container: WorkflowContainer = Depends(get_container),
) -> Notification:
    """
    Acknowledge a notification.

    Acknowledging an escort request or escalation stops further
    escalation for its visit. Repeating the call is harmless.
    """
    return await container.notifications.acknowledge(notification_id, actor)
