"""
Deny List Routes
================

Site-admin management of barred visitors.

Version: 0.1.0
"""

from fastapi import APIRouter, Depends, Query, status

from services.visitor.container import WorkflowContainer, get_container
from services.visitor.models.access import DenyListCreate, DenyListEntry, DenyListUpdate
from shared.auth import Actor, require_site_admin


router = APIRouter()


@router.get("", response_model=list[DenyListEntry])
async def list_deny_list(
    include_inactive: bool = Query(default=False),
    actor: Actor = Depends(require_site_admin),
    container: WorkflowContainer = Depends(get_container),
) -> list[DenyListEntry]:
    return await container.deny_list.list_entries(actor, include_inactive=include_inactive)


@router.post("", response_model=DenyListEntry, status_code=status.HTTP_201_CREATED)
async def add_to_deny_list(
    request: DenyListCreate,
    actor: Actor = Depends(require_site_admin),
    container: WorkflowContainer = Depends(get_container),
) -> DenyListEntry:
    """Bar a visitor from the caller's site, by visitor record or email."""
    return await container.deny_list.add(actor, request)


@router.patch("/{entry_id}", response_model=DenyListEntry)
async def update_deny_list_entry(
    entry_id: str,
    request: DenyListUpdate,
    actor: Actor = Depends(require_site_admin),
    container: WorkflowContainer = Depends(get_container),
) -> DenyListEntry:
    return await container.deny_list.update(actor, entry_id, request)


@router.delete("/{entry_id}", response_model=DenyListEntry)
async def remove_from_deny_list(
    entry_id: str,
    actor: Actor = Depends(require_site_admin),
    container: WorkflowContainer = Depends(get_container),
) -> DenyListEntry:
    """Deactivate an entry; the record is kept for the audit trail."""
    return await container.deny_list.deactivate(actor, entry_id)
