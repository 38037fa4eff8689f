"""
Pre-Approval Routes
===================

Version: 0.1.0
"""

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from services.visitor.container import WorkflowContainer, get_container
from services.visitor.models.access import PreApproval, PreApprovalCreate, PreApprovalStatus
from shared.auth import Actor, require_host, require_site_admin


router = APIRouter()


class RejectRequest(BaseModel):
    """Reason for rejecting a pre-approval."""

    reason: str = Field(..., min_length=1, max_length=1000)


@router.get("", response_model=list[PreApproval])
async def list_pre_approvals(
    status_filter: PreApprovalStatus | None = Query(default=None, alias="status"),
    actor: Actor = Depends(require_host),
    container: WorkflowContainer = Depends(get_container),
) -> list[PreApproval]:
    """Site admins see every request at the site; hosts see their own."""
    return await container.pre_approvals.list_requests(actor, status=status_filter)


@router.post("", response_model=PreApproval, status_code=status.HTTP_201_CREATED)
async def request_pre_approval(
    request: PreApprovalCreate,
    actor: Actor = Depends(require_host),
    container: WorkflowContainer = Depends(get_container),
) -> PreApproval:
    return await container.pre_approvals.request(actor, request)


@router.post("/{approval_id}/approve", response_model=PreApproval)
async def approve_pre_approval(
    approval_id: str,
    actor: Actor = Depends(require_site_admin),
    container: WorkflowContainer = Depends(get_container),
) -> PreApproval:
    return await container.pre_approvals.approve(actor, approval_id)


@router.post("/{approval_id}/reject", response_model=PreApproval)
async def reject_pre_approval(
    approval_id: str,
    request: RejectRequest,
    actor: Actor = Depends(require_site_admin),
    container: WorkflowContainer = Depends(get_container),
) -> PreApproval:
    return await container.pre_approvals.reject(actor, approval_id, request.reason)


@router.post("/{approval_id}/revoke", response_model=PreApproval)
async def revoke_pre_approval(
    approval_id: str,
    actor: Actor = Depends(require_site_admin),
    container: WorkflowContainer = Depends(get_container),
) -> PreApproval:
    return await container.pre_approvals.revoke(actor, approval_id)
