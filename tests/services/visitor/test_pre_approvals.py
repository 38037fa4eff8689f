"""
Pre-Approval Service Tests
==========================

Version: 0.1.0
"""

import asyncio
from datetime import timedelta

import pytest

from services.visitor.errors import InvalidTransition, PermissionDenied, ValidationFailed
from services.visitor.models import (
    AccessStatus,
    Notification,
    NotificationType,
    PreApproval,
    PreApprovalCreate,
    PreApprovalStatus,
)


@pytest.fixture
def requested(container, seed):
    async def _requested() -> PreApproval:
        return await container.pre_approvals.request(
            seed.host_actor, PreApprovalCreate(visitor_id=seed.visitor.id, reason="Weekly audits")
        )

    return _requested


class TestRequest:
    """Tests for raising a request."""

    @pytest.mark.asyncio
    async def test_request_is_pending_and_notifies_admins(
        self, container, store, seed, requested
    ) -> None:
        approval = await requested()

        assert approval.status == PreApprovalStatus.PENDING
        assert approval.requested_by == seed.host.id

        messages = await store.find(
            Notification, where={"notification_type": NotificationType.PRE_APPROVAL_REQUEST}
        )
        assert [m.recipient_user_id for m in messages] == [seed.admin.id]

    @pytest.mark.asyncio
    async def test_hosts_see_only_their_requests(self, container, seed, requested) -> None:
        await requested()
        await container.pre_approvals.request(
            seed.backup_actor, PreApprovalCreate(visitor_id=seed.staff_visitor.id)
        )

        own = await container.pre_approvals.list_requests(seed.host_actor)
        site = await container.pre_approvals.list_requests(seed.admin_actor)

        assert [a.requested_by for a in own] == [seed.host.id]
        assert len(site) == 2

    @pytest.mark.asyncio
    async def test_list_filters_by_status(self, container, seed, requested) -> None:
        approval = await requested()
        await container.pre_approvals.approve(seed.admin_actor, approval.id)

        pending = await container.pre_approvals.list_requests(
            seed.admin_actor, status=PreApprovalStatus.PENDING
        )

        assert pending == []


class TestDecide:
    """Tests for approving, rejecting and revoking."""

    @pytest.mark.asyncio
    async def test_approve_sets_default_expiry(self, container, seed, requested, clock) -> None:
        approval = await requested()

        approved = await container.pre_approvals.approve(seed.admin_actor, approval.id)

        assert approved.status == PreApprovalStatus.APPROVED
        assert approved.approved_by == seed.admin.id
        assert approved.expires_at == clock() + timedelta(days=90)

    @pytest.mark.asyncio
    async def test_approve_uses_site_default(self, container, store, seed, requested, clock) -> None:
        await store.update(type(seed.site), seed.site.id, {"pre_approval_default_days": 7})
        approval = await requested()

        approved = await container.pre_approvals.approve(seed.admin_actor, approval.id)

        assert approved.expires_at == clock() + timedelta(days=7)

    @pytest.mark.asyncio
    async def test_host_cannot_approve(self, container, seed, requested) -> None:
        approval = await requested()

        with pytest.raises(PermissionDenied):
            await container.pre_approvals.approve(seed.host_actor, approval.id)

    @pytest.mark.asyncio
    async def test_reject_requires_reason(self, container, seed, requested) -> None:
        approval = await requested()

        with pytest.raises(ValidationFailed):
            await container.pre_approvals.reject(seed.admin_actor, approval.id, "  ")

    @pytest.mark.asyncio
    async def test_reject_notifies_requester(self, container, store, seed, requested) -> None:
        approval = await requested()

        rejected = await container.pre_approvals.reject(
            seed.admin_actor, approval.id, "Not a regular visitor"
        )

        assert rejected.status == PreApprovalStatus.REJECTED
        assert rejected.reason == "Not a regular visitor"
        decisions = await store.find(
            Notification, where={"notification_type": NotificationType.PRE_APPROVAL_DECISION}
        )
        assert [d.recipient_user_id for d in decisions] == [seed.host.id]

    @pytest.mark.asyncio
    async def test_cannot_decide_twice(self, container, seed, requested) -> None:
        approval = await requested()
        await container.pre_approvals.approve(seed.admin_actor, approval.id)

        with pytest.raises(InvalidTransition):
            await container.pre_approvals.reject(seed.admin_actor, approval.id, "Changed mind")

    @pytest.mark.asyncio
    async def test_concurrent_decisions_single_winner(self, container, seed, requested) -> None:
        approval = await requested()

        results = await asyncio.gather(
            container.pre_approvals.approve(seed.admin_actor, approval.id),
            container.pre_approvals.reject(seed.admin_actor, approval.id, "No"),
            return_exceptions=True,
        )

        assert sum(isinstance(r, PreApproval) for r in results) == 1
        assert sum(isinstance(r, InvalidTransition) for r in results) == 1

    @pytest.mark.asyncio
    async def test_revoke_only_approved(self, container, seed, requested) -> None:
        approval = await requested()

        with pytest.raises(InvalidTransition):
            await container.pre_approvals.revoke(seed.admin_actor, approval.id)

        await container.pre_approvals.approve(seed.admin_actor, approval.id)
        revoked = await container.pre_approvals.revoke(seed.admin_actor, approval.id)

        assert revoked.status == PreApprovalStatus.REVOKED
        assert revoked.revoked_by == seed.admin.id


class TestCheckInEffect:
    """Approval and revocation as seen at check-in."""

    @pytest.mark.asyncio
    async def test_approved_then_revoked(self, container, seed, requested, schedule_visit) -> None:
        approval = await requested()
        await container.pre_approvals.approve(seed.admin_actor, approval.id)
        first = await schedule_visit()
        checked_in = await container.visits.check_in(first.id, seed.reception_actor)
        assert checked_in.access_status == AccessStatus.UNESCORTED

        await container.pre_approvals.revoke(seed.admin_actor, approval.id)
        second = await schedule_visit()
        checked_in = await container.visits.check_in(second.id, seed.reception_actor)

        assert checked_in.access_status == AccessStatus.AWAITING_ESCORT
