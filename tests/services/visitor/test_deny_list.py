"""
Deny List Service Tests
=======================

Version: 0.1.0
"""

from datetime import timedelta

import pytest
from pydantic import ValidationError

from services.visitor.errors import NotFound, PermissionDenied, ValidationFailed
from services.visitor.models import (
    AuditAction,
    AuditEntityType,
    DenyListCreate,
    DenyListUpdate,
)


def _create(seed, **overrides) -> DenyListCreate:
    fields = {
        "visitor_id": seed.visitor.id,
        "visitor_name": seed.visitor.name,
        "reason": "Repeated safety violations",
        "is_permanent": True,
    }
    fields.update(overrides)
    return DenyListCreate(**fields)


class TestDenyListCreate:
    """Request validation."""

    def test_reason_required(self, seed) -> None:
        with pytest.raises(ValidationError):
            _create(seed, reason="   ")

    def test_target_required(self, seed) -> None:
        with pytest.raises(ValidationError):
            _create(seed, visitor_id=None, visitor_email=None)

    def test_temporary_needs_expiry(self, seed) -> None:
        with pytest.raises(ValidationError):
            _create(seed, is_permanent=False)


class TestDenyListService:
    """Tests for deny-list maintenance."""

    @pytest.mark.asyncio
    async def test_add_entry(self, container, seed) -> None:
        entry = await container.deny_list.add(seed.admin_actor, _create(seed))

        assert entry.site_id == seed.site.id
        assert entry.added_by == seed.admin.id
        assert entry.is_active

        entries = await container.audit.for_entity(AuditEntityType.DENY_LIST, entry.id)
        assert [e.action for e in entries] == [AuditAction.DENY_LIST_ADDED]

    @pytest.mark.asyncio
    async def test_add_requires_site_admin(self, container, seed) -> None:
        with pytest.raises(PermissionDenied):
            await container.deny_list.add(seed.reception_actor, _create(seed))

    @pytest.mark.asyncio
    async def test_add_rejects_past_expiry(self, container, seed, clock) -> None:
        request = _create(seed, is_permanent=False, expires_at=clock() - timedelta(hours=1))

        with pytest.raises(ValidationFailed):
            await container.deny_list.add(seed.admin_actor, request)

    @pytest.mark.asyncio
    async def test_add_unknown_visitor(self, container, seed) -> None:
        with pytest.raises(NotFound):
            await container.deny_list.add(seed.admin_actor, _create(seed, visitor_id="missing"))

    @pytest.mark.asyncio
    async def test_add_by_email_only(self, container, seed) -> None:
        entry = await container.deny_list.add(
            seed.admin_actor,
            _create(seed, visitor_id=None, visitor_email="someone@example.com"),
        )

        assert entry.visitor_id is None
        assert entry.visitor_email == "someone@example.com"

    @pytest.mark.asyncio
    async def test_update_to_permanent_clears_expiry(self, container, seed, clock) -> None:
        entry = await container.deny_list.add(
            seed.admin_actor,
            _create(seed, is_permanent=False, expires_at=clock() + timedelta(days=7)),
        )

        updated = await container.deny_list.update(
            seed.admin_actor, entry.id, DenyListUpdate(is_permanent=True)
        )

        assert updated.is_permanent
        assert updated.expires_at is None

    @pytest.mark.asyncio
    async def test_update_to_temporary_needs_expiry(self, container, seed) -> None:
        entry = await container.deny_list.add(seed.admin_actor, _create(seed))

        with pytest.raises(ValidationFailed):
            await container.deny_list.update(
                seed.admin_actor, entry.id, DenyListUpdate(is_permanent=False)
            )

    @pytest.mark.asyncio
    async def test_update_blank_reason_rejected(self, container, seed) -> None:
        entry = await container.deny_list.add(seed.admin_actor, _create(seed))

        with pytest.raises(ValidationFailed):
            await container.deny_list.update(seed.admin_actor, entry.id, DenyListUpdate(reason=" "))

    @pytest.mark.asyncio
    async def test_deactivate_is_idempotent(self, container, seed) -> None:
        entry = await container.deny_list.add(seed.admin_actor, _create(seed))

        first = await container.deny_list.deactivate(seed.admin_actor, entry.id)
        second = await container.deny_list.deactivate(seed.admin_actor, entry.id)

        assert not first.is_active
        assert not second.is_active
        entries = await container.audit.for_entity(AuditEntityType.DENY_LIST, entry.id)
        assert [e.action for e in entries].count(AuditAction.DENY_LIST_REMOVED) == 1

    @pytest.mark.asyncio
    async def test_list_hides_inactive_by_default(self, container, seed) -> None:
        kept = await container.deny_list.add(seed.admin_actor, _create(seed))
        lifted = await container.deny_list.add(
            seed.admin_actor, _create(seed, visitor_id=None, visitor_email="x@example.com")
        )
        await container.deny_list.deactivate(seed.admin_actor, lifted.id)

        active = await container.deny_list.list_entries(seed.admin_actor)
        everything = await container.deny_list.list_entries(seed.admin_actor, include_inactive=True)

        assert [e.id for e in active] == [kept.id]
        assert {e.id for e in everything} == {kept.id, lifted.id}

    @pytest.mark.asyncio
    async def test_lifted_entry_no_longer_blocks(self, container, seed, schedule_visit) -> None:
        entry = await container.deny_list.add(seed.admin_actor, _create(seed))
        await container.deny_list.deactivate(seed.admin_actor, entry.id)
        visit = await schedule_visit()

        checked_in = await container.visits.check_in(visit.id, seed.reception_actor)

        assert checked_in.checked_in_by == seed.reception.id
