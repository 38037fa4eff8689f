"""
Evacuation Gate Tests
=====================

Tests for evacuation activation, the transition veto, headcount
reconciliation and closing.

Version: 0.1.0
"""

import asyncio

import pytest

from services.visitor.errors import (
    ConcurrentUpdate,
    EvacuationActive,
    EvacuationAlreadyClosed,
    InvalidTransition,
    PermissionDenied,
)
from services.visitor.models import (
    AuditAction,
    AuditEntityType,
    EvacuationEvent,
    Notification,
    NotificationType,
    Visit,
    VisitStatus,
)


@pytest.fixture
def on_site(container, seed, schedule_visit):
    """Check in `count` visitors."""

    async def _on_site(count: int = 2):
        visits = []
        for _ in range(count):
            visit = await schedule_visit()
            visits.append(await container.visits.check_in(visit.id, seed.reception_actor))
        return visits

    return _on_site


# =============================================================================
# Activation Tests
# =============================================================================


class TestActivate:
    """Tests for activation."""

    @pytest.mark.asyncio
    async def test_activation_records_headcount(self, container, seed, on_site) -> None:
        await on_site(3)

        event = await container.gate.activate(seed.admin_actor)

        assert event.is_open
        assert event.headcount_at_activation == 3
        assert event.headcount_accounted == 0
        assert await container.gate.is_active(seed.site.id)

    @pytest.mark.asyncio
    async def test_activation_notifies_every_member(self, container, store, seed) -> None:
        await container.gate.activate(seed.admin_actor)

        messages = await store.find(
            Notification,
            where={"notification_type": NotificationType.EVACUATION_ACTIVATED},
        )
        assert {m.recipient_user_id for m in messages} == {
            seed.host.id,
            seed.backup.id,
            seed.reception.id,
            seed.admin.id,
        }

    @pytest.mark.asyncio
    async def test_second_activation_rejected(self, container, seed) -> None:
        await container.gate.activate(seed.admin_actor)

        with pytest.raises(InvalidTransition):
            await container.gate.activate(seed.admin_actor)

    @pytest.mark.asyncio
    async def test_concurrent_activations_open_one_event(self, container, store, seed) -> None:
        results = await asyncio.gather(
            container.gate.activate(seed.admin_actor),
            container.gate.activate(seed.admin_actor),
            return_exceptions=True,
        )

        assert sum(isinstance(r, EvacuationEvent) for r in results) == 1
        open_events = await store.find(
            EvacuationEvent, where={"site_id": seed.site.id, "closed_at": None}
        )
        assert len(open_events) == 1

    @pytest.mark.asyncio
    async def test_reception_cannot_activate(self, container, seed) -> None:
        with pytest.raises(PermissionDenied):
            await container.gate.activate(seed.reception_actor)

    @pytest.mark.asyncio
    async def test_evacuation_scoped_to_site(self, container, seed) -> None:
        await container.gate.activate(seed.admin_actor)

        assert not await container.gate.is_active(seed.other_site.id)


# =============================================================================
# Gate Tests
# =============================================================================


class TestGate:
    """Transitions refused while open and allowed again after close."""

    @pytest.mark.asyncio
    async def test_roster_frozen_while_open(
        self, container, store, seed, schedule_visit, on_site
    ) -> None:
        [inside] = await on_site(1)
        waiting = await schedule_visit()
        event = await container.gate.activate(seed.admin_actor)

        with pytest.raises(EvacuationActive):
            await container.visits.check_in(waiting.id, seed.reception_actor)
        with pytest.raises(EvacuationActive):
            await container.visits.sign_out(inside.id, seed.reception_actor)

        headcount = await container.gate.headcount(seed.admin_actor, event.id)
        assert [v.id for v in headcount.on_site] == [inside.id]

    @pytest.mark.asyncio
    async def test_transitions_resume_after_close(
        self, container, seed, schedule_visit, on_site
    ) -> None:
        [inside] = await on_site(1)
        waiting = await schedule_visit()
        event = await container.gate.activate(seed.admin_actor)
        await container.gate.close(seed.admin_actor, event.id)

        departed = await container.visits.sign_out(inside.id, seed.reception_actor)
        checked_in = await container.visits.check_in(waiting.id, seed.reception_actor)

        assert departed.status == VisitStatus.DEPARTED
        assert checked_in.status == VisitStatus.CHECKED_IN

    @pytest.fixture
    def activate_before_write(self, container, store, seed, monkeypatch):
        """Open an evacuation just before the visit moves to `target`."""

        def _activate_before(target):
            update = store.update
            events = []

            async def racing_update(model, record_id, patch, expected=None):
                if model is Visit and patch.get("status") == target and not events:
                    events.append(await container.gate.activate(seed.admin_actor))
                return await update(model, record_id, patch, expected)

            monkeypatch.setattr(store, "update", racing_update)
            return events

        return _activate_before

    @pytest.mark.asyncio
    async def test_check_in_racing_activation_is_rolled_back(
        self, container, store, seed, schedule_visit, activate_before_write
    ) -> None:
        visit = await schedule_visit()
        events = activate_before_write(VisitStatus.CHECKED_IN)

        with pytest.raises(EvacuationActive):
            await container.visits.check_in(visit.id, seed.reception_actor)

        stored = await store.require(Visit, visit.id)
        assert stored.status == VisitStatus.SCHEDULED
        assert stored.access_status is None
        assert stored.actual_arrival is None
        assert stored.checked_in_by is None
        headcount = await container.gate.headcount(seed.admin_actor, events[0].id)
        assert headcount.on_site == []

    @pytest.mark.asyncio
    async def test_sign_out_racing_activation_is_rolled_back(
        self, container, store, seed, on_site, activate_before_write
    ) -> None:
        [inside] = await on_site(1)
        events = activate_before_write(VisitStatus.DEPARTED)

        with pytest.raises(EvacuationActive):
            await container.visits.sign_out(inside.id, seed.reception_actor)

        stored = await store.require(Visit, inside.id)
        assert stored.status == VisitStatus.CHECKED_IN
        assert stored.access_status == inside.access_status
        assert stored.actual_departure is None
        headcount = await container.gate.headcount(seed.admin_actor, events[0].id)
        assert [v.id for v in headcount.on_site] == [inside.id]
        assert events[0].headcount_at_activation == 1

    @pytest.mark.asyncio
    async def test_cancel_allowed_during_evacuation(self, container, seed, schedule_visit) -> None:
        visit = await schedule_visit()
        await container.gate.activate(seed.admin_actor)

        cancelled = await container.visits.cancel(visit.id, seed.host_actor)

        assert cancelled.status == VisitStatus.CANCELLED


# =============================================================================
# Headcount Tests
# =============================================================================


class TestHeadcount:
    """Tests for accounting visitors at the muster point."""

    @pytest.mark.asyncio
    async def test_mark_accounted_updates_missing(self, container, seed, on_site) -> None:
        first, second = await on_site(2)
        event = await container.gate.activate(seed.admin_actor)

        updated = await container.gate.mark_accounted(seed.admin_actor, event.id, first.id)
        headcount = await container.gate.headcount(seed.admin_actor, event.id)

        assert updated.headcount_accounted == 1
        assert headcount.accounted == 1
        assert [v.id for v in headcount.missing] == [second.id]
        assert not headcount.all_accounted

    @pytest.mark.asyncio
    async def test_mark_accounted_is_idempotent(self, container, seed, on_site) -> None:
        [visit] = await on_site(1)
        event = await container.gate.activate(seed.admin_actor)

        await container.gate.mark_accounted(seed.admin_actor, event.id, visit.id)
        again = await container.gate.mark_accounted(seed.admin_actor, event.id, visit.id)

        assert again.accounted_visit_ids == [visit.id]
        assert again.headcount_accounted == 1

    @pytest.mark.asyncio
    async def test_unmark_accounted(self, container, seed, on_site) -> None:
        [visit] = await on_site(1)
        event = await container.gate.activate(seed.admin_actor)
        await container.gate.mark_accounted(seed.admin_actor, event.id, visit.id)

        updated = await container.gate.mark_accounted(
            seed.admin_actor, event.id, visit.id, accounted=False
        )

        assert updated.accounted_visit_ids == []
        assert updated.headcount_accounted == 0

    @pytest.mark.asyncio
    async def test_concurrent_marks_are_all_kept(self, container, seed, on_site) -> None:
        visits = await on_site(3)
        event = await container.gate.activate(seed.admin_actor)

        await asyncio.gather(
            *(container.gate.mark_accounted(seed.admin_actor, event.id, v.id) for v in visits)
        )

        headcount = await container.gate.headcount(seed.admin_actor, event.id)
        assert sorted(headcount.accounted_visit_ids) == sorted(v.id for v in visits)
        assert headcount.all_accounted

    @pytest.fixture
    def interleave_on_read(self, store, monkeypatch):
        """Run `changes` right after the next evacuation read, leaving the reader stale."""

        def _interleave(changes):
            require = store.require
            done = []

            async def interleaving_require(model, record_id):
                record = await require(model, record_id)
                if model is EvacuationEvent and not done:
                    done.append(record_id)
                    await changes()
                return record

            monkeypatch.setattr(store, "require", interleaving_require)

        return _interleave

    @pytest.mark.asyncio
    async def test_stale_write_rejected_when_count_unchanged(
        self, container, seed, on_site, interleave_on_read
    ) -> None:
        a, b, c, d = await on_site(4)
        event = await container.gate.activate(seed.admin_actor)
        for visit in (a, b):
            await container.gate.mark_accounted(seed.admin_actor, event.id, visit.id)

        async def other_session():
            await container.gate.mark_accounted(seed.admin_actor, event.id, c.id)
            await container.gate.mark_accounted(seed.admin_actor, event.id, a.id, accounted=False)

        interleave_on_read(other_session)

        updated = await container.gate.mark_accounted(seed.admin_actor, event.id, d.id)

        assert sorted(updated.accounted_visit_ids) == sorted([b.id, c.id, d.id])
        assert updated.headcount_accounted == 3

    @pytest.mark.asyncio
    async def test_conflict_raised_once_retries_exhausted(
        self, container, seed, on_site, interleave_on_read
    ) -> None:
        first, second = await on_site(2)
        event = await container.gate.activate(seed.admin_actor)
        container.gate.accounting_retries = 1

        async def other_session():
            await container.gate.mark_accounted(seed.admin_actor, event.id, second.id)

        interleave_on_read(other_session)

        with pytest.raises(ConcurrentUpdate):
            await container.gate.mark_accounted(seed.admin_actor, event.id, first.id)

        headcount = await container.gate.headcount(seed.admin_actor, event.id)
        assert headcount.accounted_visit_ids == [second.id]


# =============================================================================
# Close Tests
# =============================================================================


class TestClose:
    """Tests for closing an evacuation."""

    @pytest.mark.asyncio
    async def test_close_records_closer_and_audits(self, container, seed, on_site) -> None:
        [visit] = await on_site(1)
        event = await container.gate.activate(seed.admin_actor)
        await container.gate.mark_accounted(seed.admin_actor, event.id, visit.id)

        closed = await container.gate.close(seed.admin_actor, event.id, notes="All clear")

        assert closed.closed_at is not None
        assert closed.closed_by == seed.admin.id
        assert closed.notes == "All clear"
        assert not await container.gate.is_active(seed.site.id)

        entries = await container.audit.for_entity(AuditEntityType.EVACUATION_EVENT, event.id)
        assert entries[0].action == AuditAction.EVACUATION_CLOSED
        assert entries[0].details["headcount_at_activation"] == 1
        assert entries[0].details["headcount_accounted"] == 1

    @pytest.mark.asyncio
    async def test_close_twice_rejected(self, container, seed) -> None:
        event = await container.gate.activate(seed.admin_actor)
        await container.gate.close(seed.admin_actor, event.id)

        with pytest.raises(EvacuationAlreadyClosed):
            await container.gate.close(seed.admin_actor, event.id)

    @pytest.mark.asyncio
    async def test_mark_accounted_after_close_rejected(self, container, seed, on_site) -> None:
        [visit] = await on_site(1)
        event = await container.gate.activate(seed.admin_actor)
        await container.gate.close(seed.admin_actor, event.id)

        with pytest.raises(EvacuationAlreadyClosed):
            await container.gate.mark_accounted(seed.admin_actor, event.id, visit.id)

    @pytest.mark.asyncio
    async def test_new_evacuation_after_close(self, container, seed) -> None:
        first = await container.gate.activate(seed.admin_actor)
        await container.gate.close(seed.admin_actor, first.id)

        second = await container.gate.activate(seed.admin_actor)

        assert second.id != first.id
        assert (await container.gate.active_event(seed.site.id)).id == second.id
