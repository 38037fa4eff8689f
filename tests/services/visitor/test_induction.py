"""
Induction and Document Tests
============================

Version: 0.1.0
"""

from datetime import timedelta

import pytest

from services.visitor.errors import InvalidTransition, PrerequisitesOutstanding
from services.visitor.models import InductionRecord, VisitDocument, VisitStatus
from services.visitor.services.induction import DOCUMENTS, INDUCTION

SAFETY_BRIEF = {"document_name": "Site rules", "document_content": "Hard hats at all times."}


class TestInductionValidity:
    """Which induction records count."""

    @pytest.mark.asyncio
    async def test_missing_induction_blocks_check_in(
        self, container, seed, schedule_visit
    ) -> None:
        visit = await schedule_visit(inducted=False)

        with pytest.raises(PrerequisitesOutstanding) as exc_info:
            await container.visits.check_in(visit.id, seed.reception_actor)

        assert exc_info.value.outstanding == [INDUCTION]

    @pytest.mark.asyncio
    async def test_old_content_version_not_valid(
        self, container, store, seed, schedule_visit, clock
    ) -> None:
        visit = await schedule_visit(inducted=False)
        await store.insert(
            InductionRecord(
                visitor_id=seed.visitor.id,
                site_id=seed.site.id,
                content_version=seed.site.hs_content_version - 1,
                completed_at=clock(),
            )
        )

        assert await container.induction.outstanding(visit, seed.site) == [INDUCTION]

    @pytest.mark.asyncio
    async def test_expired_induction_not_valid(
        self, container, store, seed, schedule_visit, clock
    ) -> None:
        visit = await schedule_visit(inducted=False)
        await store.insert(
            InductionRecord(
                visitor_id=seed.visitor.id,
                site_id=seed.site.id,
                content_version=seed.site.hs_content_version,
                completed_at=clock() - timedelta(days=366),
            )
        )

        assert await container.induction.outstanding(visit, seed.site) == [INDUCTION]

    @pytest.mark.asyncio
    async def test_complete_induction_unblocks(self, container, seed, schedule_visit) -> None:
        visit = await schedule_visit(inducted=False)

        inducted = await container.induction.complete_induction(visit.id, seed.reception_actor)
        checked_in = await container.visits.check_in(visit.id, seed.reception_actor)

        assert inducted.induction_completed
        assert inducted.induction_version == seed.site.hs_content_version
        assert checked_in.status == VisitStatus.CHECKED_IN

    @pytest.mark.asyncio
    async def test_induction_only_before_check_in(self, container, seed, schedule_visit) -> None:
        visit = await schedule_visit()
        await container.visits.check_in(visit.id, seed.reception_actor)

        with pytest.raises(InvalidTransition):
            await container.induction.complete_induction(visit.id, seed.reception_actor)


class TestDocuments:
    """Document acceptance before check-in."""

    @pytest.mark.asyncio
    async def test_unaccepted_documents_block(self, container, seed, schedule_visit) -> None:
        visit = await schedule_visit(documents=[SAFETY_BRIEF])

        with pytest.raises(PrerequisitesOutstanding) as exc_info:
            await container.visits.check_in(visit.id, seed.reception_actor)

        assert exc_info.value.outstanding == [DOCUMENTS]

    @pytest.mark.asyncio
    async def test_both_prerequisites_reported(self, container, seed, schedule_visit) -> None:
        visit = await schedule_visit(inducted=False, documents=[SAFETY_BRIEF])

        with pytest.raises(PrerequisitesOutstanding) as exc_info:
            await container.visits.check_in(visit.id, seed.reception_actor)

        assert exc_info.value.outstanding == [INDUCTION, DOCUMENTS]

    @pytest.mark.asyncio
    async def test_accept_documents_unblocks(
        self, container, store, seed, schedule_visit
    ) -> None:
        visit = await schedule_visit(documents=[SAFETY_BRIEF, SAFETY_BRIEF])

        accepted = await container.induction.accept_documents(visit.id, seed.reception_actor)
        checked_in = await container.visits.check_in(visit.id, seed.reception_actor)

        assert accepted.documents_accepted
        documents = await store.find(VisitDocument, where={"visit_id": visit.id})
        assert all(d.accepted for d in documents)
        assert checked_in.status == VisitStatus.CHECKED_IN

    @pytest.mark.asyncio
    async def test_visit_without_documents_needs_none(
        self, container, seed, schedule_visit
    ) -> None:
        visit = await schedule_visit()

        assert await container.induction.outstanding(visit, seed.site) == []
