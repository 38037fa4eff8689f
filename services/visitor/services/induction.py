"""
Induction and Document Service
==============================

Tracks health & safety induction validity and visit document acceptance,
the two prerequisites every check-in requires.

Version: 0.1.0
"""

from datetime import timedelta

from services.visitor.errors import ConcurrentUpdate, InvalidTransition
from services.visitor.models.access import InductionRecord
from services.visitor.models.audit import AuditAction, AuditEntityType
from services.visitor.models.base import utcnow
from services.visitor.models.site import Site
from services.visitor.models.visit import Visit, VisitDocument, VisitStatus
from services.visitor.services.audit import AuditService
from services.visitor.services.guards import Clock, require_role, require_same_site
from services.visitor.store.base import Store
from shared.auth.roles import Actor, Role
from shared.logging import get_logger


logger = get_logger(__name__)

INDUCTION = "induction"
DOCUMENTS = "documents"


class InductionService:
    """Induction records and document acceptance."""

    def __init__(
        self,
        store: Store,
        audit: AuditService,
        validity_days: int = 365,
        clock: Clock = utcnow,
    ) -> None:
        self.store = store
        self.audit = audit
        self.validity = timedelta(days=validity_days)
        self.clock = clock

    async def valid_record(self, visitor_id: str, site: Site) -> InductionRecord | None:
        """Latest induction for the site's current content version still inside its validity."""
        cutoff = self.clock() - self.validity
        records = await self.store.find(
            InductionRecord,
            where={
                "visitor_id": visitor_id,
                "site_id": site.id,
                "content_version": site.hs_content_version,
            },
            predicate=lambda r: r.completed_at >= cutoff,
            order_by="completed_at",
            descending=True,
            limit=1,
        )
        return records[0] if records else None

    async def documents(self, visit_id: str) -> list[VisitDocument]:
        return await self.store.find(
            VisitDocument,
            where={"visit_id": visit_id},
            order_by="created_at",
        )

    async def outstanding(self, visit: Visit, site: Site) -> list[str]:
        """Prerequisites still missing before this visit may check in."""
        missing = []
        if await self.valid_record(visit.visitor_id, site) is None:
            missing.append(INDUCTION)

        documents = await self.documents(visit.id)
        if documents and not (visit.documents_accepted or all(d.accepted for d in documents)):
            missing.append(DOCUMENTS)
        return missing

    async def complete_induction(self, visit_id: str, actor: Actor) -> Visit:
        """Record a completed induction against the site's current content."""
        require_role(actor, Role.RECEPTION)
        visit = await self.store.require(Visit, visit_id)
        require_same_site(actor, visit.site_id)
        if visit.status != VisitStatus.SCHEDULED:
            raise InvalidTransition("Induction can only be completed before check-in")

        site = await self.store.require(Site, visit.site_id)
        now = self.clock()
        record = await self.store.insert(
            InductionRecord(
                visitor_id=visit.visitor_id,
                site_id=site.id,
                content_version=site.hs_content_version,
                completed_at=now,
                visit_id=visit.id,
                created_at=now,
            )
        )
        updated = await self.store.update(
            Visit,
            visit.id,
            {
                "induction_completed": True,
                "induction_version": site.hs_content_version,
                "induction_completed_at": now,
                "updated_at": now,
            },
        )

        logger.info(
            "induction_completed",
            visit_id=visit.id,
            visitor_id=visit.visitor_id,
            content_version=site.hs_content_version,
        )
        await self.audit.log(
            AuditAction.INDUCTION_COMPLETED,
            AuditEntityType.INDUCTION_RECORD,
            record.id,
            actor.id,
            {"visit_id": visit.id, "content_version": site.hs_content_version},
        )
        return updated

    async def accept_documents(self, visit_id: str, actor: Actor) -> Visit:
        """Accept every document attached to a visit."""
        require_role(actor, Role.RECEPTION)
        visit = await self.store.require(Visit, visit_id)
        require_same_site(actor, visit.site_id)
        if visit.status != VisitStatus.SCHEDULED:
            raise InvalidTransition("Documents can only be accepted before check-in")

        now = self.clock()
        accepted = []
        for document in await self.documents(visit.id):
            if document.accepted:
                continue
            try:
                await self.store.update(
                    VisitDocument,
                    document.id,
                    {"accepted": True, "accepted_at": now},
                    expected={"accepted": False},
                )
            except ConcurrentUpdate:
                continue
            accepted.append(document.id)

        updated = await self.store.update(
            Visit,
            visit.id,
            {"documents_accepted": True, "documents_accepted_at": now, "updated_at": now},
        )

        for document_id in accepted:
            await self.audit.log(
                AuditAction.DOCUMENT_ACCEPTED,
                AuditEntityType.VISIT_DOCUMENT,
                document_id,
                actor.id,
                {"visit_id": visit.id},
            )
        return updated
