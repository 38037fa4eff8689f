"""
Audit Trail Service
===================

Appends audit entries for workflow transitions. A failed audit write is
logged and reported as None; it never undoes the transition it records.

Version: 0.1.0
"""

from typing import Any

from services.visitor.models.audit import AuditAction, AuditEntityType, AuditEntry
from services.visitor.models.base import utcnow
from services.visitor.services.guards import Clock
from services.visitor.store.base import Store
from shared.logging import get_logger


logger = get_logger(__name__)


class AuditService:
    """Writes and reads the audit trail."""

    def __init__(self, store: Store, clock: Clock = utcnow) -> None:
        self.store = store
        self.clock = clock

    async def log(
        self,
        action: AuditAction,
        entity_type: AuditEntityType,
        entity_id: str | None,
        user_id: str | None,
        details: dict[str, Any] | None = None,
    ) -> AuditEntry | None:
        """
        Append an audit entry.

        Returns:
            The stored entry, or None when the write failed
        """
        entry = AuditEntry(
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            user_id=user_id,
            details=details or {},
            created_at=self.clock(),
        )
        try:
            return await self.store.insert(entry)
        except Exception as e:
            logger.error(
                "audit_write_failed",
                action=action.value,
                entity_type=entity_type.value,
                entity_id=entity_id,
                error=str(e),
            )
            return None

    async def for_entity(
        self,
        entity_type: AuditEntityType,
        entity_id: str,
    ) -> list[AuditEntry]:
        """Audit history of one entity, newest first."""
        return await self.store.find(
            AuditEntry,
            where={"entity_type": entity_type, "entity_id": entity_id},
            order_by="created_at",
            descending=True,
        )
