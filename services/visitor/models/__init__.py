"""
Visitor Service Models
======================

Pydantic records persisted through the Store, plus request models.
"""

from services.visitor.models.access import (
    DenyListCreate,
    DenyListEntry,
    DenyListUpdate,
    InductionRecord,
    PreApproval,
    PreApprovalCreate,
    PreApprovalStatus,
)
from services.visitor.models.audit import AuditAction, AuditEntityType, AuditEntry
from services.visitor.models.base import Record, new_id, utcnow
from services.visitor.models.evacuation import EvacuationEvent, Headcount
from services.visitor.models.notification import (
    Notification,
    NotificationType,
    RecipientType,
)
from services.visitor.models.site import Member, Site, Visitor, VisitorType
from services.visitor.models.visit import (
    AccessStatus,
    DisplayStatus,
    DocumentDraft,
    HostContact,
    Visit,
    VisitCreate,
    VisitDocument,
    VisitStatus,
    VisitView,
)

# Every record type with its own store collection
RECORD_TYPES: tuple[type[Record], ...] = (
    Site,
    Member,
    Visitor,
    Visit,
    HostContact,
    VisitDocument,
    Notification,
    DenyListEntry,
    PreApproval,
    InductionRecord,
    EvacuationEvent,
    AuditEntry,
)

__all__ = [
    "RECORD_TYPES",
    "Record",
    "new_id",
    "utcnow",
    # Reference data
    "Site",
    "Member",
    "Visitor",
    "VisitorType",
    # Visits
    "Visit",
    "VisitCreate",
    "VisitStatus",
    "AccessStatus",
    "DisplayStatus",
    "VisitView",
    "HostContact",
    "VisitDocument",
    "DocumentDraft",
    # Notifications
    "Notification",
    "NotificationType",
    "RecipientType",
    # Access
    "DenyListEntry",
    "DenyListCreate",
    "DenyListUpdate",
    "PreApproval",
    "PreApprovalCreate",
    "PreApprovalStatus",
    "InductionRecord",
    # Evacuation
    "EvacuationEvent",
    "Headcount",
    # Audit
    "AuditEntry",
    "AuditAction",
    "AuditEntityType",
]
