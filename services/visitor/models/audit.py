"""
Audit Trail Models
==================

Version: 0.1.0
"""

from enum import Enum
from typing import Any, ClassVar

from pydantic import Field

from services.visitor.models.base import Record


class AuditAction(str, Enum):
    """Actions recorded in the audit trail."""

    VISIT_SCHEDULED = "visit_scheduled"
    VISIT_CHECKED_IN = "visit_checked_in"
    VISIT_SIGNED_OUT = "visit_signed_out"
    VISIT_CANCELLED = "visit_cancelled"
    INDUCTION_COMPLETED = "induction_completed"
    DOCUMENT_ACCEPTED = "document_accepted"
    DENY_LIST_CHECK_BLOCKED = "deny_list_check_blocked"
    DENY_LIST_ADDED = "deny_list_added"
    DENY_LIST_UPDATED = "deny_list_updated"
    DENY_LIST_REMOVED = "deny_list_removed"
    PRE_APPROVAL_REQUESTED = "pre_approval_requested"
    PRE_APPROVAL_APPROVED = "pre_approval_approved"
    PRE_APPROVAL_REJECTED = "pre_approval_rejected"
    PRE_APPROVAL_REVOKED = "pre_approval_revoked"
    NOTIFICATION_ACKNOWLEDGED = "notification_acknowledged"
    ESCALATION_TRIGGERED = "escalation_triggered"
    EVACUATION_ACTIVATED = "evacuation_activated"
    EVACUATION_CLOSED = "evacuation_closed"


class AuditEntityType(str, Enum):
    """Entity kinds an audit entry can refer to."""

    VISIT = "visit"
    VISIT_DOCUMENT = "visit_document"
    INDUCTION_RECORD = "induction_record"
    DENY_LIST = "deny_list"
    PRE_APPROVAL = "pre_approval"
    NOTIFICATION = "notification"
    EVACUATION_EVENT = "evacuation_event"


class AuditEntry(Record):
    """An append-only audit record."""

    __collection__: ClassVar[str] = "audit_trail"

    action: AuditAction
    entity_type: AuditEntityType
    entity_id: str | None = None
    user_id: str | None = None
    details: dict[str, Any] = Field(default_factory=dict)
