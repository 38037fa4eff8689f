"""
Notification Models
===================

One outbound alert to a member or a visitor.

Invariants:
- `escalated` goes false -> true at most once.
- `acknowledged_at`, once set, is never cleared.

Version: 0.1.0
"""

from datetime import datetime
from enum import Enum
from typing import ClassVar

from services.visitor.models.base import Record


class RecipientType(str, Enum):
    """Who a notification is addressed to."""

    USER = "user"
    VISITOR = "visitor"


class NotificationType(str, Enum):
    """Closed set of notification kinds."""

    VISIT_SCHEDULED = "visit_scheduled"
    VISIT_CANCELLED = "visit_cancelled"
    VISIT_AMENDED = "visit_amended"
    CHECKIN_HOST_ALERT = "checkin_host_alert"
    ESCORT_REQUIRED = "escort_required"
    ESCALATION = "escalation"
    ESCALATION_RECEPTION = "escalation_reception"
    HOST_REMINDER = "host_reminder"
    PRE_APPROVAL_REQUEST = "pre_approval_request"
    PRE_APPROVAL_DECISION = "pre_approval_decision"
    DENY_LIST_ALERT = "deny_list_alert"
    EVACUATION_ACTIVATED = "evacuation_activated"
    WALK_IN_HOST_CONFIRM = "walk_in_host_confirm"


class Notification(Record):
    """A message delivered to one recipient."""

    __collection__: ClassVar[str] = "messages"

    recipient_type: RecipientType = RecipientType.USER
    recipient_user_id: str | None = None
    recipient_visitor_id: str | None = None
    visit_id: str | None = None
    notification_type: NotificationType
    title: str
    body: str
    action_url: str | None = None
    is_read: bool = False
    requires_acknowledgement: bool = False
    acknowledged_at: datetime | None = None
    escalated: bool = False

    @property
    def is_acknowledged(self) -> bool:
        return self.acknowledged_at is not None
