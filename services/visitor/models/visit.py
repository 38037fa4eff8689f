"""
Visit Models
============

A visit is one planned or in-progress visitor presence at a site.

Lifecycle:
    scheduled -> checked_in -> departed
    scheduled -> cancelled

`overdue` is never stored; it is derived on read for checked-in visits
past their planned departure.

Version: 0.1.0
"""

from datetime import datetime
from enum import Enum
from typing import ClassVar

from pydantic import BaseModel, Field, field_validator, model_validator

from services.visitor.models.base import Record


class VisitStatus(str, Enum):
    """Persisted visit states."""

    SCHEDULED = "scheduled"
    CHECKED_IN = "checked_in"
    DEPARTED = "departed"
    CANCELLED = "cancelled"


class DisplayStatus(str, Enum):
    """Visit status as shown to readers, including the derived overdue state."""

    SCHEDULED = "scheduled"
    CHECKED_IN = "checked_in"
    OVERDUE = "overdue"
    DEPARTED = "departed"
    CANCELLED = "cancelled"


class AccessStatus(str, Enum):
    """On-site access level decided at check-in."""

    UNESCORTED = "unescorted"
    AWAITING_ESCORT = "awaiting_escort"


TERMINAL_STATUSES = frozenset({VisitStatus.DEPARTED, VisitStatus.CANCELLED})


class Visit(Record):
    """A visit record."""

    __collection__: ClassVar[str] = "visits"

    visitor_id: str
    site_id: str
    host_user_id: str
    purpose: str
    planned_arrival: datetime
    planned_departure: datetime
    actual_arrival: datetime | None = None
    actual_departure: datetime | None = None
    status: VisitStatus = VisitStatus.SCHEDULED
    access_status: AccessStatus | None = None
    induction_completed: bool = False
    induction_version: int | None = None
    induction_completed_at: datetime | None = None
    documents_accepted: bool = False
    documents_accepted_at: datetime | None = None
    is_walk_in: bool = False
    checked_in_by: str | None = None
    updated_at: datetime | None = None

    def display_status(self, now: datetime) -> DisplayStatus:
        """Derive the read-side status (checked-in past planned departure is overdue)."""
        if self.is_overdue(now):
            return DisplayStatus.OVERDUE
        return DisplayStatus(self.status.value)

    def is_overdue(self, now: datetime) -> bool:
        return self.status == VisitStatus.CHECKED_IN and self.planned_departure < now


class HostContact(Record):
    """Binds a visit to a responder; backups are escalated to first."""

    __collection__: ClassVar[str] = "visit_host_contacts"

    visit_id: str
    user_id: str
    is_backup: bool = False


class VisitDocument(Record):
    """A document the visitor must accept before check-in."""

    __collection__: ClassVar[str] = "visit_documents"

    visit_id: str
    document_name: str
    document_content: str
    accepted: bool = False
    accepted_at: datetime | None = None


class DocumentDraft(BaseModel):
    """Document attached while scheduling."""

    document_name: str = Field(..., min_length=1, max_length=200)
    document_content: str = Field(..., min_length=1)


class VisitCreate(BaseModel):
    """Request to schedule a visit."""

    visitor_id: str
    host_user_id: str | None = Field(
        default=None,
        description="Primary host; defaults to the scheduling member",
    )
    backup_user_id: str | None = None
    purpose: str = Field(..., max_length=500)
    planned_arrival: datetime
    planned_departure: datetime
    is_walk_in: bool = False
    documents: list[DocumentDraft] = Field(default_factory=list)

    @field_validator("purpose")
    @classmethod
    def purpose_not_blank(cls, v: str) -> str:
        """Purpose is required and stored trimmed."""
        v = v.strip()
        if not v:
            raise ValueError("Purpose is required")
        return v

    @model_validator(mode="after")
    def departure_after_arrival(self) -> "VisitCreate":
        """Planned departure must come after planned arrival."""
        if self.planned_departure <= self.planned_arrival:
            raise ValueError("Departure must be after arrival")
        return self


class VisitView(BaseModel):
    """Visit projection returned to readers."""

    visit: Visit
    display_status: DisplayStatus

    @classmethod
    def of(cls, visit: Visit, now: datetime) -> "VisitView":
        return cls(visit=visit, display_status=visit.display_status(now))
