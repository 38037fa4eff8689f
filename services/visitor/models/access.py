"""
Access Control Models
=====================

Deny-list entries, pre-approvals and induction records: the facts the
access decision reads at check-in.

Version: 0.1.0
"""

from datetime import datetime
from enum import Enum
from typing import ClassVar

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

from services.visitor.models.base import Record


class DenyListEntry(Record):
    """A visitor barred from a site."""

    __collection__: ClassVar[str] = "deny_list"

    site_id: str
    visitor_id: str | None = None
    visitor_name: str
    visitor_email: str | None = None
    reason: str
    is_permanent: bool = False
    expires_at: datetime | None = None
    added_by: str
    is_active: bool = True
    updated_at: datetime | None = None

    def is_effective(self, now: datetime) -> bool:
        """An active entry blocks while permanent or not yet expired."""
        if not self.is_active:
            return False
        if self.is_permanent:
            return True
        return self.expires_at is not None and self.expires_at > now


class DenyListCreate(BaseModel):
    """Request to bar a visitor."""

    visitor_id: str | None = None
    visitor_name: str = Field(..., min_length=1, max_length=200)
    visitor_email: EmailStr | None = None
    reason: str
    is_permanent: bool = False
    expires_at: datetime | None = None

    @field_validator("reason")
    @classmethod
    def reason_required(cls, v: str) -> str:
        """A deny-list reason is mandatory."""
        v = v.strip()
        if not v:
            raise ValueError("A reason is required")
        return v

    @model_validator(mode="after")
    def target_and_duration(self) -> "DenyListCreate":
        """Entries need a target and either permanence or an expiry."""
        if not self.visitor_id and not self.visitor_email:
            raise ValueError("A visitor or an email address is required")
        if not self.is_permanent and self.expires_at is None:
            raise ValueError("Temporary entries need an expiry")
        return self


class DenyListUpdate(BaseModel):
    """Request to amend a deny-list entry."""

    reason: str | None = None
    is_permanent: bool | None = None
    expires_at: datetime | None = None
    is_active: bool | None = None


class PreApprovalStatus(str, Enum):
    """Pre-approval lifecycle states."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    EXPIRED = "expired"
    REVOKED = "revoked"


class PreApproval(Record):
    """A time-bounded grant of unescorted access for a visitor at a site."""

    __collection__: ClassVar[str] = "pre_approvals"

    visitor_id: str
    site_id: str
    requested_by: str
    approved_by: str | None = None
    status: PreApprovalStatus = PreApprovalStatus.PENDING
    reason: str | None = None
    expires_at: datetime | None = None
    revoked_at: datetime | None = None
    revoked_by: str | None = None
    updated_at: datetime | None = None

    def is_effective(self, now: datetime) -> bool:
        """Approved and not yet expired."""
        return (
            self.status == PreApprovalStatus.APPROVED
            and self.expires_at is not None
            and self.expires_at > now
        )


class PreApprovalCreate(BaseModel):
    """Request for a visitor's unescorted access."""

    visitor_id: str
    reason: str | None = Field(default=None, max_length=1000)


class InductionRecord(Record):
    """A completed health & safety induction."""

    __collection__: ClassVar[str] = "induction_records"

    visitor_id: str
    site_id: str
    content_version: int
    completed_at: datetime
    visit_id: str | None = None
