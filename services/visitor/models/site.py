"""
Site, Member and Visitor Models
===============================

Reference data the workflow reads but never transitions.

Version: 0.1.0
"""

from enum import Enum
from typing import ClassVar

from pydantic import EmailStr, Field

from services.visitor.models.base import Record
from shared.auth.roles import Role


class VisitorType(str, Enum):
    """Who the visitor is relative to the organisation."""

    INTERNAL_STAFF = "internal_staff"
    THIRD_PARTY = "third_party"


class Site(Record):
    """A physical site visitors attend."""

    __collection__: ClassVar[str] = "sites"

    name: str = Field(..., min_length=1)
    site_code: str = Field(..., min_length=1)
    hs_content_version: int = Field(default=1, ge=1, description="Current induction content version")
    notification_escalation_minutes: int | None = Field(default=None, ge=0)
    pre_approval_default_days: int | None = Field(default=None, ge=1)
    is_active: bool = True


class Member(Record):
    """A staff user at a site (host, reception or site admin)."""

    __collection__: ClassVar[str] = "members"

    name: str
    site_id: str
    role: Role
    email: str | None = None
    is_active: bool = True


class Visitor(Record):
    """A person who attends sites."""

    __collection__: ClassVar[str] = "visitors"

    name: str = Field(..., min_length=1)
    email: EmailStr
    company: str | None = None
    phone: str | None = None
    visitor_type: VisitorType = VisitorType.THIRD_PARTY
