"""
Evacuation Models
=================

At most one evacuation event per site may be open (closed_at is null).

Version: 0.1.0
"""

from datetime import datetime
from typing import ClassVar

from pydantic import BaseModel, Field

from services.visitor.models.base import Record
from services.visitor.models.visit import Visit


class EvacuationEvent(Record):
    """A site-wide emergency evacuation."""

    __collection__: ClassVar[str] = "evacuation_events"

    site_id: str
    activated_by: str
    activated_at: datetime
    closed_at: datetime | None = None
    closed_by: str | None = None
    headcount_at_activation: int = Field(default=0, ge=0)
    headcount_accounted: int = Field(default=0, ge=0)
    accounted_visit_ids: list[str] = Field(default_factory=list)
    # Bumped on every change to accounted_visit_ids
    accounting_revision: int = Field(default=0, ge=0)
    notes: str | None = None

    @property
    def is_open(self) -> bool:
        return self.closed_at is None


class Headcount(BaseModel):
    """Roster reconciliation during an evacuation."""

    event_id: str
    headcount_at_activation: int
    on_site: list[Visit]
    accounted_visit_ids: list[str]
    missing: list[Visit]

    @property
    def accounted(self) -> int:
        return len(self.accounted_visit_ids)

    @property
    def all_accounted(self) -> bool:
        return not self.missing
