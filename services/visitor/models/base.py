"""
Record Base Model
=================

Every persisted record carries an ID, a creation timestamp and the name
of the store collection it lives in.

Version: 0.1.0
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any, ClassVar
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


def utcnow() -> datetime:
    """Timezone-aware current time."""
    return datetime.now(UTC)


def new_id() -> str:
    """Generate a record identifier."""
    return str(uuid4())


def plain_value(value: Any) -> Any:
    """Unwrap enums (also inside lists) so rows hold primitive values only."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, list):
        return [plain_value(v) for v in value]
    return value


class Record(BaseModel):
    """Base for all stored records."""

    model_config = ConfigDict(from_attributes=True)

    __collection__: ClassVar[str] = ""

    id: str = Field(default_factory=new_id)
    created_at: datetime = Field(default_factory=utcnow)

    def to_row(self) -> dict[str, Any]:
        """Serialize for the store: enums become their values, datetimes stay."""
        return {key: plain_value(value) for key, value in self.model_dump().items()}
