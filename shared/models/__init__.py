"""
Shared Models
=============

Pydantic response envelopes shared across SiteGate services.
"""

from shared.models.common import (
    ErrorResponse,
    HealthResponse,
)

__all__ = [
    "ErrorResponse",
    "HealthResponse",
]
