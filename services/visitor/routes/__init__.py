"""
SiteGate Visitor Routes
=======================

API route handlers for the visitor workflow service.
"""

from services.visitor.routes import (
    deny_list,
    escalation,
    evacuation,
    notifications,
    pre_approvals,
    sites,
    visits,
)


__all__ = [
    "visits",
    "sites",
    "notifications",
    "deny_list",
    "pre_approvals",
    "evacuation",
    "escalation",
]
