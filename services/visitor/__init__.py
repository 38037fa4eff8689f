"""
SiteGate Visitor Workflow
=========================

Visit check-in and access workflow for staffed sites.

Key Features:
- Visit lifecycle with race-safe transitions
- Access decisions from the deny list, visitor type and pre-approvals
- Escalation of unanswered escort requests to backup hosts and reception
- Evacuation mode that freezes the on-site roster for the headcount
"""

from services.visitor.container import WorkflowContainer, build_container, create_container
from services.visitor.errors import WorkflowError

__all__ = [
    "WorkflowContainer",
    "build_container",
    "create_container",
    "WorkflowError",
]
