"""
Visitor Workflow Services
=========================

Business logic for the visit access workflow.

Services:
- VisitStateMachine: Visit lifecycle commands
- AccessDecisionEngine: Check-in access decisions and host fan-out
- EscalationScheduler: Unacknowledged escort escalation
- EvacuationGate: Evacuation activation, headcount and close
- InductionService, DenyListService, PreApprovalService: Check-in prerequisites
- NotificationService, AuditService: Outbound alerts and the audit trail
- VisitQueries: Read projections

Version: 0.1.0
"""

from services.visitor.services.access import AccessDecisionEngine
from services.visitor.services.audit import AuditService
from services.visitor.services.deny_list import DenyListService
from services.visitor.services.escalation import (
    EscalationOutcome,
    EscalationScheduler,
    EscalationTier,
    TickReport,
)
from services.visitor.services.evacuation import EvacuationGate
from services.visitor.services.induction import InductionService
from services.visitor.services.lifecycle import VisitAction, VisitLifecycle, VisitStateMachine
from services.visitor.services.notifications import NotificationService
from services.visitor.services.pre_approvals import PreApprovalService
from services.visitor.services.projections import SiteBoard, VisitQueries, watch_projection


__all__ = [
    # Lifecycle
    "VisitStateMachine",
    "VisitLifecycle",
    "VisitAction",
    # Access
    "AccessDecisionEngine",
    "InductionService",
    "DenyListService",
    "PreApprovalService",
    # Escalation
    "EscalationScheduler",
    "EscalationTier",
    "EscalationOutcome",
    "TickReport",
    # Evacuation
    "EvacuationGate",
    # Support
    "NotificationService",
    "AuditService",
    # Projections
    "VisitQueries",
    "SiteBoard",
    "watch_projection",
]
