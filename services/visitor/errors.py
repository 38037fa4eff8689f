"""
Workflow Errors
===============

Every command failure is a `WorkflowError` with a stable `code` and a
message fit to show an operator.

Hierarchy:
    WorkflowError
    ├── InvalidTransition
    │   ├── AlreadyCheckedIn
    │   ├── NotCheckedIn
    │   ├── AlreadyCancelled
    │   ├── EvacuationAlreadyClosed
    │   └── ConcurrentUpdate
    ├── EvacuationActive
    ├── DeniedVisitor
    ├── NotFound
    ├── ValidationFailed
    │   └── PrerequisitesOutstanding
    ├── StoreUnavailable
    └── PermissionDenied

Version: 0.1.0
"""

from typing import Any, TYPE_CHECKING


if TYPE_CHECKING:
    from services.visitor.models.access import DenyListEntry


class WorkflowError(Exception):
    """Base class for workflow command failures."""

    code = "workflow_error"
    default_message = "The request could not be completed"

    def __init__(self, message: str | None = None, **details: Any) -> None:
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)


class InvalidTransition(WorkflowError):
    """The transition is not legal from the record's current state."""

    code = "invalid_transition"
    default_message = "This action is not allowed in the current state"


class AlreadyCheckedIn(InvalidTransition):
    code = "already_checked_in"
    default_message = "This visit was already processed"


class NotCheckedIn(InvalidTransition):
    code = "not_checked_in"
    default_message = "This visitor is not checked in"


class AlreadyCancelled(InvalidTransition):
    code = "already_cancelled"
    default_message = "This visit has been cancelled"


class EvacuationAlreadyClosed(InvalidTransition):
    code = "evacuation_already_closed"
    default_message = "This evacuation has already been closed"


class ConcurrentUpdate(InvalidTransition):
    """A conditional write found the record in an unexpected state."""

    code = "concurrent_update"
    default_message = "This record was already processed"


class EvacuationActive(WorkflowError):
    """An open evacuation vetoes the transition."""

    code = "evacuation_active"
    default_message = "Evacuation in progress: check-in and sign-out are suspended"


class DeniedVisitor(WorkflowError):
    """Check-in blocked by the deny list."""

    code = "denied_visitor"
    default_message = "This visitor is on the deny list"

    def __init__(self, entry: "DenyListEntry") -> None:
        self.entry = entry
        self.reason = entry.reason
        super().__init__(
            f"{self.default_message}: {entry.reason}",
            deny_list_id=entry.id,
            reason=entry.reason,
        )


class NotFound(WorkflowError):
    code = "not_found"
    default_message = "The requested record does not exist"

    def __init__(self, kind: str, record_id: str) -> None:
        self.kind = kind
        self.record_id = record_id
        super().__init__(f"{kind} {record_id} not found", kind=kind, id=record_id)


class ValidationFailed(WorkflowError):
    code = "validation_failed"
    default_message = "The request is invalid"


class PrerequisitesOutstanding(ValidationFailed):
    """Induction or document acceptance must be completed before check-in."""

    code = "prerequisites_outstanding"

    def __init__(self, outstanding: list[str]) -> None:
        self.outstanding = outstanding
        super().__init__(
            "Complete the following before check-in: " + ", ".join(outstanding),
            outstanding=outstanding,
        )


class StoreUnavailable(WorkflowError):
    """Transient failure talking to the record store."""

    code = "store_unavailable"
    default_message = "The record store is unavailable, please retry"


class PermissionDenied(WorkflowError):
    code = "permission_denied"
    default_message = "Insufficient permissions"
