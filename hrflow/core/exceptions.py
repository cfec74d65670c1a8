# =====================================================
# FILE: hrflow/core/exceptions.py
# Workflow Error Taxonomy
# =====================================================

from typing import Any, Dict, List, Optional


class WorkflowError(Exception):
    """Base class for every refused workflow action.

    ``code`` is a stable machine-readable identifier returned to API
    clients next to the human readable message.
    """

    code = "WORKFLOW_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(WorkflowError):
    """Malformed input: bad template, blank reason, out-of-range day."""

    code = "VALIDATION_ERROR"


class EmptyApprovalLine(ValidationError):
    code = "EMPTY_APPROVAL_LINE"


class AuthorizationError(WorkflowError):
    """The actor may not perform this action on this document."""

    code = "AUTHORIZATION_ERROR"


class NotFoundError(WorkflowError):
    code = "NOT_FOUND"


class StateConflictError(WorkflowError):
    """The document or step is not in a state that allows the action."""

    code = "STATE_CONFLICT"


class PreconditionError(StateConflictError):
    code = "PRECONDITION_FAILED"


class UnresolvedApprover(WorkflowError):
    """A step names an approver who no longer exists or is inactive."""

    code = "UNRESOLVED_APPROVER"

    def __init__(self, step_order: int, approver_id: Optional[str] = None):
        message = f"Approver for step {step_order} could not be resolved"
        if approver_id:
            message = f"Approver '{approver_id}' for step {step_order} no longer exists"
        super().__init__(message, {"step_order": step_order, "approver_id": approver_id})
        self.step_order = step_order
        self.approver_id = approver_id


class NoCandidatesFound(WorkflowError):
    code = "NO_CANDIDATES_FOUND"

    def __init__(self, step_order: int, approver_type: str):
        super().__init__(
            f"No candidates found for step {step_order} ({approver_type})",
            {"step_order": step_order, "approver_type": approver_type}
        )
        self.step_order = step_order
        self.approver_type = approver_type


class ApproverPickRequired(WorkflowError):
    """Some steps need the submitter to choose a concrete approver."""

    code = "APPROVER_PICK_REQUIRED"

    def __init__(self, pending: List[Dict[str, Any]]):
        orders = ", ".join(str(p["step_order"]) for p in pending)
        super().__init__(f"Approver selection required for step(s) {orders}", {"pending": pending})
        self.pending = pending


class WorkflowCorruptionError(WorkflowError):
    """Stored approval data is inconsistent; only this document's view fails."""

    code = "WORKFLOW_CORRUPTED"
