# =====================================================
# FILE: hrflow/services/document_workflow.py
# Shared approval actions for documents bound to an approval instance
# =====================================================

from sqlalchemy.orm import Session
from typing import Any, Dict, List, Optional
import logging

from hrflow.core.exceptions import AuthorizationError, WorkflowCorruptionError
from hrflow.models.approval_instance import ApprovalInstance, ApprovalStepInstance
from hrflow.services.approval_instance_service import ApprovalInstanceService
from hrflow.services.audit_service import AuditService
from hrflow.services.document_lifecycle import DocumentLifecycle, get_lifecycle
from hrflow.services.step_tracker import StepEvent, StepTracker, check_integrity
from hrflow.utils.datetime_helpers import format_datetime_to_iso

logger = logging.getLogger(__name__)


def serialize_step(step: ApprovalStepInstance, approver_name: Optional[str] = None) -> Dict[str, Any]:
    return {
        "step_order": step.step_order,
        "step_name": step.step_name,
        "approver_type": step.approver_type,
        "approver_id": step.approver_id,
        "approver_name": approver_name,
        "is_current": bool(step.is_current),
        "is_signed": bool(step.is_signed),
        "signature_ref": step.signature_ref,
        "signed_at": format_datetime_to_iso(step.signed_at),
        "approved_at": format_datetime_to_iso(step.approved_at),
        "is_skipped": bool(step.is_skipped),
        "is_rejected": bool(step.is_rejected),
        "rejection_reason": step.rejection_reason,
        "rejected_at": format_datetime_to_iso(step.rejected_at),
        "rejected_by": step.rejected_by,
        "is_final_approval_available": bool(step.is_final_approval_available),
    }


def serialize_instance(instance: ApprovalInstance, names: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    names = names or {}
    return {
        "id": instance.id,
        "template_id": instance.template_id,
        "status": instance.status,
        "created_at": format_datetime_to_iso(instance.created_at),
        "completed_at": format_datetime_to_iso(instance.completed_at),
        "rejected_at": format_datetime_to_iso(instance.rejected_at),
        "final_approval_by": instance.final_approval_by,
        "steps": [serialize_step(s, names.get(s.approver_id)) for s in instance.steps],
    }


class DocumentWorkflowService:
    """
    Base for services whose documents go through an approval instance.

    Subclasses set ``document_type`` and implement ``get_document``.
    """

    document_type: str

    def __init__(self, db: Session):
        self.db = db
        self.instances = ApprovalInstanceService(db)
        self.tracker = StepTracker(db)
        self.audit = AuditService(db)

    @property
    def lifecycle(self) -> DocumentLifecycle:
        return get_lifecycle(self.document_type)

    def get_document(self, document_id: int):
        raise NotImplementedError

    def require_creator(self, document, actor_id: str, creator_attr: str = "created_by") -> None:
        if getattr(document, creator_attr) != actor_id:
            raise AuthorizationError("Only the document creator can do this")

    # ---------------------------
    # Approval actions
    # ---------------------------

    def _run(self, document_id: int, actor_id: str, action, *args) -> StepEvent:
        document = self.get_document(document_id)
        instance = self.instances.require_active_instance(self.document_type, document.id)
        event = action(instance, *args)
        new_status = self.lifecycle.apply_event(document, event)
        self.on_step_event(document, instance, event)

        details = {"instance_id": instance.id, "step_order": event.step_order}
        if new_status:
            details["status"] = new_status
        self.audit.log_action(event.event_type.value.lower(), self.document_type.lower(), document.id, actor_id, details)
        self.db.flush()
        return event

    def on_step_event(self, document, instance: ApprovalInstance, event: StepEvent) -> None:
        """Hook for document-specific side effects of a tracker event"""

    def sign_step(self, document_id: int, actor_id: str, step_order: int, signature_ref: Optional[str] = None) -> StepEvent:
        return self._run(document_id, actor_id, self.tracker.sign, step_order, actor_id, signature_ref)

    def unsign_step(self, document_id: int, actor_id: str, step_order: int) -> StepEvent:
        return self._run(document_id, actor_id, self.tracker.unsign, step_order, actor_id)

    def approve_step(self, document_id: int, actor_id: str) -> StepEvent:
        return self._run(document_id, actor_id, self.tracker.approve_current_step, actor_id)

    def reject_step(self, document_id: int, actor_id: str, reason: Optional[str]) -> StepEvent:
        return self._run(document_id, actor_id, self.tracker.reject_current_step, actor_id, reason)

    def final_approve(self, document_id: int, actor_id: str, signature_ref: Optional[str] = None) -> StepEvent:
        return self._run(document_id, actor_id, self.tracker.final_approve, actor_id, signature_ref)

    def act(self, document_id: int, actor_id: str, approve: bool, rejection_reason: Optional[str] = None) -> StepEvent:
        """Approve or reject the current step in one call"""
        if approve:
            return self.approve_step(document_id, actor_id)
        return self.reject_step(document_id, actor_id, rejection_reason)

    def get_current_step(self, document_id: int) -> Optional[ApprovalStepInstance]:
        document = self.get_document(document_id)
        instance = self.instances.get_active_instance(self.document_type, document.id)
        if instance is None:
            return None
        return self.tracker.get_current_step(instance)

    def approval_view(self, document_id: int) -> Optional[Dict[str, Any]]:
        """Latest instance with approver names; older instances stay in history only"""
        instance = self.instances.get_latest_instance(self.document_type, document_id)
        if instance is None:
            return None
        names = {
            s.approver_id: getattr(self.instances.directory.get_identity(s.approver_id), "user_name", None)
            for s in instance.steps
        }
        view = serialize_instance(instance, names)
        view["integrity_error"] = None
        try:
            check_integrity(instance)
        except WorkflowCorruptionError as e:
            logger.error(f"{self.document_type} {document_id}: {e.message}")
            view["integrity_error"] = e.message
        return view

    def approval_history(self, document_id: int) -> List[Dict[str, Any]]:
        return [serialize_instance(i) for i in self.instances.list_history(self.document_type, document_id)]
