# =====================================================
# FILE: hrflow/services/step_tracker.py
# Per-instance step state machine: sign, approve, reject, final approval
# =====================================================

from sqlalchemy.orm import Session
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import List, Optional
import logging

from hrflow.core.exceptions import (
    AuthorizationError,
    NotFoundError,
    StateConflictError,
    ValidationError,
    WorkflowCorruptionError,
)
from hrflow.models.approval_instance import ApprovalInstance, ApprovalStepInstance
from hrflow.models.enums import InstanceStatus
from hrflow.services.audit_service import AuditService
from hrflow.services.signature_store import SignatureStore

logger = logging.getLogger(__name__)


class StepEventType(str, Enum):
    SIGNED = "SIGNED"
    UNSIGNED = "UNSIGNED"
    ADVANCED = "ADVANCED"
    COMPLETED = "COMPLETED"
    REJECTED = "REJECTED"


@dataclass(frozen=True)
class StepEvent:
    """What a tracker action did; fed to the document lifecycle."""
    event_type: StepEventType
    step_order: int
    actor_id: str
    final_override: bool = False


# =====================================================
# INTEGRITY
# =====================================================

def check_integrity(instance: ApprovalInstance) -> None:
    """
    Verify the stored steps still describe a valid instance.

    Raises:
        WorkflowCorruptionError: gaps in numbering, wrong number of current
            steps, or a current step behind an unapproved one
    """
    steps = list(instance.steps)
    if not steps:
        raise WorkflowCorruptionError(f"Approval instance {instance.id} has no steps")

    orders = [s.step_order for s in steps]
    if sorted(orders) != list(range(1, len(steps) + 1)):
        raise WorkflowCorruptionError(
            f"Approval instance {instance.id} step numbering is not contiguous: {sorted(orders)}"
        )

    current = [s for s in steps if s.is_current]
    if instance.status == InstanceStatus.ACTIVE.value:
        if len(current) != 1:
            raise WorkflowCorruptionError(
                f"Approval instance {instance.id} has {len(current)} current steps"
            )
        for step in steps:
            if step.step_order < current[0].step_order and not step.approved_at:
                raise WorkflowCorruptionError(
                    f"Approval instance {instance.id} step {step.step_order} is behind the current step but not approved"
                )
    elif current:
        raise WorkflowCorruptionError(
            f"Approval instance {instance.id} is {instance.status} but still has a current step"
        )


def current_step(instance: ApprovalInstance) -> Optional[ApprovalStepInstance]:
    for step in instance.steps:
        if step.is_current:
            return step
    return None


# =====================================================
# TRACKER
# =====================================================

class StepTracker:
    """
    Only the current step can be acted on, and only by its approver.

    Every refused action raises before touching any row.
    """

    def __init__(self, db: Session):
        self.db = db
        self.audit = AuditService(db)
        self.signatures = SignatureStore(db)

    # ---------------------------
    # Guards
    # ---------------------------

    def _require_active(self, instance: ApprovalInstance) -> ApprovalStepInstance:
        if instance.status != InstanceStatus.ACTIVE.value:
            raise StateConflictError(f"Approval is already {instance.status.lower()}")
        check_integrity(instance)
        return current_step(instance)

    def _require_current_approver(self, step: ApprovalStepInstance, actor_id: str) -> None:
        if step.approver_id != actor_id:
            logger.warning(
                f"User {actor_id} attempted to act on instance {step.instance_id} "
                f"but step {step.step_order} belongs to {step.approver_id}"
            )
            raise AuthorizationError("You are not the approver of the current step")

    def _require_target(self, step: ApprovalStepInstance, step_order: Optional[int]) -> None:
        if step_order is not None and step_order != step.step_order:
            raise StateConflictError(
                f"Step {step_order} is not the current step (current: {step.step_order})"
            )

    def get_current_step(self, instance: ApprovalInstance) -> Optional[ApprovalStepInstance]:
        check_integrity(instance)
        return current_step(instance)

    def find_step(self, instance: ApprovalInstance, step_order: int) -> ApprovalStepInstance:
        for step in instance.steps:
            if step.step_order == step_order:
                return step
        raise NotFoundError(f"Step {step_order} not found")

    # ---------------------------
    # Actions
    # ---------------------------

    def sign(
        self,
        instance: ApprovalInstance,
        step_order: int,
        actor_id: str,
        signature_ref: Optional[str] = None
    ) -> StepEvent:
        step = self._require_active(instance)
        self._require_current_approver(step, actor_id)
        self._require_target(step, step_order)
        if step.is_signed:
            raise StateConflictError(f"Step {step.step_order} is already signed")

        step.signature_ref = signature_ref or self.signatures.require_signature_image(actor_id)
        step.is_signed = True
        step.signed_at = datetime.utcnow()
        self.db.flush()

        logger.info(f"Instance {instance.id} step {step.step_order} signed by {actor_id}")
        return StepEvent(StepEventType.SIGNED, step.step_order, actor_id)

    def unsign(self, instance: ApprovalInstance, step_order: int, actor_id: str) -> StepEvent:
        step = self._require_active(instance)
        self._require_current_approver(step, actor_id)
        self._require_target(step, step_order)
        if not step.is_signed:
            raise StateConflictError(f"Step {step.step_order} is not signed")

        step.is_signed = False
        step.signature_ref = None
        step.signed_at = None
        self.db.flush()

        logger.info(f"Instance {instance.id} step {step.step_order} signature retracted by {actor_id}")
        return StepEvent(StepEventType.UNSIGNED, step.step_order, actor_id)

    def approve_current_step(self, instance: ApprovalInstance, actor_id: str) -> StepEvent:
        step = self._require_active(instance)
        self._require_current_approver(step, actor_id)
        if not step.is_signed:
            raise StateConflictError(f"Step {step.step_order} must be signed before it can be approved")

        now = datetime.utcnow()
        step.is_current = False
        step.approved_at = now

        following = self._following_steps(instance, step)
        if following:
            following[0].is_current = True
            event = StepEvent(StepEventType.ADVANCED, step.step_order, actor_id)
            logger.info(f"Instance {instance.id} advanced to step {following[0].step_order}")
        else:
            instance.status = InstanceStatus.COMPLETED.value
            instance.completed_at = now
            event = StepEvent(StepEventType.COMPLETED, step.step_order, actor_id)
            logger.info(f"Instance {instance.id} completed by {actor_id}")

        self.db.flush()
        return event

    def reject_current_step(self, instance: ApprovalInstance, actor_id: str, reason: Optional[str]) -> StepEvent:
        step = self._require_active(instance)
        self._require_current_approver(step, actor_id)
        reason = (reason or "").strip()
        if not reason:
            raise ValidationError("A rejection reason is required")

        now = datetime.utcnow()
        step.is_rejected = True
        step.rejection_reason = reason
        step.rejected_at = now
        step.rejected_by = actor_id
        step.is_current = False
        instance.status = InstanceStatus.REJECTED.value
        instance.rejected_at = now
        self.db.flush()

        logger.info(f"Instance {instance.id} rejected at step {step.step_order} by {actor_id}")
        return StepEvent(StepEventType.REJECTED, step.step_order, actor_id)

    def final_approve(
        self,
        instance: ApprovalInstance,
        actor_id: str,
        signature_ref: Optional[str] = None
    ) -> StepEvent:
        """
        Complete the whole instance from a step flagged for final approval,
        skipping every later step.
        """
        step = self._require_active(instance)
        self._require_current_approver(step, actor_id)
        if not step.is_final_approval_available:
            raise AuthorizationError(f"Step {step.step_order} does not allow final approval")

        now = datetime.utcnow()
        if not step.is_signed:
            step.signature_ref = signature_ref or self.signatures.require_signature_image(actor_id)
            step.is_signed = True
            step.signed_at = now

        skipped = self._following_steps(instance, step)
        step.is_current = False
        step.approved_at = now
        for later in skipped:
            later.is_skipped = True
        instance.status = InstanceStatus.COMPLETED.value
        instance.completed_at = now
        instance.final_approval_by = actor_id
        self.db.flush()

        skipped_orders = [s.step_order for s in skipped]
        logger.warning(
            f"Final approval override on instance {instance.id} by {actor_id} at step "
            f"{step.step_order}; skipped steps {skipped_orders}"
        )
        self.audit.log_action(
            "final_approved",
            instance.document_type.lower(),
            instance.document_id,
            actor_id,
            {"instance_id": instance.id, "step_order": step.step_order, "skipped_steps": skipped_orders}
        )
        return StepEvent(
            StepEventType.COMPLETED,
            step.step_order,
            actor_id,
            final_override=True,
        )

    @staticmethod
    def _following_steps(instance: ApprovalInstance, step: ApprovalStepInstance) -> List[ApprovalStepInstance]:
        return sorted(
            (s for s in instance.steps if s.step_order > step.step_order),
            key=lambda s: s.step_order
        )
