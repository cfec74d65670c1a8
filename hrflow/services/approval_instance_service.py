# =====================================================
# FILE: hrflow/services/approval_instance_service.py
# Approval instance confirmation and lookup
# =====================================================

from sqlalchemy.orm import Session
from dataclasses import asdict, dataclass
from typing import Dict, List, Optional
import logging

from hrflow.core.exceptions import (
    ApproverPickRequired,
    EmptyApprovalLine,
    NotFoundError,
    StateConflictError,
    ValidationError,
    WorkflowCorruptionError,
)
from hrflow.models.approval_instance import ApprovalInstance, ApprovalStepInstance
from hrflow.models.approval_line import ApprovalLine
from hrflow.models.enums import InstanceStatus
from hrflow.services.approver_resolver import (
    DocumentContext,
    RequiresManualPick,
    ResolvedApprovers,
    resolve,
)
from hrflow.services.audit_service import AuditService
from hrflow.services.directory_service import DirectoryService
from hrflow.services.step_tracker import check_integrity, current_step

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlannedStep:
    """A step ready to be materialized, already bound to one approver."""
    step_name: str
    approver_type: str
    approver_id: str
    is_final_approval_available: bool = False


def plan_steps(template_steps: List, inclusion: Optional[Dict[int, bool]] = None) -> List:
    """
    Keep required steps and every optional step not explicitly excluded.

    ``inclusion`` is keyed by the template's stepOrder; an unset optional
    step counts as included.

    Raises:
        EmptyApprovalLine: filtering left nothing
    """
    inclusion = inclusion or {}
    kept = [
        step for step in sorted(template_steps, key=lambda s: s.step_order)
        if not step.is_optional or inclusion.get(step.step_order, True)
    ]
    if not kept:
        raise EmptyApprovalLine("Every step of the approval line was excluded")
    return kept


class ApprovalInstanceService:
    def __init__(self, db: Session):
        self.db = db
        self.directory = DirectoryService(db)
        self.audit = AuditService(db)

    # ---------------------------
    # Lookups
    # ---------------------------

    def get_instance(self, instance_id: int) -> ApprovalInstance:
        instance = self.db.query(ApprovalInstance).filter(ApprovalInstance.id == instance_id).first()
        if not instance:
            raise NotFoundError(f"Approval instance {instance_id} not found")
        return instance

    def get_active_instance(self, document_type: str, document_id: int) -> Optional[ApprovalInstance]:
        return self.db.query(ApprovalInstance).filter(
            ApprovalInstance.document_type == document_type,
            ApprovalInstance.document_id == document_id,
            ApprovalInstance.status == InstanceStatus.ACTIVE.value
        ).first()

    def require_active_instance(self, document_type: str, document_id: int) -> ApprovalInstance:
        instance = self.get_active_instance(document_type, document_id)
        if instance is None:
            raise StateConflictError("This document has no approval in progress")
        return instance

    def get_latest_instance(self, document_type: str, document_id: int) -> Optional[ApprovalInstance]:
        return self.db.query(ApprovalInstance).filter(
            ApprovalInstance.document_type == document_type,
            ApprovalInstance.document_id == document_id
        ).order_by(ApprovalInstance.id.desc()).first()

    def list_history(self, document_type: str, document_id: int) -> List[ApprovalInstance]:
        return self.db.query(ApprovalInstance).filter(
            ApprovalInstance.document_type == document_type,
            ApprovalInstance.document_id == document_id
        ).order_by(ApprovalInstance.id).all()

    def delete_for_document(self, document_type: str, document_id: int) -> None:
        """Drop every instance of a deleted document so a reused id starts clean"""
        for instance in self.list_history(document_type, document_id):
            self.db.delete(instance)

    def pending_document_ids(self, document_type: str, approver_id: str) -> List[int]:
        """Documents whose current step waits on this approver"""
        rows = self.db.query(ApprovalInstance.document_id).join(
            ApprovalStepInstance, ApprovalStepInstance.instance_id == ApprovalInstance.id
        ).filter(
            ApprovalInstance.document_type == document_type,
            ApprovalInstance.status == InstanceStatus.ACTIVE.value,
            ApprovalStepInstance.is_current.is_(True),
            ApprovalStepInstance.approver_id == approver_id
        ).order_by(ApprovalInstance.created_at.desc()).all()
        # An instance with two current steps would otherwise be listed twice
        return list(dict.fromkeys(row.document_id for row in rows))

    def current_approver_ids(self, instance: Optional[ApprovalInstance]) -> List[str]:
        """
        Current approver of an instance for visibility checks; a corrupted
        instance yields nobody instead of failing the caller.
        """
        if instance is None or instance.status != InstanceStatus.ACTIVE.value:
            return []
        try:
            check_integrity(instance)
        except WorkflowCorruptionError as e:
            logger.error(f"Skipping corrupted approval instance {instance.id}: {e.message}")
            return []
        step = current_step(instance)
        return [step.approver_id] if step else []

    # ---------------------------
    # Confirmation
    # ---------------------------

    def load_template(self, template_id: int, document_type: str) -> ApprovalLine:
        template = self.db.query(ApprovalLine).filter(ApprovalLine.id == template_id).first()
        if not template:
            raise NotFoundError(f"Approval line {template_id} not found")
        if template.document_type != document_type:
            raise ValidationError(
                f"Approval line {template_id} is for {template.document_type}, not {document_type}"
            )
        if not template.is_active:
            raise ValidationError(f"Approval line {template_id} is inactive")
        return template

    def resolve_template_steps(
        self,
        template: ApprovalLine,
        context: DocumentContext,
        inclusion: Optional[Dict[int, bool]] = None,
        approver_picks: Optional[Dict[int, str]] = None
    ) -> List[PlannedStep]:
        """
        Filter and resolve a template's steps.

        Picks are keyed by the template stepOrder. Every step that still needs
        a choice is reported at once through ApproverPickRequired.
        """
        approver_picks = approver_picks or {}
        planned: List[PlannedStep] = []
        pending = []

        for step in plan_steps(template.steps, inclusion):
            resolution = resolve(step, context, self.directory)
            pick = approver_picks.get(step.step_order)

            if isinstance(resolution, RequiresManualPick):
                approver_id = self._validate_substitute(step.step_order, pick, context)
                if approver_id is None:
                    pending.append({"step_order": step.step_order, "step_name": step.step_name,
                                    "approver_type": step.approver_type, "candidates": []})
                    continue
            elif isinstance(resolution, ResolvedApprovers) and resolution.is_unique:
                approver_id = resolution.approver.user_id
            else:
                if pick and not resolution.contains(pick):
                    raise ValidationError(
                        f"Step {step.step_order}: '{pick}' is not a candidate for {step.approver_type}"
                    )
                approver_id = pick
                if approver_id is None:
                    pending.append({
                        "step_order": step.step_order,
                        "step_name": step.step_name,
                        "approver_type": step.approver_type,
                        "candidates": [asdict(c) for c in resolution.candidates],
                    })
                    continue

            planned.append(PlannedStep(
                step_name=step.step_name,
                approver_type=step.approver_type,
                approver_id=approver_id,
                is_final_approval_available=bool(step.is_final_approval_available),
            ))

        if pending:
            raise ApproverPickRequired(pending)
        return planned

    def _validate_substitute(self, step_order: int, pick: Optional[str], context: DocumentContext) -> Optional[str]:
        if not pick:
            return None
        if pick == context.owner_id:
            raise ValidationError(f"Step {step_order}: you cannot choose yourself as substitute")
        if self.directory.get_identity(pick) is None:
            raise ValidationError(f"Step {step_order}: substitute '{pick}' does not exist or is inactive")
        return pick

    def create_instance(
        self,
        document_type: str,
        document_id: int,
        created_by: str,
        planned: List[PlannedStep],
        template_id: Optional[int] = None
    ) -> ApprovalInstance:
        """
        Materialize planned steps numbered 1..n with the first one current.

        Raises:
            StateConflictError: the document already has an active instance
            EmptyApprovalLine: nothing to materialize
        """
        if self.get_active_instance(document_type, document_id) is not None:
            raise StateConflictError("This document already has an approval in progress")
        if not planned:
            raise EmptyApprovalLine("An approval needs at least one step")

        instance = ApprovalInstance(
            document_type=document_type,
            document_id=document_id,
            template_id=template_id,
            status=InstanceStatus.ACTIVE.value,
            created_by=created_by,
        )
        instance.steps = [
            ApprovalStepInstance(
                step_order=position,
                step_name=step.step_name,
                approver_type=step.approver_type,
                approver_id=step.approver_id,
                is_final_approval_available=step.is_final_approval_available,
                is_current=position == 1,
                is_signed=False,
            )
            for position, step in enumerate(planned, start=1)
        ]
        self.db.add(instance)
        self.db.flush()

        self.audit.log_action(
            "approval_started",
            document_type.lower(),
            document_id,
            created_by,
            {"instance_id": instance.id, "template_id": template_id, "steps": len(planned)}
        )
        logger.info(
            f"Approval instance {instance.id} created for {document_type} {document_id} "
            f"with {len(planned)} steps"
        )
        return instance

    def confirm(
        self,
        template_id: int,
        context: DocumentContext,
        document_id: int,
        inclusion: Optional[Dict[int, bool]] = None,
        approver_picks: Optional[Dict[int, str]] = None,
        leading_steps: Optional[List[PlannedStep]] = None
    ) -> ApprovalInstance:
        """
        Bind a template to a document: filter optional steps, resolve
        approvers, renumber by filtered position and make step 1 current.
        """
        if self.get_active_instance(context.document_type, document_id) is not None:
            raise StateConflictError("This document already has an approval in progress")
        template = self.load_template(template_id, context.document_type)
        planned = self.resolve_template_steps(template, context, inclusion, approver_picks)
        return self.create_instance(
            context.document_type,
            document_id,
            context.owner_id,
            list(leading_steps or []) + planned,
            template_id=template.id,
        )
