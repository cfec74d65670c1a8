# =====================================================
# FILE: hrflow/services/contract_service.py
# Employment contracts: drafting, sending, employee signature and completion
# =====================================================

from sqlalchemy import or_
from datetime import datetime
from typing import Any, Dict, List, Optional
import logging

from hrflow.core.exceptions import (
    AuthorizationError,
    NotFoundError,
    StateConflictError,
    ValidationError,
)
from hrflow.core.permissions import is_org_admin
from hrflow.models.approval_instance import ApprovalInstance
from hrflow.models.contract import EmploymentContract
from hrflow.models.enums import ApproverType, ContractStatus, DocumentType
from hrflow.models.user import User
from hrflow.services.approval_instance_service import PlannedStep
from hrflow.services.approver_resolver import DocumentContext
from hrflow.services.document_workflow import DocumentWorkflowService
from hrflow.services.step_tracker import StepEvent, StepEventType
from hrflow.utils.datetime_helpers import format_datetime_to_iso

logger = logging.getLogger(__name__)

EMPLOYEE_STEP_NAME = "직원 서명"
CREATOR_STEP_NAME = "관리자 확인"
# The employee draws signatures into the form itself; the step points there
FORM_SIGNATURE_REF = "form_data_json#signatures"
MAX_REASON_LENGTH = 500


class ContractService(DocumentWorkflowService):
    document_type = DocumentType.CONTRACT.value

    # ---------------------------
    # Loading and access
    # ---------------------------

    def get_document(self, document_id: int) -> EmploymentContract:
        contract = self.db.query(EmploymentContract).filter(EmploymentContract.id == document_id).first()
        if not contract:
            raise NotFoundError(f"Contract {document_id} not found")
        return contract

    def can_view(self, contract: EmploymentContract, viewer: User) -> bool:
        if contract.creator_id == viewer.user_id:
            return True
        if contract.status == ContractStatus.DRAFT.value:
            return False
        if contract.employee_id == viewer.user_id:
            return True
        if contract.status == ContractStatus.COMPLETED.value:
            return is_org_admin(viewer)

        instance = self.instances.get_active_instance(self.document_type, contract.id)
        return viewer.user_id in self.instances.current_approver_ids(instance)

    def get_visible(self, contract_id: int, viewer: User) -> EmploymentContract:
        contract = self.get_document(contract_id)
        if not self.can_view(contract, viewer):
            raise AuthorizationError("You do not have access to this contract")
        return contract

    def get_editable(self, contract_id: int, actor_id: str) -> EmploymentContract:
        contract = self.get_document(contract_id)
        self.require_creator(contract, actor_id, "creator_id")
        if not self.lifecycle.is_editable(contract.status):
            raise StateConflictError(f"Contract is {contract.status} and can no longer be edited")
        return contract

    # ---------------------------
    # Drafting
    # ---------------------------

    def create_contract(self, actor: User, employee_id: str, form_data: Optional[Dict[str, Any]] = None) -> EmploymentContract:
        if not is_org_admin(actor):
            raise AuthorizationError("Only HR administrators can create employment contracts")
        if self.instances.directory.get_identity(employee_id) is None:
            raise NotFoundError(f"Employee {employee_id} not found")

        contract = EmploymentContract(
            creator_id=actor.user_id,
            employee_id=employee_id,
            status=ContractStatus.DRAFT.value,
            form_data_json=form_data or {},
        )
        self.db.add(contract)
        self.db.flush()
        self.audit.log_action("created", "contract", contract.id, actor.user_id, {"employee_id": employee_id})
        logger.info(f"Contract {contract.id} created by {actor.user_id} for {employee_id}")
        return contract

    def update_form(self, contract_id: int, actor_id: str, form_data: Dict[str, Any]) -> EmploymentContract:
        contract = self.get_editable(contract_id, actor_id)
        contract.form_data_json = dict(form_data or {})
        contract.updated_at = datetime.utcnow()
        self.db.flush()
        return contract

    def delete_contract(self, contract_id: int, actor_id: str) -> None:
        contract = self.get_document(contract_id)
        self.require_creator(contract, actor_id, "creator_id")
        if contract.status != ContractStatus.DRAFT.value:
            raise StateConflictError("Only draft contracts can be deleted")
        self.instances.delete_for_document(self.document_type, contract_id)
        self.db.delete(contract)
        self.db.flush()
        self.audit.log_action("deleted", "contract", contract_id, actor_id)

    def reopen(self, contract_id: int, actor_id: str) -> EmploymentContract:
        """RETURNED_TO_ADMIN -> DRAFT"""
        contract = self.get_document(contract_id)
        self.require_creator(contract, actor_id, "creator_id")
        self.lifecycle.transition(contract, ContractStatus.DRAFT.value)
        self.db.flush()
        self.audit.log_action("reopened", "contract", contract.id, actor_id)
        return contract

    # ---------------------------
    # Sending
    # ---------------------------

    def send(
        self,
        contract_id: int,
        actor: User,
        approval_line_id: Optional[int] = None,
        inclusion: Optional[Dict[int, bool]] = None,
        approver_picks: Optional[Dict[int, str]] = None
    ) -> ApprovalInstance:
        """
        DRAFT / RETURNED_TO_ADMIN -> SENT_TO_EMPLOYEE.

        Step 1 is always the employee's signature, followed by the chosen
        CONTRACT approval line or, without one, the creator's confirmation.
        """
        contract = self.get_document(contract_id)
        self.require_creator(contract, actor.user_id, "creator_id")
        self.lifecycle.require_transition(contract.status, ContractStatus.SENT_TO_EMPLOYEE.value)
        if self.instances.directory.get_identity(contract.employee_id) is None:
            raise NotFoundError(f"Employee {contract.employee_id} no longer exists")

        employee_step = PlannedStep(EMPLOYEE_STEP_NAME, ApproverType.EMPLOYEE.value, contract.employee_id)
        if approval_line_id is not None:
            context = DocumentContext(self.document_type, actor.user_id, actor.dept_code)
            instance = self.instances.confirm(
                approval_line_id, context, contract.id, inclusion, approver_picks, leading_steps=[employee_step]
            )
        else:
            creator_step = PlannedStep(CREATOR_STEP_NAME, ApproverType.CREATOR.value, contract.creator_id)
            instance = self.instances.create_instance(
                self.document_type, contract.id, actor.user_id, [employee_step, creator_step]
            )

        self.lifecycle.transition(contract, ContractStatus.SENT_TO_EMPLOYEE.value)
        contract.rejection_reason = None
        contract.sent_at = datetime.utcnow()
        self.db.flush()
        self.audit.log_action("sent", "contract", contract.id, actor.user_id, {"instance_id": instance.id})
        return instance

    # ---------------------------
    # Employee / approver actions
    # ---------------------------

    def employee_sign(self, contract_id: int, actor_id: str, form_data: Dict[str, Any]) -> StepEvent:
        """
        The employee submits the signed form: signatures and agreements are
        merged into the form data, then step 1 is signed and approved.
        """
        contract = self.get_document(contract_id)
        if contract.employee_id != actor_id:
            raise AuthorizationError("Only the named employee can sign this contract")
        if contract.status != ContractStatus.SENT_TO_EMPLOYEE.value:
            raise StateConflictError(f"Contract is {contract.status}, not awaiting the employee signature")

        self.sign_step(contract_id, actor_id, 1, FORM_SIGNATURE_REF)
        merged = dict(contract.form_data_json or {})
        merged.update(form_data or {})
        contract.form_data_json = merged
        contract.updated_at = datetime.utcnow()
        return self.approve_step(contract_id, actor_id)

    def approve(self, contract_id: int, actor_id: str) -> StepEvent:
        """Sign (with the stored signature) if needed and approve the current step"""
        current = self.get_current_step(contract_id)
        if current is not None and current.approver_id == actor_id and not current.is_signed:
            self.sign_step(contract_id, actor_id, current.step_order)
        return self.approve_step(contract_id, actor_id)

    def return_to_admin(self, contract_id: int, actor_id: str, reason: Optional[str]) -> StepEvent:
        reason = (reason or "").strip()
        if not reason:
            raise ValidationError("A reason is required to return the contract")
        if len(reason) > MAX_REASON_LENGTH:
            raise ValidationError(f"Reason must be at most {MAX_REASON_LENGTH} characters")
        return self.reject_step(contract_id, actor_id, reason)

    def on_step_event(self, document, instance, event):
        if event.event_type == StepEventType.REJECTED:
            step = self.tracker.find_step(instance, event.step_order)
            document.rejection_reason = step.rejection_reason
        elif event.event_type == StepEventType.COMPLETED:
            document.completed_at = datetime.utcnow()

    # ---------------------------
    # Listing and views
    # ---------------------------

    def list_contracts(self, viewer: User, completed: bool = False) -> List[EmploymentContract]:
        query = self.db.query(EmploymentContract)
        if completed:
            query = query.filter(EmploymentContract.status == ContractStatus.COMPLETED.value)
            if not is_org_admin(viewer):
                query = query.filter(or_(
                    EmploymentContract.creator_id == viewer.user_id,
                    EmploymentContract.employee_id == viewer.user_id
                ))
            return query.order_by(EmploymentContract.updated_at.desc()).all()

        query = query.filter(EmploymentContract.status != ContractStatus.COMPLETED.value)
        contracts = query.order_by(EmploymentContract.updated_at.desc()).all()
        return [c for c in contracts if self.can_view(c, viewer)]

    def signatures_view(self, contract_id: int, viewer: User) -> Dict[str, Any]:
        contract = self.get_visible(contract_id, viewer)
        form = contract.form_data_json or {}
        return {
            "signatures": form.get("signatures", {}),
            "agreements": form.get("agreements", {}),
        }

    def serialize(self, contract: EmploymentContract, viewer: Optional[User] = None) -> Dict[str, Any]:
        directory = self.instances.directory
        employee = directory.get_identity(contract.employee_id)
        creator = directory.get_identity(contract.creator_id)
        view = {
            "id": contract.id,
            "creator_id": contract.creator_id,
            "creator_name": creator.user_name if creator else None,
            "employee_id": contract.employee_id,
            "employee_name": employee.user_name if employee else None,
            "status": contract.status,
            "form_data_json": contract.form_data_json or {},
            "rejection_reason": contract.rejection_reason,
            "created_at": format_datetime_to_iso(contract.created_at),
            "updated_at": format_datetime_to_iso(contract.updated_at),
            "sent_at": format_datetime_to_iso(contract.sent_at),
            "completed_at": format_datetime_to_iso(contract.completed_at),
        }
        if viewer is not None:
            view["can_edit"] = (
                contract.creator_id == viewer.user_id and self.lifecycle.is_editable(contract.status)
            )
        return view

    def detail(self, contract_id: int, viewer: User) -> Dict[str, Any]:
        contract = self.get_visible(contract_id, viewer)
        view = self.serialize(contract, viewer)
        view["approval"] = self.approval_view(contract.id)
        return view
