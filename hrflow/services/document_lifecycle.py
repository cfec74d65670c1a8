# =====================================================
# FILE: hrflow/services/document_lifecycle.py
# Document status machines for work schedules and contracts
# =====================================================

from typing import Dict, List, Optional
import logging

from hrflow.core.exceptions import StateConflictError
from hrflow.models.enums import ContractStatus, DocumentType, WorkScheduleStatus
from hrflow.services.step_tracker import StepEvent, StepEventType

logger = logging.getLogger(__name__)


class DocumentLifecycle:
    """
    Coarse document status driven by approval step events.

    Subclasses declare STATUS_TRANSITIONS and say which status an approved
    or rejected step leads to.
    """

    document_type: DocumentType
    STATUS_TRANSITIONS: Dict[str, List[str]] = {}
    EDITABLE_STATUSES: List[str] = []

    def validate_status_transition(self, current_status: str, new_status: str) -> bool:
        return new_status in self.STATUS_TRANSITIONS.get(current_status, [])

    def require_transition(self, current_status: str, new_status: str) -> None:
        if not self.validate_status_transition(current_status, new_status):
            raise StateConflictError(
                f"Cannot move {self.document_type.value.lower()} from {current_status} to {new_status}"
            )

    def is_editable(self, status: str) -> bool:
        return status in self.EDITABLE_STATUSES

    def transition(self, document, new_status: str) -> None:
        self.require_transition(document.status, new_status)
        logger.info(
            f"{self.document_type.value} {document.id}: {document.status} -> {new_status}"
        )
        document.status = new_status

    def statuses_for_event(self, current_status: str, event: StepEvent) -> List[str]:
        """Statuses to walk through, in order, for one tracker event"""
        raise NotImplementedError

    def apply_event(self, document, event: StepEvent) -> Optional[str]:
        """
        Move the document for a tracker event. Every hop is validated against
        STATUS_TRANSITIONS; returns the final status or None if unchanged.
        """
        path = self.statuses_for_event(document.status, event)
        for status in path:
            self.transition(document, status)
        return path[-1] if path else None


class WorkScheduleLifecycle(DocumentLifecycle):
    """
    DRAFT -> SUBMITTED -> REVIEWED -> APPROVED, REJECTED from SUBMITTED or
    REVIEWED. Step 1 is the review step and the last step the final one.
    """

    document_type = DocumentType.WORK_SCHEDULE
    REVIEW_STEP_ORDER = 1

    STATUS_TRANSITIONS = {
        WorkScheduleStatus.DRAFT.value: [WorkScheduleStatus.SUBMITTED.value],
        WorkScheduleStatus.SUBMITTED.value: [
            WorkScheduleStatus.REVIEWED.value,
            WorkScheduleStatus.REJECTED.value,
        ],
        WorkScheduleStatus.REVIEWED.value: [
            WorkScheduleStatus.APPROVED.value,
            WorkScheduleStatus.REJECTED.value,
        ],
        WorkScheduleStatus.REJECTED.value: [
            WorkScheduleStatus.SUBMITTED.value,
            WorkScheduleStatus.DRAFT.value,
        ],
        WorkScheduleStatus.APPROVED.value: [],
    }
    EDITABLE_STATUSES = [WorkScheduleStatus.DRAFT.value]

    def statuses_for_event(self, current_status, event):
        if event.event_type == StepEventType.REJECTED:
            return [WorkScheduleStatus.REJECTED.value]

        if event.event_type == StepEventType.COMPLETED:
            if current_status == WorkScheduleStatus.SUBMITTED.value:
                return [WorkScheduleStatus.REVIEWED.value, WorkScheduleStatus.APPROVED.value]
            return [WorkScheduleStatus.APPROVED.value]

        if event.event_type == StepEventType.ADVANCED and event.step_order == self.REVIEW_STEP_ORDER:
            return [WorkScheduleStatus.REVIEWED.value]

        return []


class ContractLifecycle(DocumentLifecycle):
    """
    DRAFT -> SENT_TO_EMPLOYEE -> SIGNED_BY_EMPLOYEE -> COMPLETED, with
    RETURNED_TO_ADMIN reachable from the employee-facing states. Step 1 of a
    contract instance is always the employee's signature.
    """

    document_type = DocumentType.CONTRACT
    EMPLOYEE_STEP_ORDER = 1

    STATUS_TRANSITIONS = {
        ContractStatus.DRAFT.value: [ContractStatus.SENT_TO_EMPLOYEE.value],
        ContractStatus.SENT_TO_EMPLOYEE.value: [
            ContractStatus.SIGNED_BY_EMPLOYEE.value,
            ContractStatus.RETURNED_TO_ADMIN.value,
        ],
        ContractStatus.SIGNED_BY_EMPLOYEE.value: [
            ContractStatus.COMPLETED.value,
            ContractStatus.RETURNED_TO_ADMIN.value,
        ],
        ContractStatus.RETURNED_TO_ADMIN.value: [
            ContractStatus.SENT_TO_EMPLOYEE.value,
            ContractStatus.DRAFT.value,
        ],
        ContractStatus.COMPLETED.value: [],
    }
    EDITABLE_STATUSES = [ContractStatus.DRAFT.value, ContractStatus.RETURNED_TO_ADMIN.value]

    def statuses_for_event(self, current_status, event):
        if event.event_type == StepEventType.REJECTED:
            return [ContractStatus.RETURNED_TO_ADMIN.value]

        if event.event_type == StepEventType.COMPLETED:
            if current_status == ContractStatus.SENT_TO_EMPLOYEE.value:
                return [ContractStatus.SIGNED_BY_EMPLOYEE.value, ContractStatus.COMPLETED.value]
            return [ContractStatus.COMPLETED.value]

        if event.event_type == StepEventType.ADVANCED and event.step_order == self.EMPLOYEE_STEP_ORDER:
            return [ContractStatus.SIGNED_BY_EMPLOYEE.value]

        return []


LIFECYCLES: Dict[DocumentType, DocumentLifecycle] = {
    DocumentType.WORK_SCHEDULE: WorkScheduleLifecycle(),
    DocumentType.CONTRACT: ContractLifecycle(),
}


def get_lifecycle(document_type: str) -> DocumentLifecycle:
    return LIFECYCLES[DocumentType(document_type)]
