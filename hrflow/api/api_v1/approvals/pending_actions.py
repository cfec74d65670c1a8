"""
Pending Actions API Router
File: hrflow/api/api_v1/approvals/pending_actions.py

Everything currently waiting on the signed-in user, across document types
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import Any, Dict
import logging

from hrflow.core.database import get_db
from hrflow.core.dependencies import get_current_user
from hrflow.core.exceptions import WorkflowCorruptionError
from hrflow.models.user import User
from hrflow.services.contract_service import ContractService
from hrflow.services.document_workflow import DocumentWorkflowService
from hrflow.services.work_schedule_service import WorkScheduleService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/pending-actions", tags=["pending-actions"])


def current_step_fields(service: DocumentWorkflowService, document_id: int) -> Dict[str, Any]:
    """Current step of one document; a corrupted instance only marks its own entry"""
    try:
        step = service.get_current_step(document_id)
    except WorkflowCorruptionError as e:
        logger.error(f"Pending actions: {service.document_type} {document_id} is corrupted: {e.message}")
        return {"step_order": None, "step_name": None, "integrity_error": e.message}
    return {
        "step_order": step.step_order if step else None,
        "step_name": step.step_name if step else None,
        "integrity_error": None,
    }


@router.get("")
async def get_pending_actions(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Documents whose current approval step is assigned to the current user"""
    pending_actions = []

    schedules = WorkScheduleService(db)
    for schedule in schedules.list_pending(current_user):
        pending_actions.append({
            "document_type": schedules.document_type,
            "document_id": schedule.id,
            "title": f"{schedule.dept_code} {schedule.schedule_year_month} 근무표",
            "status": schedule.status,
            **current_step_fields(schedules, schedule.id),
        })

    contracts = ContractService(db)
    for contract_id in contracts.instances.pending_document_ids(contracts.document_type, current_user.user_id):
        contract = contracts.get_document(contract_id)
        pending_actions.append({
            "document_type": contracts.document_type,
            "document_id": contract.id,
            "title": f"근로계약서 #{contract.id}",
            "status": contract.status,
            **current_step_fields(contracts, contract.id),
        })

    logger.info(f"{len(pending_actions)} pending actions for {current_user.user_id}")
    return {
        "success": True,
        "pending_actions": pending_actions,
        "total": len(pending_actions)
    }
