# =====================================================
# FILE: hrflow/api/api_v1/contracts/router.py
# Employment Contract API Routes
# =====================================================

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
import logging

from hrflow.core.database import get_db
from hrflow.core.dependencies import get_current_user
from hrflow.models.user import User
from hrflow.services.contract_service import ContractService
from hrflow.services.document_workflow import serialize_step
from hrflow.services.step_tracker import StepEvent
from hrflow.api.api_v1.contracts.schemas import (
    ContractCreate,
    ContractFormUpdate,
    ContractReturnRequest,
    ContractSendRequest,
    EmployeeSignRequest,
)
from hrflow.api.api_v1.work_schedules.schemas import (
    ApproveStepRequest,
    FinalApproveRequest,
    SignStepRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/employment-contract", tags=["employment-contracts"])


def event_response(service: ContractService, contract_id: int, event: StepEvent) -> dict:
    contract = service.get_document(contract_id)
    return {
        "success": True,
        "event": event.event_type.value,
        "step_order": event.step_order,
        "status": contract.status,
        "approval": service.approval_view(contract_id),
    }


# =====================================================
# LISTING
# =====================================================

@router.get("")
async def list_in_progress_contracts(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    service = ContractService(db)
    contracts = service.list_contracts(current_user, completed=False)
    return {"success": True, "contracts": [service.serialize(c, current_user) for c in contracts], "total": len(contracts)}


@router.get("/completed")
async def list_completed_contracts(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    service = ContractService(db)
    contracts = service.list_contracts(current_user, completed=True)
    return {"success": True, "contracts": [service.serialize(c, current_user) for c in contracts], "total": len(contracts)}


@router.get("/pending")
async def list_pending_contracts(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Contracts whose current step waits on the current user"""
    service = ContractService(db)
    ids = service.instances.pending_document_ids(service.document_type, current_user.user_id)
    contracts = [service.get_document(contract_id) for contract_id in ids]
    return {"success": True, "contracts": [service.serialize(c, current_user) for c in contracts], "total": len(contracts)}


@router.get("/{contract_id}")
async def get_contract(
    contract_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return {"success": True, "contract": ContractService(db).detail(contract_id, current_user)}


@router.get("/{contract_id}/signatures")
async def get_contract_signatures(
    contract_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return {"success": True, **ContractService(db).signatures_view(contract_id, current_user)}


@router.get("/{contract_id}/history")
async def get_contract_history(
    contract_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    service = ContractService(db)
    service.get_visible(contract_id, current_user)
    return {"success": True, "instances": service.approval_history(contract_id)}


# =====================================================
# DRAFTING
# =====================================================

@router.post("", status_code=status.HTTP_201_CREATED)
async def create_contract(
    payload: ContractCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    service = ContractService(db)
    contract = service.create_contract(current_user, payload.employee_id, payload.form_data_json)
    return {"success": True, "contract": service.serialize(contract, current_user)}


@router.put("/{contract_id}")
async def update_contract_form(
    contract_id: int,
    payload: ContractFormUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    service = ContractService(db)
    contract = service.update_form(contract_id, current_user.user_id, payload.form_data_json)
    return {"success": True, "contract": service.serialize(contract, current_user)}


@router.delete("/{contract_id}")
async def delete_contract(
    contract_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    ContractService(db).delete_contract(contract_id, current_user.user_id)
    return {"success": True, "message": "Contract deleted", "id": contract_id}


@router.put("/{contract_id}/reopen")
async def reopen_contract(
    contract_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    service = ContractService(db)
    contract = service.reopen(contract_id, current_user.user_id)
    return {"success": True, "contract": service.serialize(contract, current_user)}


# =====================================================
# WORKFLOW
# =====================================================

@router.put("/{contract_id}/send")
async def send_contract(
    contract_id: int,
    payload: ContractSendRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    service = ContractService(db)
    service.send(
        contract_id,
        current_user,
        payload.approval_line_id,
        inclusion=payload.inclusion,
        approver_picks=payload.approver_picks,
    )
    return {"success": True, "contract": service.detail(contract_id, current_user)}


@router.put("/{contract_id}/sign")
async def employee_sign_contract(
    contract_id: int,
    payload: EmployeeSignRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    service = ContractService(db)
    event = service.employee_sign(contract_id, current_user.user_id, payload.form_data_json)
    return event_response(service, contract_id, event)


@router.put("/{contract_id}/return")
async def return_contract(
    contract_id: int,
    payload: ContractReturnRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    service = ContractService(db)
    event = service.return_to_admin(contract_id, current_user.user_id, payload.reason)
    return event_response(service, contract_id, event)


@router.put("/{contract_id}/approve")
async def approve_contract(
    contract_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    service = ContractService(db)
    event = service.approve(contract_id, current_user.user_id)
    return event_response(service, contract_id, event)


# ---------------------------
# Generic step actions for template approvers
# ---------------------------

@router.get("/{contract_id}/current-step")
async def get_current_step(
    contract_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    service = ContractService(db)
    service.get_visible(contract_id, current_user)
    step = service.get_current_step(contract_id)
    return {"success": True, "current_step": serialize_step(step) if step else None}


@router.post("/{contract_id}/sign-step")
async def sign_contract_step(
    contract_id: int,
    payload: SignStepRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    service = ContractService(db)
    event = service.sign_step(contract_id, current_user.user_id, payload.step_order, payload.signature_ref)
    return event_response(service, contract_id, event)


@router.post("/{contract_id}/approve-step")
async def approve_or_reject_contract_step(
    contract_id: int,
    payload: ApproveStepRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    service = ContractService(db)
    event = service.act(contract_id, current_user.user_id, payload.approve, payload.rejection_reason)
    return event_response(service, contract_id, event)


@router.post("/{contract_id}/final-approve")
async def final_approve_contract(
    contract_id: int,
    payload: FinalApproveRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    service = ContractService(db)
    event = service.final_approve(contract_id, current_user.user_id, payload.signature_ref)
    return event_response(service, contract_id, event)
