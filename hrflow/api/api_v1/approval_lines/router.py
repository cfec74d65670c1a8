# =====================================================
# FILE: hrflow/api/api_v1/approval_lines/router.py
# Approval Line Template API Routes
# =====================================================

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from hrflow.core.database import get_db
from hrflow.core.dependencies import get_current_user
from hrflow.models.user import User
from hrflow.services.approval_line_service import ApprovalLineService
from hrflow.api.api_v1.approval_lines.schemas import (
    ApprovalLineCreate,
    ApprovalLineResponse,
    ApprovalLineStepInsert,
    ApprovalLineUpdate,
    CandidateResponse,
    StepMoveRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/approval-lines", tags=["approval-lines"])


def _step_payloads(steps) -> List[dict]:
    return [step.dict() for step in steps]


# =====================================================
# QUERIES
# =====================================================

@router.get("", response_model=List[ApprovalLineResponse])
async def list_my_approval_lines(
    document_type: Optional[str] = Query(None),
    active_only: bool = Query(False),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Templates owned by the current user"""
    return ApprovalLineService(db).list_my_lines(current_user.user_id, document_type, active_only)


@router.get("/candidates", response_model=List[CandidateResponse])
async def list_approver_candidates(
    approver_type: str = Query(...),
    dept_code: Optional[str] = Query(None),
    job_level: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Who a role-based step would currently resolve to"""
    return ApprovalLineService(db).list_candidates(approver_type.upper(), dept_code, job_level)


@router.get("/by-document-type/{document_type}", response_model=List[ApprovalLineResponse])
async def list_selectable_approval_lines(
    document_type: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Active templates the current user can submit a document with"""
    return ApprovalLineService(db).list_by_document_type(document_type.upper(), current_user.user_id)


@router.get("/{line_id}", response_model=ApprovalLineResponse)
async def get_approval_line(
    line_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return ApprovalLineService(db).get_owned_line(line_id, current_user.user_id)


# =====================================================
# COMMANDS
# =====================================================

@router.post("", response_model=ApprovalLineResponse, status_code=status.HTTP_201_CREATED)
async def create_approval_line(
    payload: ApprovalLineCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    data = payload.dict()
    data["steps"] = _step_payloads(payload.steps)
    return ApprovalLineService(db).create_line(current_user.user_id, data)


@router.put("/{line_id}", response_model=ApprovalLineResponse)
async def update_approval_line(
    line_id: int,
    payload: ApprovalLineUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    data = payload.dict(exclude_unset=True)
    if payload.steps is not None:
        data["steps"] = _step_payloads(payload.steps)
    return ApprovalLineService(db).update_line(line_id, current_user.user_id, data)


@router.delete("/{line_id}")
async def delete_approval_line(
    line_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    ApprovalLineService(db).delete_line(line_id, current_user.user_id)
    return {"success": True, "message": "Approval line deleted", "id": line_id}


@router.post("/{line_id}/duplicate", response_model=ApprovalLineResponse, status_code=status.HTTP_201_CREATED)
async def duplicate_approval_line(
    line_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return ApprovalLineService(db).duplicate_line(line_id, current_user.user_id)


@router.patch("/{line_id}/toggle-active", response_model=ApprovalLineResponse)
async def toggle_approval_line(
    line_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return ApprovalLineService(db).toggle_active(line_id, current_user.user_id)


# ---------------------------
# Step editing
# ---------------------------

@router.post("/{line_id}/steps", response_model=ApprovalLineResponse)
async def add_approval_line_step(
    line_id: int,
    payload: ApprovalLineStepInsert,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    data = payload.dict(exclude={"position"})
    return ApprovalLineService(db).add_step(line_id, current_user.user_id, data, payload.position)


@router.delete("/{line_id}/steps/{step_order}", response_model=ApprovalLineResponse)
async def remove_approval_line_step(
    line_id: int,
    step_order: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return ApprovalLineService(db).remove_step(line_id, current_user.user_id, step_order)


@router.put("/{line_id}/steps/move", response_model=ApprovalLineResponse)
async def move_approval_line_step(
    line_id: int,
    payload: StepMoveRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return ApprovalLineService(db).move_step(line_id, current_user.user_id, payload.from_order, payload.to_order)
