# =====================================================
# FILE: hrflow/api/api_v1/work_schedules/router.py
# Work Schedule API Routes
# =====================================================

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from dataclasses import asdict
from typing import Optional
import logging

from hrflow.core.database import get_db
from hrflow.core.dependencies import get_current_user
from hrflow.core.exceptions import ValidationError
from hrflow.models.user import User
from hrflow.services.document_workflow import serialize_step
from hrflow.services.schedule_draft import ScheduleDraft
from hrflow.services.step_tracker import StepEvent
from hrflow.services.work_schedule_service import WorkScheduleService
from hrflow.api.api_v1.work_schedules.schemas import (
    AddMemberRequest,
    ApplyCodeRequest,
    ApproveStepRequest,
    DutyConfigUpdate,
    FinalApproveRequest,
    ScheduleDraftPayload,
    SignStepRequest,
    SubmitRequest,
    ToggleRowModeRequest,
    UnsignStepRequest,
    WorkScheduleCreate,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/work-schedules", tags=["work-schedules"])


def event_response(service: WorkScheduleService, schedule_id: int, event: StepEvent) -> dict:
    schedule = service.get_document(schedule_id)
    return {
        "success": True,
        "event": event.event_type.value,
        "step_order": event.step_order,
        "status": schedule.status,
        "approval": service.approval_view(schedule_id),
    }


def build_draft(service: WorkScheduleService, schedule_id: int, payload: ScheduleDraftPayload) -> ScheduleDraft:
    schedule = service.get_document(schedule_id)
    return ScheduleDraft.from_payload(
        schedule_id,
        payload.entry_changes(),
        payload.schedule_changes(),
        max_day=service.max_day(schedule),
    )


# =====================================================
# SCHEDULES
# =====================================================

@router.post("", status_code=status.HTTP_201_CREATED)
async def create_work_schedule(
    payload: WorkScheduleCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    service = WorkScheduleService(db)
    schedule = service.create_schedule(
        current_user, payload.dept_code, payload.schedule_year_month, payload.remarks
    )
    return {"success": True, "schedule": service.detail(schedule.id, current_user)}


@router.get("")
async def list_work_schedules(
    year_month: Optional[str] = Query(None),
    dept_code: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    service = WorkScheduleService(db)
    schedules = service.list_schedules(current_user, year_month, dept_code)
    return {"success": True, "schedules": [service.summary(s) for s in schedules], "total": len(schedules)}


@router.get("/pending")
async def list_pending_work_schedules(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Schedules whose current approval step waits on the current user"""
    service = WorkScheduleService(db)
    schedules = service.list_pending(current_user)
    return {"success": True, "schedules": [service.summary(s) for s in schedules], "total": len(schedules)}


@router.get("/{schedule_id}")
async def get_work_schedule(
    schedule_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return {"success": True, "schedule": WorkScheduleService(db).detail(schedule_id, current_user)}


@router.delete("/{schedule_id}")
async def delete_work_schedule(
    schedule_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    WorkScheduleService(db).delete_schedule(schedule_id, current_user.user_id)
    return {"success": True, "message": "Work schedule deleted", "id": schedule_id}


@router.get("/{schedule_id}/history")
async def get_work_schedule_history(
    schedule_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    service = WorkScheduleService(db)
    service.get_visible(schedule_id, current_user)
    return {"success": True, "instances": service.approval_history(schedule_id)}


# =====================================================
# EDITING
# =====================================================

@router.put("/{schedule_id}/draft")
async def save_work_schedule_draft(
    schedule_id: int,
    payload: ScheduleDraftPayload,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    service = WorkScheduleService(db)
    draft = build_draft(service, schedule_id, payload)
    service.save_draft(schedule_id, current_user.user_id, draft)
    return {"success": True, "schedule": service.detail(schedule_id, current_user)}


@router.post("/{schedule_id}/apply-code")
async def apply_shift_code(
    schedule_id: int,
    payload: ApplyCodeRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    service = WorkScheduleService(db)
    if payload.cells:
        entry = service.apply_shift_code_to_cells(
            schedule_id, current_user.user_id, [c.dict() for c in payload.cells], payload.code
        )
    elif payload.entry_id is not None:
        entry = service.apply_shift_code(schedule_id, current_user.user_id, payload.entry_id, payload.days, payload.code)
    else:
        raise ValidationError("Select a row and at least one day")
    return {"success": True, "entry": service.serialize_entry(entry, {})}


@router.post("/{schedule_id}/entries/{entry_id}/recompute")
async def recompute_entry(
    schedule_id: int,
    entry_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    totals = WorkScheduleService(db).recompute_entry(schedule_id, current_user.user_id, entry_id)
    return {"success": True, "totals": asdict(totals)}


@router.post("/{schedule_id}/entries/{entry_id}/toggle-row-mode")
async def toggle_entry_row_mode(
    schedule_id: int,
    entry_id: int,
    payload: ToggleRowModeRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    service = WorkScheduleService(db)
    entry = service.toggle_row_mode(schedule_id, current_user.user_id, entry_id, payload.text)
    return {"success": True, "entry": service.serialize_entry(entry, {})}


@router.post("/{schedule_id}/members", status_code=status.HTTP_201_CREATED)
async def add_schedule_member(
    schedule_id: int,
    payload: AddMemberRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    service = WorkScheduleService(db)
    entry = service.add_member(schedule_id, current_user.user_id, payload.user_id)
    return {"success": True, "entry": service.serialize_entry(entry, {})}


@router.delete("/{schedule_id}/entries/{entry_id}")
async def remove_schedule_entry(
    schedule_id: int,
    entry_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    WorkScheduleService(db).remove_entry(schedule_id, current_user.user_id, entry_id)
    return {"success": True, "message": "Row removed", "entry_id": entry_id}


@router.put("/{schedule_id}/duty-config")
async def update_duty_config(
    schedule_id: int,
    payload: DutyConfigUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    service = WorkScheduleService(db)
    service.update_duty_config(schedule_id, current_user.user_id, payload.dict())
    return {"success": True, "schedule": service.detail(schedule_id, current_user)}


# =====================================================
# CREATOR SIGNATURE / SUBMISSION
# =====================================================

@router.post("/{schedule_id}/sign-creator")
async def sign_as_creator(
    schedule_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    service = WorkScheduleService(db)
    schedule = service.sign_creator(schedule_id, current_user.user_id)
    return {"success": True, "schedule": service.summary(schedule)}


@router.post("/{schedule_id}/unsign-creator")
async def unsign_as_creator(
    schedule_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    service = WorkScheduleService(db)
    schedule = service.unsign_creator(schedule_id, current_user.user_id)
    return {"success": True, "schedule": service.summary(schedule)}


@router.post("/{schedule_id}/submit")
async def submit_work_schedule(
    schedule_id: int,
    payload: SubmitRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    service = WorkScheduleService(db)
    draft = build_draft(service, schedule_id, payload.draft) if payload.draft else None
    service.submit(
        schedule_id,
        current_user,
        payload.approval_line_id,
        inclusion=payload.inclusion,
        approver_picks=payload.approver_picks,
        draft=draft,
    )
    return {"success": True, "schedule": service.detail(schedule_id, current_user)}


@router.post("/{schedule_id}/reopen")
async def reopen_work_schedule(
    schedule_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    service = WorkScheduleService(db)
    schedule = service.reopen(schedule_id, current_user.user_id)
    return {"success": True, "schedule": service.summary(schedule)}


# =====================================================
# APPROVAL STEPS
# =====================================================

@router.get("/{schedule_id}/current-step")
async def get_current_step(
    schedule_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    service = WorkScheduleService(db)
    service.get_visible(schedule_id, current_user)
    step = service.get_current_step(schedule_id)
    return {"success": True, "current_step": serialize_step(step) if step else None}


@router.post("/{schedule_id}/sign-step")
async def sign_approval_step(
    schedule_id: int,
    payload: SignStepRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    service = WorkScheduleService(db)
    event = service.sign_step(schedule_id, current_user.user_id, payload.step_order, payload.signature_ref)
    return event_response(service, schedule_id, event)


@router.post("/{schedule_id}/unsign-step")
async def unsign_approval_step(
    schedule_id: int,
    payload: UnsignStepRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    service = WorkScheduleService(db)
    event = service.unsign_step(schedule_id, current_user.user_id, payload.step_order)
    return event_response(service, schedule_id, event)


@router.post("/{schedule_id}/approve-step")
async def approve_or_reject_step(
    schedule_id: int,
    payload: ApproveStepRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    service = WorkScheduleService(db)
    event = service.act(schedule_id, current_user.user_id, payload.approve, payload.rejection_reason)
    return event_response(service, schedule_id, event)


@router.post("/{schedule_id}/final-approve")
async def final_approve_schedule(
    schedule_id: int,
    payload: FinalApproveRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    service = WorkScheduleService(db)
    event = service.final_approve(schedule_id, current_user.user_id, payload.signature_ref)
    return event_response(service, schedule_id, event)
