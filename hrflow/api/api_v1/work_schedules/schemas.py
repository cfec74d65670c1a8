"""
Work Schedule Pydantic Schemas
File: hrflow/api/api_v1/work_schedules/schemas.py
Description: Request models for the monthly shift grid and its approval
"""

from pydantic import BaseModel, Field, validator
from typing import Any, Dict, List, Optional

from hrflow.models.enums import DutyMode
from hrflow.utils.datetime_helpers import parse_year_month


# =====================================================
# SCHEDULE SCHEMAS
# =====================================================

class WorkScheduleCreate(BaseModel):
    dept_code: str = Field(..., min_length=1, max_length=20)
    schedule_year_month: str = Field(..., description="YYYY-MM")
    remarks: Optional[str] = None

    @validator('schedule_year_month')
    def validate_year_month(cls, v):
        v = v.strip()
        if len(v) != 7 or v[4] != "-":
            raise ValueError("schedule_year_month must look like YYYY-MM")
        parse_year_month(v)
        return v

    class Config:
        json_schema_extra = {
            "example": {"dept_code": "ICU", "schedule_year_month": "2025-03"}
        }


class EntryChange(BaseModel):
    """Buffered edits for one row; only fields that were sent are applied"""
    entry_id: int
    work_data: Optional[Dict[str, Any]] = None
    row_mode: Optional[str] = None
    long_text_value: Optional[str] = None
    position_id: Optional[str] = None
    display_order: Optional[int] = None
    night_duty_required: Optional[int] = Field(None, ge=0)
    vacation_total: Optional[float] = Field(None, ge=0)
    vacation_used_total: Optional[float] = Field(None, ge=0)
    remarks: Optional[str] = None


class ScheduleDraftPayload(BaseModel):
    remarks: Optional[str] = None
    entries: List[EntryChange] = []

    def schedule_changes(self) -> Dict[str, Any]:
        return self.dict(exclude_unset=True, include={"remarks"})

    def entry_changes(self) -> List[Dict[str, Any]]:
        return [entry.dict(exclude_unset=True) for entry in self.entries]


# =====================================================
# CELL EDITING
# =====================================================

class CellRef(BaseModel):
    entry_id: int
    day: int = Field(..., ge=1, le=31)


class ApplyCodeRequest(BaseModel):
    """Either entry_id + days, or a cell selection that must stay in one row"""
    code: Optional[str] = Field(None, max_length=10, description="Blank clears the cells")
    entry_id: Optional[int] = None
    days: List[int] = []
    cells: List[CellRef] = []

    @validator('days', each_item=True)
    def validate_day(cls, v):
        if v < 1 or v > 31:
            raise ValueError("Day must be between 1 and 31")
        return v


class ToggleRowModeRequest(BaseModel):
    text: Optional[str] = None


class AddMemberRequest(BaseModel):
    user_id: str = Field(..., min_length=1)


class DutyConfigUpdate(BaseModel):
    duty_mode: DutyMode = DutyMode.NIGHT_SHIFT
    display_name: Optional[str] = Field(None, max_length=50)
    cell_symbol: Optional[str] = Field(None, max_length=10)
    use_friday: bool = False
    use_holiday_sunday: bool = True


# =====================================================
# APPROVAL
# =====================================================

class SubmitRequest(BaseModel):
    approval_line_id: int
    inclusion: Dict[int, bool] = Field(default={}, description="Optional steps keyed by template stepOrder")
    approver_picks: Dict[int, str] = Field(default={}, description="Chosen approver keyed by template stepOrder")
    draft: Optional[ScheduleDraftPayload] = None


class SignStepRequest(BaseModel):
    step_order: int = Field(..., ge=1)
    signature_ref: Optional[str] = None


class UnsignStepRequest(BaseModel):
    step_order: int = Field(..., ge=1)


class ApproveStepRequest(BaseModel):
    approve: bool = True
    rejection_reason: Optional[str] = Field(None, max_length=500)


class FinalApproveRequest(BaseModel):
    signature_ref: Optional[str] = None
