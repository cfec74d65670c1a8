"""
Approval Line Pydantic Schemas
File: hrflow/api/api_v1/approval_lines/schemas.py
Description: Request/response models for approval line templates
"""

from pydantic import BaseModel, Field, validator
from typing import List, Optional
from datetime import datetime

from hrflow.models.enums import DocumentType


# =====================================================
# STEP SCHEMAS
# =====================================================

class ApprovalLineStepCreate(BaseModel):
    """One step of a template; step_order only decides the order, storage renumbers 1..n"""
    step_order: Optional[int] = Field(None, ge=1, description="Requested position (1-based)")
    step_name: str = Field(..., min_length=1, max_length=100)
    approver_type: str = Field(..., description="SPECIFIC_USER, SUBSTITUTE, JOB_LEVEL, DEPARTMENT_HEAD, ...")
    approver_id: Optional[str] = Field(None, description="Designated user id; not used for SUBSTITUTE")
    job_level: Optional[str] = Field(None, max_length=2)
    dept_code: Optional[str] = Field(None, max_length=20)
    is_optional: bool = False
    can_skip: bool = False
    is_final_approval_available: bool = False

    @validator('step_name')
    def validate_step_name(cls, v):
        if not v or v.strip() == "":
            raise ValueError("Step name cannot be empty")
        return v.strip()

    @validator('approver_type')
    def normalize_approver_type(cls, v):
        return v.strip().upper()

    class Config:
        json_schema_extra = {
            "example": {
                "step_order": 1,
                "step_name": "부서장 검토",
                "approver_type": "DEPARTMENT_HEAD",
                "approver_id": "kim01",
                "is_optional": False
            }
        }


class ApprovalLineStepInsert(ApprovalLineStepCreate):
    position: Optional[int] = Field(None, ge=1, description="Insert position; default appends")


class StepMoveRequest(BaseModel):
    from_order: int = Field(..., ge=1)
    to_order: int = Field(..., ge=1)


class ApprovalLineStepResponse(BaseModel):
    id: int
    step_order: int
    step_name: str
    approver_type: str
    approver_id: Optional[str] = None
    job_level: Optional[str] = None
    dept_code: Optional[str] = None
    is_optional: bool = False
    can_skip: bool = False
    is_final_approval_available: bool = False

    class Config:
        from_attributes = True


# =====================================================
# APPROVAL LINE SCHEMAS
# =====================================================

class ApprovalLineCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    document_type: DocumentType
    is_active: bool = True
    steps: List[ApprovalLineStepCreate] = Field(..., description="At least one step")

    @validator('name')
    def validate_name(cls, v):
        if not v or v.strip() == "":
            raise ValueError("Name cannot be empty")
        return v.strip()


class ApprovalLineUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    document_type: Optional[DocumentType] = None
    is_active: Optional[bool] = None
    steps: Optional[List[ApprovalLineStepCreate]] = None


class ApprovalLineResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    document_type: str
    is_active: bool = True
    created_by: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    steps: List[ApprovalLineStepResponse] = []

    class Config:
        from_attributes = True


class CandidateResponse(BaseModel):
    user_id: str
    user_name: str
    dept_code: Optional[str] = None
    dept_name: Optional[str] = None
    job_level: Optional[str] = None
    job_level_label: str = ""

    class Config:
        from_attributes = True
