"""
Employment Contract Pydantic Schemas
File: hrflow/api/api_v1/contracts/schemas.py
Description: Request models for employment contract drafting and signing
"""

from pydantic import BaseModel, Field, validator
from typing import Any, Dict, Optional


class ContractCreate(BaseModel):
    employee_id: str = Field(..., min_length=1, description="Employee the contract is written for")
    form_data_json: Dict[str, Any] = {}


class ContractFormUpdate(BaseModel):
    form_data_json: Dict[str, Any] = Field(..., description="Full contract form; replaces the stored one")


class ContractSendRequest(BaseModel):
    """Without approval_line_id the creator confirms after the employee signs"""
    approval_line_id: Optional[int] = None
    inclusion: Dict[int, bool] = {}
    approver_picks: Dict[int, str] = {}


class EmployeeSignRequest(BaseModel):
    form_data_json: Dict[str, Any] = Field(..., description="Must carry signatures and agreements")

    @validator('form_data_json')
    def validate_signatures(cls, v):
        if not isinstance(v.get("signatures"), dict) or not v["signatures"]:
            raise ValueError("signatures are required")
        agreements = v.get("agreements") or {}
        for page, answer in agreements.items():
            if answer not in ("agree", "disagree", ""):
                raise ValueError(f"Invalid agreement value for {page}")
        return v

    class Config:
        json_schema_extra = {
            "example": {
                "form_data_json": {
                    "signatures": {"page1": "data:image/png;base64,...", "page4_final": "data:image/png;base64,..."},
                    "agreements": {"page1": "agree"}
                }
            }
        }


class ContractReturnRequest(BaseModel):
    reason: Optional[str] = Field(None, description="Why the contract goes back to the administrator")
