# =====================================================
# FILE: hrflow/models/enums.py
# Shared status and type enumerations
# =====================================================

from enum import Enum


class DocumentType(str, Enum):
    CONTRACT = "CONTRACT"
    WORK_SCHEDULE = "WORK_SCHEDULE"


class ApproverType(str, Enum):
    SPECIFIC_USER = "SPECIFIC_USER"
    SUBSTITUTE = "SUBSTITUTE"
    JOB_LEVEL = "JOB_LEVEL"
    DEPARTMENT_HEAD = "DEPARTMENT_HEAD"
    HR_STAFF = "HR_STAFF"
    CENTER_DIRECTOR = "CENTER_DIRECTOR"
    ADMIN_DIRECTOR = "ADMIN_DIRECTOR"
    CEO_DIRECTOR = "CEO_DIRECTOR"
    # Implicit contract step, never authored in a template
    EMPLOYEE = "EMPLOYEE"
    # Implicit confirmation step for contracts sent without a template
    CREATOR = "CREATOR"


TEMPLATE_APPROVER_TYPES = [
    ApproverType.SPECIFIC_USER,
    ApproverType.SUBSTITUTE,
    ApproverType.JOB_LEVEL,
    ApproverType.DEPARTMENT_HEAD,
    ApproverType.HR_STAFF,
    ApproverType.CENTER_DIRECTOR,
    ApproverType.ADMIN_DIRECTOR,
    ApproverType.CEO_DIRECTOR,
]


class InstanceStatus(str, Enum):
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    REJECTED = "REJECTED"


class WorkScheduleStatus(str, Enum):
    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    REVIEWED = "REVIEWED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class ContractStatus(str, Enum):
    DRAFT = "DRAFT"
    SENT_TO_EMPLOYEE = "SENT_TO_EMPLOYEE"
    SIGNED_BY_EMPLOYEE = "SIGNED_BY_EMPLOYEE"
    RETURNED_TO_ADMIN = "RETURNED_TO_ADMIN"
    COMPLETED = "COMPLETED"


class DutyMode(str, Enum):
    NIGHT_SHIFT = "NIGHT_SHIFT"
    ON_CALL_DUTY = "ON_CALL_DUTY"


class RowMode(str, Enum):
    STRUCTURED = "STRUCTURED"
    FREE_TEXT = "FREE_TEXT"
