# =====================================================
# FILE: hrflow/models/__init__.py
# Model registry (imported by init_db before create_all)
# =====================================================

from hrflow.models.user import Department, User
from hrflow.models.approval_line import ApprovalLine, ApprovalLineStep
from hrflow.models.approval_instance import ApprovalInstance, ApprovalStepInstance
from hrflow.models.contract import EmploymentContract
from hrflow.models.work_schedule import WorkSchedule, WorkScheduleEntry, DeptDutyConfig
from hrflow.models.holiday import Holiday
from hrflow.models.audit_log import AuditLog

__all__ = [
    "Department",
    "User",
    "ApprovalLine",
    "ApprovalLineStep",
    "ApprovalInstance",
    "ApprovalStepInstance",
    "EmploymentContract",
    "WorkSchedule",
    "WorkScheduleEntry",
    "DeptDutyConfig",
    "Holiday",
    "AuditLog",
]
