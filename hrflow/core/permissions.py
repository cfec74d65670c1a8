# =====================================================
# FILE: hrflow/core/permissions.py
# Job Levels and Organisational Permission Checks
# =====================================================

from enum import Enum, IntEnum
from typing import Dict, Optional

from hrflow.core.config import settings


class JobLevel(IntEnum):
    STAFF = 0
    DEPARTMENT_HEAD = 1
    CENTER_DIRECTOR = 2
    DIRECTOR = 3
    ADMIN_DIRECTOR = 4
    CEO_DIRECTOR = 5
    SYSTEM_ADMIN = 6


JOB_LEVEL_LABELS: Dict[JobLevel, str] = {
    JobLevel.STAFF: "직원",
    JobLevel.DEPARTMENT_HEAD: "부서장",
    JobLevel.CENTER_DIRECTOR: "진료센터장",
    JobLevel.DIRECTOR: "원장",
    JobLevel.ADMIN_DIRECTOR: "행정원장",
    JobLevel.CEO_DIRECTOR: "대표원장",
    JobLevel.SYSTEM_ADMIN: "Admin",
}


class Role(str, Enum):
    USER = "USER"
    ADMIN = "ADMIN"


def parse_job_level(value) -> Optional[JobLevel]:
    """Job levels are stored as short strings ("0".."6") in the directory"""
    if value is None or value == "":
        return None
    try:
        return JobLevel(int(value))
    except (TypeError, ValueError):
        return None


def get_job_level_label(value) -> str:
    level = parse_job_level(value)
    return JOB_LEVEL_LABELS.get(level, "") if level is not None else ""


def is_org_admin(user) -> bool:
    """
    Organisational admin: ADMIN role with job level at or above the configured
    minimum, or a staff/department-head level ADMIN holding the HR contract permission.
    """
    if (user.role or "").upper() != Role.ADMIN.value:
        return False

    level = parse_job_level(user.job_level)
    if level is None:
        return False
    if level >= settings.ORG_ADMIN_MIN_JOB_LEVEL:
        return True
    if level in (JobLevel.STAFF, JobLevel.DEPARTMENT_HEAD):
        return settings.HR_CONTRACT_PERMISSION in set(user.permissions or [])
    return False
