# =====================================================
# FILE: hrflow/services/approver_resolver.py
# Approver resolution: step definition -> concrete identities
# =====================================================

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union
import logging

from hrflow.core.config import settings
from hrflow.core.exceptions import NoCandidatesFound, UnresolvedApprover
from hrflow.core.permissions import JobLevel, get_job_level_label, parse_job_level
from hrflow.models.enums import ApproverType
from hrflow.services.directory_service import DirectoryService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DocumentContext:
    document_type: str
    owner_id: str
    dept_code: Optional[str] = None


@dataclass(frozen=True)
class Candidate:
    user_id: str
    user_name: str
    dept_code: Optional[str] = None
    dept_name: Optional[str] = None
    job_level: Optional[str] = None
    job_level_label: str = ""

    @classmethod
    def from_user(cls, user) -> "Candidate":
        return cls(
            user_id=user.user_id,
            user_name=user.user_name,
            dept_code=user.dept_code,
            dept_name=user.dept_name,
            job_level=user.job_level,
            job_level_label=get_job_level_label(user.job_level),
        )


@dataclass(frozen=True)
class ResolvedApprovers:
    """One candidate means resolved; several means the submitter picks one."""
    step_order: int
    candidates: List[Candidate] = field(default_factory=list)

    @property
    def is_unique(self) -> bool:
        return len(self.candidates) == 1

    @property
    def approver(self) -> Optional[Candidate]:
        return self.candidates[0] if self.is_unique else None

    def contains(self, user_id: str) -> bool:
        return any(c.user_id == user_id for c in self.candidates)


@dataclass(frozen=True)
class RequiresManualPick:
    """The document owner must supply an identity at submission time."""
    step_order: int
    approver_type: str


Resolution = Union[ResolvedApprovers, RequiresManualPick]


# =====================================================
# RESOLVERS
# =====================================================

class ApproverResolver:
    def resolve(self, step, context: DocumentContext, directory: DirectoryService) -> Resolution:
        raise NotImplementedError


class SpecificUserResolver(ApproverResolver):
    def resolve(self, step, context, directory):
        user = directory.get_identity(step.approver_id)
        if user is None:
            raise UnresolvedApprover(step.step_order, step.approver_id)
        return ResolvedApprovers(step.step_order, [Candidate.from_user(user)])


class SubstituteResolver(ApproverResolver):
    def resolve(self, step, context, directory):
        return RequiresManualPick(step.step_order, ApproverType.SUBSTITUTE.value)


class RoleResolver(ApproverResolver):
    """
    Role-based steps: every active identity matching the role in scope.

    The identity chosen at design time wins while it still qualifies.
    """

    approver_type: ApproverType

    def find(self, step, context: DocumentContext, directory: DirectoryService) -> List:
        raise NotImplementedError

    def resolve(self, step, context, directory):
        candidates = [Candidate.from_user(u) for u in self.find(step, context, directory)]
        if not candidates:
            raise NoCandidatesFound(step.step_order, self.approver_type.value)

        preferred = [c for c in candidates if c.user_id == step.approver_id]
        if preferred:
            return ResolvedApprovers(step.step_order, preferred)
        return ResolvedApprovers(step.step_order, candidates)


class JobLevelResolver(RoleResolver):
    approver_type = ApproverType.JOB_LEVEL

    def find(self, step, context, directory):
        level = parse_job_level(step.job_level)
        if level is None:
            return []
        return directory.list_by_job_level(level, step.dept_code)


class FixedLevelResolver(RoleResolver):
    """Director-style roles: a fixed job level, optionally scoped to a department"""

    def __init__(self, approver_type: ApproverType, level: JobLevel, use_document_department: bool = False):
        self.approver_type = approver_type
        self.level = level
        self.use_document_department = use_document_department

    def find(self, step, context, directory):
        dept_code = step.dept_code
        if not dept_code and self.use_document_department:
            dept_code = context.dept_code
        return directory.list_by_job_level(self.level, dept_code)


class HrStaffResolver(RoleResolver):
    approver_type = ApproverType.HR_STAFF

    def find(self, step, context, directory):
        return directory.list_department_members(settings.HR_DEPT_CODE)


APPROVER_RESOLVERS: Dict[ApproverType, ApproverResolver] = {
    ApproverType.SPECIFIC_USER: SpecificUserResolver(),
    ApproverType.SUBSTITUTE: SubstituteResolver(),
    ApproverType.JOB_LEVEL: JobLevelResolver(),
    ApproverType.DEPARTMENT_HEAD: FixedLevelResolver(
        ApproverType.DEPARTMENT_HEAD, JobLevel.DEPARTMENT_HEAD, use_document_department=True
    ),
    ApproverType.HR_STAFF: HrStaffResolver(),
    ApproverType.CENTER_DIRECTOR: FixedLevelResolver(ApproverType.CENTER_DIRECTOR, JobLevel.CENTER_DIRECTOR),
    ApproverType.ADMIN_DIRECTOR: FixedLevelResolver(ApproverType.ADMIN_DIRECTOR, JobLevel.ADMIN_DIRECTOR),
    ApproverType.CEO_DIRECTOR: FixedLevelResolver(ApproverType.CEO_DIRECTOR, JobLevel.CEO_DIRECTOR),
}


def resolve(step, context: DocumentContext, directory: DirectoryService) -> Resolution:
    """
    Resolve one step definition. Pure read; raises UnresolvedApprover or
    NoCandidatesFound when nobody can take the step.
    """
    resolver = APPROVER_RESOLVERS.get(step.approver_type)
    if resolver is None:
        raise UnresolvedApprover(step.step_order)
    return resolver.resolve(step, context, directory)


@dataclass(frozen=True)
class StepProbe:
    """Minimal step definition used when listing candidates outside a template"""
    approver_type: str
    step_order: int = 0
    approver_id: Optional[str] = None
    dept_code: Optional[str] = None
    job_level: Optional[str] = None


def list_candidates(
    approver_type: str,
    directory: DirectoryService,
    dept_code: Optional[str] = None,
    job_level: Optional[str] = None,
    context: Optional[DocumentContext] = None
) -> List[Candidate]:
    """
    Candidate identities for the template editor's approver picker.

    Substitutes and specific users are picked freely, so this only answers
    for role-based types; an empty list is a valid answer here.
    """
    resolver = APPROVER_RESOLVERS.get(approver_type)
    if not isinstance(resolver, RoleResolver):
        return []
    probe = StepProbe(approver_type=approver_type, dept_code=dept_code, job_level=job_level)
    context = context or DocumentContext(document_type="", owner_id="")
    return [Candidate.from_user(u) for u in resolver.find(probe, context, directory)]

