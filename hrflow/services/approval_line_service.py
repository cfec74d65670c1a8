# =====================================================
# FILE: hrflow/services/approval_line_service.py
# Approval line templates: validation, CRUD and step re-sequencing
# =====================================================

from sqlalchemy.orm import Session
from datetime import datetime
from typing import Any, Dict, List, Optional
import logging

from hrflow.core.exceptions import AuthorizationError, NotFoundError, ValidationError
from hrflow.core.permissions import parse_job_level
from hrflow.models.approval_line import ApprovalLine, ApprovalLineStep
from hrflow.models.enums import ApproverType, DocumentType, TEMPLATE_APPROVER_TYPES
from hrflow.services.approver_resolver import Candidate, list_candidates
from hrflow.services.audit_service import AuditService
from hrflow.services.directory_service import DirectoryService

logger = logging.getLogger(__name__)

STEP_FIELDS = (
    "step_name",
    "approver_type",
    "approver_id",
    "job_level",
    "dept_code",
    "is_optional",
    "can_skip",
    "is_final_approval_available",
)


# =====================================================
# PURE STEP-LIST HELPERS
# =====================================================

def parse_document_type(value: Any) -> str:
    try:
        return DocumentType(value).value
    except ValueError:
        raise ValidationError(f"Unknown document type '{value}'")


def resequence(steps: List) -> List:
    """Renumber steps 1..n in their current list order"""
    for index, step in enumerate(steps, start=1):
        step.step_order = index
    return steps


def move_step(steps: List, from_order: int, to_order: int) -> List:
    """Move the step at position from_order to position to_order, then renumber"""
    ordered = sorted(steps, key=lambda s: s.step_order)
    count = len(ordered)
    if not 1 <= from_order <= count or not 1 <= to_order <= count:
        raise ValidationError(f"Step position must be between 1 and {count}")
    step = ordered.pop(from_order - 1)
    ordered.insert(to_order - 1, step)
    return resequence(ordered)


def validate_step_definitions(steps: List[Dict[str, Any]]) -> None:
    """
    Reject a malformed step list before anything is persisted.

    Raises:
        ValidationError: no steps, duplicate explicit stepOrder, unknown
            approver type, missing approver or job level
    """
    if not steps:
        raise ValidationError("An approval line needs at least one step")

    explicit_orders = [s.get("step_order") for s in steps if s.get("step_order") is not None]
    if len(explicit_orders) != len(set(explicit_orders)):
        raise ValidationError("Duplicate stepOrder in approval line")

    for position, step in enumerate(steps, start=1):
        label = step.get("step_order") or position
        if not (step.get("step_name") or "").strip():
            raise ValidationError(f"Step {label}: step name is required")

        approver_type = step.get("approver_type")
        if approver_type not in TEMPLATE_APPROVER_TYPES:
            raise ValidationError(f"Step {label}: unknown approver type '{approver_type}'")

        if approver_type != ApproverType.SUBSTITUTE and not step.get("approver_id"):
            raise ValidationError(f"Step {label}: approver is required")

        if approver_type == ApproverType.JOB_LEVEL and parse_job_level(step.get("job_level")) is None:
            raise ValidationError(f"Step {label}: job level is required for JOB_LEVEL steps")


def build_steps(steps: List[Dict[str, Any]]) -> List[ApprovalLineStep]:
    """
    Materialize step rows in submitted order.

    Explicit step_order values only decide the order; the stored numbering
    is always 1..n.
    """
    ordered = sorted(
        enumerate(steps),
        key=lambda pair: (pair[1].get("step_order") or pair[0] + 1, pair[0])
    )
    rows = []
    for _, data in ordered:
        rows.append(ApprovalLineStep(
            step_name=data["step_name"].strip(),
            approver_type=data["approver_type"],
            approver_id=data.get("approver_id") if data["approver_type"] != ApproverType.SUBSTITUTE else None,
            job_level=data.get("job_level"),
            dept_code=data.get("dept_code"),
            is_optional=bool(data.get("is_optional", False)),
            can_skip=bool(data.get("can_skip", False)),
            is_final_approval_available=bool(data.get("is_final_approval_available", False)),
        ))
    return resequence(rows)


# =====================================================
# SERVICE
# =====================================================

class ApprovalLineService:
    """
    Templates are owned by their creator. Editing a template never touches
    instances already created from it.
    """

    def __init__(self, db: Session):
        self.db = db
        self.audit = AuditService(db)
        self.directory = DirectoryService(db)

    # ---------------------------
    # Queries
    # ---------------------------

    def get_line(self, line_id: int) -> ApprovalLine:
        line = self.db.query(ApprovalLine).filter(ApprovalLine.id == line_id).first()
        if not line:
            raise NotFoundError(f"Approval line {line_id} not found")
        return line

    def get_owned_line(self, line_id: int, actor_id: str) -> ApprovalLine:
        line = self.get_line(line_id)
        if line.created_by != actor_id:
            raise AuthorizationError("Only the owner can modify this approval line")
        return line

    def list_my_lines(
        self,
        owner_id: str,
        document_type: Optional[str] = None,
        active_only: bool = False
    ) -> List[ApprovalLine]:
        query = self.db.query(ApprovalLine).filter(ApprovalLine.created_by == owner_id)
        if document_type:
            query = query.filter(ApprovalLine.document_type == parse_document_type(document_type))
        if active_only:
            query = query.filter(ApprovalLine.is_active.is_(True))
        return query.order_by(ApprovalLine.updated_at.desc(), ApprovalLine.id.desc()).all()

    def list_by_document_type(self, document_type: str, owner_id: str) -> List[ApprovalLine]:
        """Active templates a submitter can pick for a document type"""
        return self.list_my_lines(owner_id, document_type, active_only=True)

    def list_candidates(
        self,
        approver_type: str,
        dept_code: Optional[str] = None,
        job_level: Optional[str] = None
    ) -> List[Candidate]:
        if approver_type not in TEMPLATE_APPROVER_TYPES:
            raise ValidationError(f"Unknown approver type '{approver_type}'")
        return list_candidates(approver_type, self.directory, dept_code=dept_code, job_level=job_level)

    # ---------------------------
    # Commands
    # ---------------------------

    def create_line(self, actor_id: str, data: Dict[str, Any]) -> ApprovalLine:
        name = (data.get("name") or "").strip()
        if not name:
            raise ValidationError("Approval line name is required")
        document_type = parse_document_type(data.get("document_type"))
        steps = data.get("steps") or []
        validate_step_definitions(steps)

        line = ApprovalLine(
            name=name,
            description=data.get("description"),
            document_type=document_type,
            is_active=data.get("is_active", True),
            created_by=actor_id,
        )
        line.steps = build_steps(steps)
        self.db.add(line)
        self.db.flush()

        self.audit.log_action("created", "approval_line", line.id, actor_id, {"steps": len(line.steps)})
        logger.info(f"Approval line {line.id} '{name}' created by {actor_id} with {len(line.steps)} steps")
        return line

    def update_line(self, line_id: int, actor_id: str, data: Dict[str, Any]) -> ApprovalLine:
        line = self.get_owned_line(line_id, actor_id)

        if "name" in data and data["name"] is not None:
            name = data["name"].strip()
            if not name:
                raise ValidationError("Approval line name is required")
            line.name = name
        if "description" in data:
            line.description = data["description"]
        if data.get("document_type"):
            line.document_type = parse_document_type(data.get("document_type"))
        if data.get("is_active") is not None:
            line.is_active = bool(data["is_active"])
        if data.get("steps") is not None:
            validate_step_definitions(data["steps"])
            line.steps = build_steps(data["steps"])

        line.updated_at = datetime.utcnow()
        self.db.flush()
        self.audit.log_action("updated", "approval_line", line.id, actor_id)
        return line

    def delete_line(self, line_id: int, actor_id: str) -> None:
        line = self.get_owned_line(line_id, actor_id)
        self.db.delete(line)
        self.db.flush()
        self.audit.log_action("deleted", "approval_line", line_id, actor_id)
        logger.info(f"Approval line {line_id} deleted by {actor_id}")

    def duplicate_line(self, line_id: int, actor_id: str) -> ApprovalLine:
        source = self.get_owned_line(line_id, actor_id)
        copy = ApprovalLine(
            name=f"{source.name} (복사)",
            description=source.description,
            document_type=source.document_type,
            is_active=source.is_active,
            created_by=actor_id,
        )
        copy.steps = [
            ApprovalLineStep(step_order=step.step_order, **{f: getattr(step, f) for f in STEP_FIELDS})
            for step in source.steps
        ]
        self.db.add(copy)
        self.db.flush()
        self.audit.log_action("duplicated", "approval_line", copy.id, actor_id, {"source_id": line_id})
        return copy

    def toggle_active(self, line_id: int, actor_id: str) -> ApprovalLine:
        line = self.get_owned_line(line_id, actor_id)
        line.is_active = not line.is_active
        line.updated_at = datetime.utcnow()
        self.db.flush()
        self.audit.log_action(
            "activated" if line.is_active else "deactivated", "approval_line", line.id, actor_id
        )
        return line

    def add_step(
        self,
        line_id: int,
        actor_id: str,
        data: Dict[str, Any],
        position: Optional[int] = None
    ) -> ApprovalLine:
        """Insert a step at position (1-based, default last) and renumber"""
        line = self.get_owned_line(line_id, actor_id)
        validate_step_definitions([data])

        steps = list(line.steps)
        index = len(steps) if position is None else position - 1
        if not 0 <= index <= len(steps):
            raise ValidationError(f"Step position must be between 1 and {len(steps) + 1}")
        new_step = build_steps([{**data, "step_order": None}])[0]
        steps.insert(index, new_step)
        line.steps = resequence(steps)
        line.updated_at = datetime.utcnow()
        self.db.flush()
        return line

    def remove_step(self, line_id: int, actor_id: str, step_order: int) -> ApprovalLine:
        line = self.get_owned_line(line_id, actor_id)
        steps = list(line.steps)
        if len(steps) <= 1:
            raise ValidationError("An approval line needs at least one step")
        remaining = [s for s in steps if s.step_order != step_order]
        if len(remaining) == len(steps):
            raise NotFoundError(f"Step {step_order} not found in approval line {line_id}")
        line.steps = resequence(remaining)
        line.updated_at = datetime.utcnow()
        self.db.flush()
        return line

    def move_step(self, line_id: int, actor_id: str, from_order: int, to_order: int) -> ApprovalLine:
        line = self.get_owned_line(line_id, actor_id)
        line.steps = move_step(list(line.steps), from_order, to_order)
        line.updated_at = datetime.utcnow()
        self.db.flush()
        return line
