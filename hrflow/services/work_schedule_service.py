# =====================================================
# FILE: hrflow/services/work_schedule_service.py
# Work schedules: drafting, shift-grid editing, submission and approval
# =====================================================

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple
import logging

from hrflow.core.config import settings
from hrflow.core.exceptions import (
    AuthorizationError,
    NotFoundError,
    PreconditionError,
    StateConflictError,
    ValidationError,
)
from hrflow.core.permissions import is_org_admin
from hrflow.models.approval_instance import ApprovalInstance
from hrflow.models.enums import DocumentType, DutyMode, RowMode, WorkScheduleStatus
from hrflow.models.user import User
from hrflow.models.work_schedule import DeptDutyConfig, WorkSchedule, WorkScheduleEntry
from hrflow.services.approver_resolver import DocumentContext
from hrflow.services.document_workflow import DocumentWorkflowService
from hrflow.services.holiday_calendar import HolidayCalendar
from hrflow.services.schedule_draft import ScheduleDraft
from hrflow.services.shift_grid import (
    DUTY_BUCKET_LABELS,
    DutyRule,
    EntryTotals,
    FreeText,
    apply_code,
    check_consecutive_pattern,
    normalize_day_map,
    recompute,
    row_content,
    serialize_day_map,
    toggle_row_mode,
)
from hrflow.services.signature_store import SignatureStore
from hrflow.utils.datetime_helpers import days_in_month, format_datetime_to_iso, parse_year_month

logger = logging.getLogger(__name__)

DUTY_DISPLAY_NAMES = {
    DutyMode.NIGHT_SHIFT: "나이트",
    DutyMode.ON_CALL_DUTY: "당직",
}


def single_row_selection(cells: Iterable[Dict[str, int]]) -> Tuple[int, List[int]]:
    """
    Split a grid selection into (entry_id, days).

    Raises:
        ValidationError: empty selection or cells from more than one row
    """
    cells = list(cells)
    if not cells:
        raise ValidationError("No cells selected")
    entry_ids = {cell["entry_id"] for cell in cells}
    if len(entry_ids) > 1:
        raise ValidationError("A shift code can only be applied within one person's row")
    return entry_ids.pop(), sorted({cell["day"] for cell in cells})


class WorkScheduleService(DocumentWorkflowService):
    document_type = DocumentType.WORK_SCHEDULE.value

    def __init__(self, db: Session):
        super().__init__(db)
        self.calendar = HolidayCalendar(db)
        self.signatures = SignatureStore(db)

    # ---------------------------
    # Loading and access
    # ---------------------------

    def get_document(self, document_id: int) -> WorkSchedule:
        schedule = self.db.query(WorkSchedule).filter(WorkSchedule.id == document_id).first()
        if not schedule:
            raise NotFoundError(f"Work schedule {document_id} not found")
        return schedule

    def get_entry(self, schedule: WorkSchedule, entry_id: int) -> WorkScheduleEntry:
        for entry in schedule.entries:
            if entry.id == entry_id:
                return entry
        raise NotFoundError(f"Row {entry_id} is not part of work schedule {schedule.id}")

    def get_editable(self, schedule_id: int, actor_id: str) -> WorkSchedule:
        """Creator-only, DRAFT-only; checked against the stored schedule"""
        schedule = self.get_document(schedule_id)
        self.require_creator(schedule, actor_id)
        if not self.lifecycle.is_editable(schedule.status):
            raise StateConflictError(f"Work schedule is {schedule.status} and can no longer be edited")
        return schedule

    def can_view(self, schedule: WorkSchedule, viewer: User) -> bool:
        if schedule.created_by == viewer.user_id:
            return True
        if schedule.status == WorkScheduleStatus.DRAFT.value:
            return False

        instance = self.instances.get_latest_instance(self.document_type, schedule.id)
        if viewer.user_id in self.instances.current_approver_ids(instance):
            return True
        if schedule.status == WorkScheduleStatus.APPROVED.value:
            approvers = {s.approver_id for s in instance.steps} if instance else set()
            return viewer.dept_code == schedule.dept_code or viewer.user_id in approvers
        return False

    def get_visible(self, schedule_id: int, viewer: User) -> WorkSchedule:
        schedule = self.get_document(schedule_id)
        if not self.can_view(schedule, viewer):
            raise AuthorizationError("You do not have access to this work schedule")
        return schedule

    def max_day(self, schedule: WorkSchedule) -> int:
        year, month = parse_year_month(schedule.schedule_year_month)
        return days_in_month(year, month)

    # ---------------------------
    # Aggregation
    # ---------------------------

    def build_duty_rule(self, schedule: WorkSchedule) -> Optional[DutyRule]:
        config = schedule.duty_config
        if config is None:
            return None
        year, month = parse_year_month(schedule.schedule_year_month)
        return DutyRule(
            mode=DutyMode(config.duty_mode),
            symbol=config.cell_symbol or settings.DEFAULT_DUTY_SYMBOL,
            use_friday=bool(config.use_friday),
            use_holiday_sunday=bool(config.use_holiday_sunday),
            year=year,
            month=month,
            holidays=self.calendar.holiday_keys(year),
        )

    def compute_entry(self, entry: WorkScheduleEntry, rule: Optional[DutyRule]) -> EntryTotals:
        content = row_content(entry.row_mode, entry.work_data, entry.long_text_value)
        return recompute(content, entry.night_duty_required or 0, rule)

    def refresh_entry(self, entry: WorkScheduleEntry, rule: Optional[DutyRule]) -> EntryTotals:
        totals = self.compute_entry(entry, rule)
        entry.night_duty_actual = totals.night_duty_actual
        entry.night_duty_additional = totals.night_duty_additional
        entry.off_count = totals.off_count
        entry.vacation_used_this_month = totals.vacation_used_this_month
        entry.duty_detail = totals.duty_detail
        return totals

    def refresh_all(self, schedule: WorkSchedule) -> None:
        rule = self.build_duty_rule(schedule)
        for entry in schedule.entries:
            self.refresh_entry(entry, rule)

    # ---------------------------
    # Creation / deletion
    # ---------------------------

    def create_schedule(self, actor: User, dept_code: str, year_month: str, remarks: Optional[str] = None) -> WorkSchedule:
        try:
            parse_year_month(year_month)
        except ValueError as e:
            raise ValidationError(str(e))
        if actor.dept_code != dept_code and not is_org_admin(actor):
            raise AuthorizationError("You can only create work schedules for your own department")
        if self.instances.directory.get_department(dept_code) is None:
            raise NotFoundError(f"Department {dept_code} not found")

        exists = self.db.query(WorkSchedule).filter(
            WorkSchedule.dept_code == dept_code,
            WorkSchedule.schedule_year_month == year_month
        ).first()
        if exists:
            raise StateConflictError(f"A work schedule for {dept_code} {year_month} already exists")

        schedule = WorkSchedule(
            dept_code=dept_code,
            schedule_year_month=year_month,
            created_by=actor.user_id,
            status=WorkScheduleStatus.DRAFT.value,
            remarks=remarks,
        )
        members = self.instances.directory.list_department_members(dept_code)
        schedule.entries = [
            WorkScheduleEntry(user_id=member.user_id, display_order=index, work_data={})
            for index, member in enumerate(members)
        ]
        self.db.add(schedule)
        try:
            self.db.flush()
        except IntegrityError:
            raise StateConflictError(f"A work schedule for {dept_code} {year_month} already exists")

        self.audit.log_action("created", "work_schedule", schedule.id, actor.user_id,
                              {"dept_code": dept_code, "year_month": year_month})
        logger.info(f"Work schedule {schedule.id} created for {dept_code} {year_month} by {actor.user_id}")
        return schedule

    def delete_schedule(self, schedule_id: int, actor_id: str) -> None:
        schedule = self.get_editable(schedule_id, actor_id)
        self.instances.delete_for_document(self.document_type, schedule_id)
        self.db.delete(schedule)
        self.db.flush()
        self.audit.log_action("deleted", "work_schedule", schedule_id, actor_id)

    # ---------------------------
    # Editing
    # ---------------------------

    def save_draft(self, schedule_id: int, actor_id: str, draft: ScheduleDraft) -> WorkSchedule:
        """Commit a client's buffered edits; the last save wins per field"""
        schedule = self.get_editable(schedule_id, actor_id)
        if draft.schedule_id != schedule.id:
            raise ValidationError("Draft belongs to a different work schedule")

        for name, value in draft.schedule_changes.items():
            setattr(schedule, name, value)

        rule = self.build_duty_rule(schedule)
        for entry_id, entry_draft in draft.entries.items():
            entry = self.get_entry(schedule, entry_id)
            for name, value in entry_draft.changes.items():
                if name == "work_data":
                    # Day range is only known once the schedule month is known
                    value = serialize_day_map(normalize_day_map(value, self.max_day(schedule)))
                setattr(entry, name, value)
            self.refresh_entry(entry, rule)

        schedule.updated_at = datetime.utcnow()
        self.db.flush()
        logger.info(f"Work schedule {schedule.id} saved by {actor_id} ({len(draft.entries)} rows changed)")
        return schedule

    def apply_shift_code(
        self,
        schedule_id: int,
        actor_id: str,
        entry_id: int,
        days: List[int],
        code: Optional[str]
    ) -> WorkScheduleEntry:
        schedule = self.get_editable(schedule_id, actor_id)
        entry = self.get_entry(schedule, entry_id)
        if entry.row_mode == RowMode.FREE_TEXT.value:
            raise StateConflictError("Row is in free-text mode; switch it back before editing days")

        max_day = self.max_day(schedule)
        updated = apply_code(normalize_day_map(entry.work_data, max_day), days, code, max_day)
        entry.work_data = serialize_day_map(updated)
        self.refresh_entry(entry, self.build_duty_rule(schedule))
        self.db.flush()
        return entry

    def apply_shift_code_to_cells(
        self,
        schedule_id: int,
        actor_id: str,
        cells: List[Dict[str, int]],
        code: Optional[str]
    ) -> WorkScheduleEntry:
        entry_id, days = single_row_selection(cells)
        return self.apply_shift_code(schedule_id, actor_id, entry_id, days, code)

    def recompute_entry(self, schedule_id: int, actor_id: str, entry_id: int) -> EntryTotals:
        schedule = self.get_editable(schedule_id, actor_id)
        entry = self.get_entry(schedule, entry_id)
        totals = self.refresh_entry(entry, self.build_duty_rule(schedule))
        self.db.flush()
        return totals

    def toggle_row_mode(self, schedule_id: int, actor_id: str, entry_id: int, text: Optional[str] = None) -> WorkScheduleEntry:
        schedule = self.get_editable(schedule_id, actor_id)
        entry = self.get_entry(schedule, entry_id)
        stored_days = normalize_day_map(entry.work_data, self.max_day(schedule))
        current = row_content(entry.row_mode, entry.work_data, entry.long_text_value)

        toggled = toggle_row_mode(current, stored_days, text or "")
        if isinstance(toggled, FreeText):
            entry.row_mode = RowMode.FREE_TEXT.value
            entry.long_text_value = toggled.text
        else:
            entry.row_mode = RowMode.STRUCTURED.value
            entry.long_text_value = None
        self.refresh_entry(entry, self.build_duty_rule(schedule))
        self.db.flush()
        return entry

    def add_member(self, schedule_id: int, actor_id: str, user_id: str) -> WorkScheduleEntry:
        schedule = self.get_editable(schedule_id, actor_id)
        if self.instances.directory.get_identity(user_id) is None:
            raise NotFoundError(f"User {user_id} not found")
        if any(e.user_id == user_id for e in schedule.entries):
            raise StateConflictError(f"User {user_id} is already on this schedule")

        next_order = max((e.display_order or 0 for e in schedule.entries), default=-1) + 1
        entry = WorkScheduleEntry(user_id=user_id, display_order=next_order, work_data={})
        schedule.entries.append(entry)
        self.db.flush()
        return entry

    def remove_entry(self, schedule_id: int, actor_id: str, entry_id: int) -> None:
        schedule = self.get_editable(schedule_id, actor_id)
        entry = self.get_entry(schedule, entry_id)
        schedule.entries.remove(entry)
        self.db.flush()

    def update_duty_config(self, schedule_id: int, actor_id: str, data: Dict[str, Any]) -> DeptDutyConfig:
        schedule = self.get_editable(schedule_id, actor_id)
        mode = DutyMode(data.get("duty_mode") or DutyMode.NIGHT_SHIFT.value)

        config = schedule.duty_config or DeptDutyConfig()
        config.duty_mode = mode.value
        config.display_name = data.get("display_name") or DUTY_DISPLAY_NAMES[mode]
        config.cell_symbol = (data.get("cell_symbol") or settings.DEFAULT_DUTY_SYMBOL).strip().upper()
        config.use_friday = bool(data.get("use_friday", False))
        config.use_holiday_sunday = bool(data.get("use_holiday_sunday", True))
        schedule.duty_config = config

        self.refresh_all(schedule)
        self.db.flush()
        self.audit.log_action("duty_config_updated", "work_schedule", schedule.id, actor_id, {"duty_mode": mode.value})
        return config

    # ---------------------------
    # Creator signature and submission
    # ---------------------------

    def sign_creator(self, schedule_id: int, actor_id: str) -> WorkSchedule:
        schedule = self.get_editable(schedule_id, actor_id)
        schedule.creator_signature_url = self.signatures.require_signature_image(actor_id)
        schedule.creator_signed_at = datetime.utcnow()
        self.db.flush()
        self.audit.log_action("creator_signed", "work_schedule", schedule.id, actor_id)
        return schedule

    def unsign_creator(self, schedule_id: int, actor_id: str) -> WorkSchedule:
        schedule = self.get_editable(schedule_id, actor_id)
        schedule.creator_signature_url = None
        schedule.creator_signed_at = None
        self.db.flush()
        return schedule

    def submit(
        self,
        schedule_id: int,
        actor: User,
        approval_line_id: int,
        inclusion: Optional[Dict[int, bool]] = None,
        approver_picks: Optional[Dict[int, str]] = None,
        draft: Optional[ScheduleDraft] = None
    ) -> ApprovalInstance:
        """
        DRAFT -> SUBMITTED (or REJECTED -> SUBMITTED for a resubmission).

        Pending draft edits are committed first; the creator signature must be
        present before an approval instance is created.
        """
        schedule = self.get_document(schedule_id)
        self.require_creator(schedule, actor.user_id)
        self.lifecycle.require_transition(schedule.status, WorkScheduleStatus.SUBMITTED.value)

        if draft is not None and not draft.is_empty:
            self.save_draft(schedule_id, actor.user_id, draft)

        if not schedule.creator_signature_url:
            raise PreconditionError("제출 전에 작성자 서명이 필요합니다")

        self.refresh_all(schedule)
        context = DocumentContext(self.document_type, actor.user_id, schedule.dept_code)
        instance = self.instances.confirm(approval_line_id, context, schedule.id, inclusion, approver_picks)
        self.lifecycle.transition(schedule, WorkScheduleStatus.SUBMITTED.value)
        schedule.updated_at = datetime.utcnow()
        self.db.flush()

        self.audit.log_action("submitted", "work_schedule", schedule.id, actor.user_id, {"instance_id": instance.id})
        return instance

    def reopen(self, schedule_id: int, actor_id: str) -> WorkSchedule:
        """REJECTED -> DRAFT; the creator has to sign again after editing"""
        schedule = self.get_document(schedule_id)
        self.require_creator(schedule, actor_id)
        self.lifecycle.transition(schedule, WorkScheduleStatus.DRAFT.value)
        schedule.creator_signature_url = None
        schedule.creator_signed_at = None
        self.db.flush()
        self.audit.log_action("reopened", "work_schedule", schedule.id, actor_id)
        return schedule

    # ---------------------------
    # Listing and views
    # ---------------------------

    def list_schedules(
        self,
        viewer: User,
        year_month: Optional[str] = None,
        dept_code: Optional[str] = None
    ) -> List[WorkSchedule]:
        query = self.db.query(WorkSchedule)
        if year_month:
            query = query.filter(WorkSchedule.schedule_year_month == year_month)
        if dept_code:
            query = query.filter(WorkSchedule.dept_code == dept_code)
        schedules = query.order_by(WorkSchedule.schedule_year_month.desc(), WorkSchedule.id.desc()).all()
        return [s for s in schedules if self.can_view(s, viewer)]

    def list_pending(self, viewer: User) -> List[WorkSchedule]:
        ids = self.instances.pending_document_ids(self.document_type, viewer.user_id)
        if not ids:
            return []
        return self.db.query(WorkSchedule).filter(WorkSchedule.id.in_(ids)).order_by(WorkSchedule.id.desc()).all()

    def serialize_entry(self, entry: WorkScheduleEntry, names: Dict[str, str]) -> Dict[str, Any]:
        content = row_content(entry.row_mode, entry.work_data, entry.long_text_value)
        warnings = check_consecutive_pattern(content)
        return {
            "id": entry.id,
            "user_id": entry.user_id,
            "user_name": names.get(entry.user_id),
            "position_id": entry.position_id,
            "display_order": entry.display_order,
            "row_mode": entry.row_mode or RowMode.STRUCTURED.value,
            "work_data": entry.work_data or {},
            "long_text_value": entry.long_text_value,
            "night_duty_required": entry.night_duty_required or 0,
            "night_duty_actual": entry.night_duty_actual or 0,
            "night_duty_additional": entry.night_duty_additional or 0,
            "off_count": entry.off_count or 0,
            "vacation_total": entry.vacation_total or 0,
            "vacation_used_this_month": entry.vacation_used_this_month or 0,
            "vacation_used_total": entry.vacation_used_total or 0,
            "duty_detail": entry.duty_detail,
            "remarks": entry.remarks,
            "warnings": [w.message for w in warnings],
        }

    def summary(self, schedule: WorkSchedule) -> Dict[str, Any]:
        department = self.instances.directory.get_department(schedule.dept_code)
        return {
            "id": schedule.id,
            "dept_code": schedule.dept_code,
            "dept_name": department.dept_name if department else None,
            "schedule_year_month": schedule.schedule_year_month,
            "created_by": schedule.created_by,
            "status": schedule.status,
            "remarks": schedule.remarks,
            "creator_signature_url": schedule.creator_signature_url,
            "creator_signed_at": format_datetime_to_iso(schedule.creator_signed_at),
            "is_printable": schedule.status == WorkScheduleStatus.APPROVED.value,
            "created_at": format_datetime_to_iso(schedule.created_at),
            "updated_at": format_datetime_to_iso(schedule.updated_at),
        }

    def detail(self, schedule_id: int, viewer: User) -> Dict[str, Any]:
        schedule = self.get_visible(schedule_id, viewer)
        year, month = parse_year_month(schedule.schedule_year_month)

        user_ids = [e.user_id for e in schedule.entries]
        names = {
            u.user_id: u.user_name
            for u in self.db.query(User).filter(User.user_id.in_(user_ids)).all()
        } if user_ids else {}

        config = schedule.duty_config
        view = self.summary(schedule)
        view.update({
            "can_edit": schedule.created_by == viewer.user_id and self.lifecycle.is_editable(schedule.status),
            "days": self.calendar.month_layout(year, month),
            "duty_config": {
                "duty_mode": config.duty_mode,
                "display_name": config.display_name,
                "cell_symbol": config.cell_symbol,
                "use_friday": bool(config.use_friday),
                "use_holiday_sunday": bool(config.use_holiday_sunday),
            } if config else None,
            "duty_detail_labels": DUTY_BUCKET_LABELS,
            "entries": [self.serialize_entry(e, names) for e in schedule.entries],
            "approval": self.approval_view(schedule.id),
        })
        return view
