import pytest

from hrflow.core.exceptions import (
    ApproverPickRequired,
    EmptyApprovalLine,
    NoCandidatesFound,
    StateConflictError,
    UnresolvedApprover,
    ValidationError,
    WorkflowCorruptionError,
)
from hrflow.models.approval_line import ApprovalLineStep
from hrflow.services.approval_instance_service import ApprovalInstanceService, plan_steps
from hrflow.services.approver_resolver import DocumentContext
from hrflow.services.step_tracker import check_integrity

WARD_CONTEXT = DocumentContext("WORK_SCHEDULE", "nurse1", "ICU")


def ward_line_steps():
    return [
        ("부서장 검토", "DEPARTMENT_HEAD", "head_icu", {}),
        ("인사 확인", "HR_STAFF", "hr1", {"is_optional": True}),
        ("대표원장 승인", "CEO_DIRECTOR", "ceo", {}),
    ]


@pytest.fixture
def service(db):
    return ApprovalInstanceService(db)


# =====================================================
# PLANNING
# =====================================================

def test_plan_steps_keeps_unset_optional_steps():
    steps = [
        ApprovalLineStep(step_order=1, is_optional=False),
        ApprovalLineStep(step_order=2, is_optional=True),
    ]
    assert [s.step_order for s in plan_steps(steps)] == [1, 2]
    assert [s.step_order for s in plan_steps(steps, {2: False})] == [1]


def test_plan_steps_ignores_exclusion_of_required_step():
    steps = [ApprovalLineStep(step_order=1, is_optional=False)]
    assert len(plan_steps(steps, {1: False})) == 1


def test_plan_steps_all_excluded():
    steps = [ApprovalLineStep(step_order=1, is_optional=True)]
    with pytest.raises(EmptyApprovalLine):
        plan_steps(steps, {1: False})


# =====================================================
# CONFIRMATION
# =====================================================

def test_excluded_optional_step_is_not_materialized(service, make_line):
    line = make_line("nurse1", ward_line_steps())
    instance = service.confirm(line.id, WARD_CONTEXT, document_id=11, inclusion={2: False})

    assert [s.step_order for s in instance.steps] == [1, 2]
    assert [s.approver_id for s in instance.steps] == ["head_icu", "ceo"]
    assert [s.is_current for s in instance.steps] == [True, False]
    assert all(not s.is_signed for s in instance.steps)
    check_integrity(instance)


def test_excluded_step_stays_excluded_after_reload(db, service, make_line):
    line = make_line("nurse1", ward_line_steps())
    instance = service.confirm(line.id, WARD_CONTEXT, document_id=12, inclusion={2: False})
    db.commit()
    db.expire_all()

    reloaded = service.get_instance(instance.id)
    assert len(reloaded.steps) == 2
    assert "HR_STAFF" not in [s.approver_type for s in reloaded.steps]


def test_included_optional_step_is_materialized(service, make_line):
    line = make_line("nurse1", ward_line_steps())
    instance = service.confirm(line.id, WARD_CONTEXT, document_id=13)
    assert [s.approver_id for s in instance.steps] == ["head_icu", "hr1", "ceo"]


def test_second_active_instance_is_refused(service, make_line):
    line = make_line("nurse1", ward_line_steps())
    service.confirm(line.id, WARD_CONTEXT, document_id=14)
    with pytest.raises(StateConflictError):
        service.confirm(line.id, WARD_CONTEXT, document_id=14)


def test_template_for_other_document_type_is_refused(service, make_line):
    line = make_line("nurse1", ward_line_steps(), document_type="CONTRACT")
    with pytest.raises(ValidationError):
        service.confirm(line.id, WARD_CONTEXT, document_id=15)


def test_role_without_design_time_pick_requires_choice(service, make_line):
    # the design-time approver is not in HR, so every HR member qualifies
    line = make_line("nurse1", [("인사 확인", "HR_STAFF", "center1", {})])

    with pytest.raises(ApproverPickRequired) as excinfo:
        service.confirm(line.id, WARD_CONTEXT, document_id=16)
    pending = excinfo.value.pending
    assert [p["step_order"] for p in pending] == [1]
    assert {c["user_id"] for c in pending[0]["candidates"]} == {"hr1", "hr2"}

    instance = service.confirm(line.id, WARD_CONTEXT, document_id=16, approver_picks={1: "hr2"})
    assert instance.steps[0].approver_id == "hr2"


def test_pick_outside_candidates_is_refused(service, make_line):
    line = make_line("nurse1", [("인사 확인", "HR_STAFF", "center1", {})])
    with pytest.raises(ValidationError):
        service.confirm(line.id, WARD_CONTEXT, document_id=17, approver_picks={1: "ceo"})


def test_substitute_pick(service, make_line):
    line = make_line("nurse1", [("대결", "SUBSTITUTE", None, {}), ("부서장", "DEPARTMENT_HEAD", "head_icu", {})])

    with pytest.raises(ApproverPickRequired):
        service.confirm(line.id, WARD_CONTEXT, document_id=18)
    with pytest.raises(ValidationError):
        service.confirm(line.id, WARD_CONTEXT, document_id=18, approver_picks={1: "nurse1"})
    with pytest.raises(ValidationError):
        service.confirm(line.id, WARD_CONTEXT, document_id=18, approver_picks={1: "retired"})

    instance = service.confirm(line.id, WARD_CONTEXT, document_id=18, approver_picks={1: "nurse2"})
    assert [s.approver_id for s in instance.steps] == ["nurse2", "head_icu"]


def test_inactive_specific_user_is_unresolved(service, make_line):
    line = make_line("nurse1", [("지정", "SPECIFIC_USER", "retired", {})])
    with pytest.raises(UnresolvedApprover):
        service.confirm(line.id, WARD_CONTEXT, document_id=19)


def test_role_with_nobody_in_scope(service, make_line):
    line = make_line("nurse1", [("부서장", "DEPARTMENT_HEAD", "head_icu", {"dept_code": "EXEC"})])
    with pytest.raises(NoCandidatesFound):
        service.confirm(line.id, WARD_CONTEXT, document_id=20)


def test_failed_confirmation_creates_nothing(service, make_line):
    line = make_line("nurse1", [("부서장", "DEPARTMENT_HEAD", "head_icu", {}), ("지정", "SPECIFIC_USER", "retired", {})])
    with pytest.raises(UnresolvedApprover):
        service.confirm(line.id, WARD_CONTEXT, document_id=21)
    assert service.get_active_instance("WORK_SCHEDULE", 21) is None


# =====================================================
# INTEGRITY
# =====================================================

def test_two_current_steps_is_corruption(service, make_line):
    line = make_line("nurse1", ward_line_steps())
    instance = service.confirm(line.id, WARD_CONTEXT, document_id=22)
    instance.steps[1].is_current = True

    with pytest.raises(WorkflowCorruptionError):
        check_integrity(instance)
    assert service.current_approver_ids(instance) == []


def test_gap_in_numbering_is_corruption(service, make_line):
    line = make_line("nurse1", ward_line_steps())
    instance = service.confirm(line.id, WARD_CONTEXT, document_id=23)
    instance.steps[2].step_order = 5

    with pytest.raises(WorkflowCorruptionError):
        check_integrity(instance)
