import pytest

from hrflow.core.exceptions import StateConflictError
from hrflow.services.document_lifecycle import ContractLifecycle, WorkScheduleLifecycle, get_lifecycle
from hrflow.services.step_tracker import StepEvent, StepEventType


class FakeDocument:
    def __init__(self, status):
        self.id = 1
        self.status = status


def event(event_type, step_order=1):
    return StepEvent(event_type, step_order, "someone")


@pytest.mark.parametrize("current,new,allowed", [
    ("DRAFT", "SUBMITTED", True),
    ("DRAFT", "APPROVED", False),
    ("SUBMITTED", "REVIEWED", True),
    ("SUBMITTED", "APPROVED", False),
    ("REVIEWED", "APPROVED", True),
    ("REVIEWED", "REJECTED", True),
    ("REJECTED", "SUBMITTED", True),
    ("REJECTED", "DRAFT", True),
    ("APPROVED", "DRAFT", False),
])
def test_work_schedule_transitions(current, new, allowed):
    assert WorkScheduleLifecycle().validate_status_transition(current, new) is allowed


@pytest.mark.parametrize("current,new,allowed", [
    ("DRAFT", "SENT_TO_EMPLOYEE", True),
    ("SENT_TO_EMPLOYEE", "SIGNED_BY_EMPLOYEE", True),
    ("SENT_TO_EMPLOYEE", "RETURNED_TO_ADMIN", True),
    ("SIGNED_BY_EMPLOYEE", "COMPLETED", True),
    ("RETURNED_TO_ADMIN", "SENT_TO_EMPLOYEE", True),
    ("DRAFT", "COMPLETED", False),
    ("COMPLETED", "RETURNED_TO_ADMIN", False),
])
def test_contract_transitions(current, new, allowed):
    assert ContractLifecycle().validate_status_transition(current, new) is allowed


def test_review_step_advance_marks_reviewed():
    document = FakeDocument("SUBMITTED")
    assert WorkScheduleLifecycle().apply_event(document, event(StepEventType.ADVANCED, 1)) == "REVIEWED"
    assert document.status == "REVIEWED"


def test_later_advance_keeps_status():
    document = FakeDocument("REVIEWED")
    assert WorkScheduleLifecycle().apply_event(document, event(StepEventType.ADVANCED, 2)) is None
    assert document.status == "REVIEWED"


def test_single_step_completion_walks_through_reviewed():
    document = FakeDocument("SUBMITTED")
    WorkScheduleLifecycle().apply_event(document, event(StepEventType.COMPLETED, 1))
    assert document.status == "APPROVED"


def test_signing_does_not_move_the_document():
    document = FakeDocument("SUBMITTED")
    assert WorkScheduleLifecycle().apply_event(document, event(StepEventType.SIGNED)) is None
    assert document.status == "SUBMITTED"


def test_rejection_moves_schedule_to_rejected():
    document = FakeDocument("REVIEWED")
    WorkScheduleLifecycle().apply_event(document, event(StepEventType.REJECTED, 2))
    assert document.status == "REJECTED"


def test_contract_rejection_returns_to_admin():
    document = FakeDocument("SIGNED_BY_EMPLOYEE")
    ContractLifecycle().apply_event(document, event(StepEventType.REJECTED, 2))
    assert document.status == "RETURNED_TO_ADMIN"


def test_contract_employee_step_advance():
    document = FakeDocument("SENT_TO_EMPLOYEE")
    ContractLifecycle().apply_event(document, event(StepEventType.ADVANCED, 1))
    assert document.status == "SIGNED_BY_EMPLOYEE"


def test_illegal_transition_raises():
    with pytest.raises(StateConflictError):
        WorkScheduleLifecycle().transition(FakeDocument("APPROVED"), "DRAFT")


def test_only_draft_schedules_are_editable():
    lifecycle = get_lifecycle("WORK_SCHEDULE")
    assert lifecycle.is_editable("DRAFT")
    assert not lifecycle.is_editable("SUBMITTED")
    assert get_lifecycle("CONTRACT").is_editable("RETURNED_TO_ADMIN")
