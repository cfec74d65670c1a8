import pytest

from hrflow.core.exceptions import (
    AuthorizationError,
    NotFoundError,
    StateConflictError,
    ValidationError,
)
from hrflow.services.contract_service import FORM_SIGNATURE_REF, ContractService

SIGNED_FORM = {
    "signatures": {"page1": "data:image/png;base64,AAA", "page4_final": "data:image/png;base64,BBB"},
    "agreements": {"page1": "agree", "page2": "disagree"},
}


@pytest.fixture
def service(db):
    return ContractService(db)


@pytest.fixture
def contract(service, user):
    return service.create_contract(user("hr1"), "nurse2", {"salary": {"base": 3000000}})


# =====================================================
# DRAFTING
# =====================================================

def test_only_org_admin_creates(service, user):
    with pytest.raises(AuthorizationError):
        service.create_contract(user("nurse1"), "nurse2")


def test_unknown_employee(service, user):
    with pytest.raises(NotFoundError):
        service.create_contract(user("hr1"), "retired")


def test_update_form_in_draft(service, contract):
    service.update_form(contract.id, "hr1", {"salary": {"base": 3200000}})
    assert contract.form_data_json == {"salary": {"base": 3200000}}
    with pytest.raises(AuthorizationError):
        service.update_form(contract.id, "hr2", {})


def test_delete_only_drafts(service, contract, user):
    with pytest.raises(AuthorizationError):
        service.delete_contract(contract.id, "hr2")
    service.send(contract.id, user("hr1"))
    with pytest.raises(StateConflictError):
        service.delete_contract(contract.id, "hr1")


def test_deleting_reopened_contract_drops_its_approval_history(service, contract, user):
    service.send(contract.id, user("hr1"))
    service.return_to_admin(contract.id, "nurse2", "연봉 금액 확인 필요")
    service.reopen(contract.id, "hr1")
    assert contract.status == "DRAFT"

    service.delete_contract(contract.id, "hr1")
    assert service.instances.list_history("CONTRACT", contract.id) == []


# =====================================================
# SIGNING FLOW
# =====================================================

def test_send_without_template_adds_creator_confirmation(service, contract, user):
    instance = service.send(contract.id, user("hr1"))

    assert contract.status == "SENT_TO_EMPLOYEE"
    assert contract.sent_at is not None
    assert [(s.approver_type, s.approver_id) for s in instance.steps] == [
        ("EMPLOYEE", "nurse2"),
        ("CREATOR", "hr1"),
    ]
    with pytest.raises(StateConflictError):
        service.update_form(contract.id, "hr1", {})


def test_full_signing_flow(service, contract, user):
    instance = service.send(contract.id, user("hr1"))

    service.employee_sign(contract.id, "nurse2", SIGNED_FORM)
    assert contract.status == "SIGNED_BY_EMPLOYEE"
    assert contract.form_data_json["salary"] == {"base": 3000000}
    assert contract.form_data_json["agreements"]["page2"] == "disagree"
    assert instance.steps[0].signature_ref == FORM_SIGNATURE_REF

    service.approve(contract.id, "hr1")
    assert contract.status == "COMPLETED"
    assert contract.completed_at is not None
    assert instance.status == "COMPLETED"
    assert instance.steps[1].signature_ref == "sig://hr1"


def test_only_named_employee_signs(service, contract, user):
    service.send(contract.id, user("hr1"))
    with pytest.raises(AuthorizationError):
        service.employee_sign(contract.id, "nurse1", SIGNED_FORM)


def test_creator_cannot_confirm_before_employee(service, contract, user):
    service.send(contract.id, user("hr1"))
    with pytest.raises(AuthorizationError):
        service.approve(contract.id, "hr1")


def test_return_and_resend(service, contract, user):
    first = service.send(contract.id, user("hr1"))

    with pytest.raises(ValidationError):
        service.return_to_admin(contract.id, "nurse2", " ")
    with pytest.raises(ValidationError):
        service.return_to_admin(contract.id, "nurse2", "x" * 501)

    service.return_to_admin(contract.id, "nurse2", "연봉 금액 확인 필요")
    assert contract.status == "RETURNED_TO_ADMIN"
    assert contract.rejection_reason == "연봉 금액 확인 필요"
    assert first.status == "REJECTED"

    service.update_form(contract.id, "hr1", {"salary": {"base": 3100000}})
    second = service.send(contract.id, user("hr1"))
    assert second.id != first.id
    assert contract.status == "SENT_TO_EMPLOYEE"
    assert contract.rejection_reason is None


def test_admin_can_return_after_employee_signed(service, contract, user):
    service.send(contract.id, user("hr1"))
    service.employee_sign(contract.id, "nurse2", SIGNED_FORM)
    service.return_to_admin(contract.id, "hr1", "서명 누락 페이지 있음")
    assert contract.status == "RETURNED_TO_ADMIN"


def test_send_with_contract_approval_line(service, contract, make_line, user):
    line = make_line("hr1", [("센터장 승인", "CENTER_DIRECTOR", "center1", {})], document_type="CONTRACT")
    instance = service.send(contract.id, user("hr1"), approval_line_id=line.id)
    assert [s.approver_id for s in instance.steps] == ["nurse2", "center1"]

    service.employee_sign(contract.id, "nurse2", SIGNED_FORM)
    service.approve(contract.id, "center1")
    assert contract.status == "COMPLETED"


def test_work_schedule_line_cannot_send_contract(service, contract, make_line, user):
    line = make_line("hr1", [("센터장 승인", "CENTER_DIRECTOR", "center1", {})])
    with pytest.raises(ValidationError):
        service.send(contract.id, user("hr1"), approval_line_id=line.id)
    assert contract.status == "DRAFT"


# =====================================================
# VISIBILITY AND LISTS
# =====================================================

def test_visibility_follows_status(service, contract, user):
    assert not service.can_view(contract, user("nurse2"))

    service.send(contract.id, user("hr1"))
    assert service.can_view(contract, user("nurse2"))
    assert not service.can_view(contract, user("hr2"))

    service.employee_sign(contract.id, "nurse2", SIGNED_FORM)
    service.approve(contract.id, "hr1")
    assert service.can_view(contract, user("nurse2"))
    assert not service.can_view(contract, user("hr2"))


def test_in_progress_and_completed_lists(service, contract, user):
    service.send(contract.id, user("hr1"))
    assert [c.id for c in service.list_contracts(user("nurse2"))] == [contract.id]
    assert service.list_contracts(user("nurse2"), completed=True) == []

    service.employee_sign(contract.id, "nurse2", SIGNED_FORM)
    service.approve(contract.id, "hr1")
    assert service.list_contracts(user("nurse2")) == []
    assert [c.id for c in service.list_contracts(user("nurse2"), completed=True)] == [contract.id]
    assert service.list_contracts(user("hr2"), completed=True) == []


def test_signatures_view(service, contract, user):
    service.send(contract.id, user("hr1"))
    service.employee_sign(contract.id, "nurse2", SIGNED_FORM)
    view = service.signatures_view(contract.id, user("hr1"))
    assert view["signatures"] == SIGNED_FORM["signatures"]
    assert view["agreements"] == SIGNED_FORM["agreements"]
