import pytest

from hrflow.models.approval_instance import ApprovalInstance

API = "/api/v1"

SIGNED_FORM = {
    "signatures": {"page1": "data:image/png;base64,AAA"},
    "agreements": {"page1": "agree"},
}


@pytest.fixture
def schedule_id(client, as_user):
    response = client.post(
        f"{API}/work-schedules",
        json={"dept_code": "ICU", "schedule_year_month": "2025-03"},
        headers=as_user("nurse1"),
    )
    assert response.status_code == 201
    return response.json()["schedule"]["id"]


# =====================================================
# AUTHENTICATION / PLUMBING
# =====================================================

def test_missing_user_header(client):
    assert client.get(f"{API}/approval-lines").status_code == 401


def test_inactive_user_is_rejected(client, as_user):
    assert client.get(f"{API}/approval-lines", headers=as_user("retired")).status_code == 401


def test_health(client):
    body = client.get("/health").json()
    assert body["status"] == "healthy"
    assert body["database"] == "connected"


def test_process_time_header(client, as_user):
    response = client.get(f"{API}/approval-lines", headers=as_user("nurse1"))
    assert "X-Process-Time" in response.headers


# =====================================================
# APPROVAL LINES
# =====================================================

def test_create_and_list_approval_line(client, as_user):
    payload = {
        "name": "병동 결재선",
        "document_type": "WORK_SCHEDULE",
        "steps": [
            {"step_name": "대표원장", "approver_type": "ceo_director", "approver_id": "ceo", "step_order": 2},
            {"step_name": "부서장", "approver_type": "DEPARTMENT_HEAD", "approver_id": "head_icu", "step_order": 1},
        ],
    }
    response = client.post(f"{API}/approval-lines", json=payload, headers=as_user("nurse1"))
    assert response.status_code == 201
    body = response.json()
    assert [s["step_name"] for s in body["steps"]] == ["부서장", "대표원장"]
    assert body["steps"][1]["approver_type"] == "CEO_DIRECTOR"

    listed = client.get(
        f"{API}/approval-lines/by-document-type/WORK_SCHEDULE", headers=as_user("nurse1")
    ).json()
    assert [l["id"] for l in listed] == [body["id"]]


def test_other_users_line_is_forbidden(client, as_user, make_line):
    line = make_line("nurse1", [("부서장", "DEPARTMENT_HEAD", "head_icu", {})])
    response = client.delete(f"{API}/approval-lines/{line.id}", headers=as_user("nurse2"))
    assert response.status_code == 403
    assert response.json()["code"] == "AUTHORIZATION_ERROR"


def test_unknown_line_is_not_found(client, as_user):
    response = client.get(f"{API}/approval-lines/999", headers=as_user("nurse1"))
    assert response.status_code == 404
    assert response.json()["success"] is False


# =====================================================
# WORK SCHEDULES
# =====================================================

def test_submit_requires_creator_signature(client, as_user, make_line, schedule_id):
    line = make_line("nurse1", [("부서장", "DEPARTMENT_HEAD", "head_icu", {})])
    response = client.post(
        f"{API}/work-schedules/{schedule_id}/submit",
        json={"approval_line_id": line.id},
        headers=as_user("nurse1"),
    )
    assert response.status_code == 409
    assert response.json()["code"] == "PRECONDITION_FAILED"


def test_schedule_approval_over_http(client, as_user, make_line, schedule_id):
    line = make_line("nurse1", [("부서장", "DEPARTMENT_HEAD", "head_icu", {})])
    client.post(f"{API}/work-schedules/{schedule_id}/sign-creator", headers=as_user("nurse1"))
    response = client.post(
        f"{API}/work-schedules/{schedule_id}/submit",
        json={"approval_line_id": line.id},
        headers=as_user("nurse1"),
    )
    assert response.status_code == 200
    assert response.json()["schedule"]["status"] == "SUBMITTED"

    pending = client.get(f"{API}/pending-actions", headers=as_user("head_icu")).json()
    assert [(p["document_type"], p["document_id"], p["step_order"]) for p in pending["pending_actions"]] == [
        ("WORK_SCHEDULE", schedule_id, 1)
    ]

    refused = client.post(
        f"{API}/work-schedules/{schedule_id}/approve-step", json={"approve": True}, headers=as_user("ceo")
    )
    assert refused.status_code == 403

    unsigned = client.post(
        f"{API}/work-schedules/{schedule_id}/approve-step", json={"approve": True}, headers=as_user("head_icu")
    )
    assert unsigned.status_code == 409

    client.post(f"{API}/work-schedules/{schedule_id}/sign-step", json={"step_order": 1}, headers=as_user("head_icu"))
    approved = client.post(
        f"{API}/work-schedules/{schedule_id}/approve-step", json={"approve": True}, headers=as_user("head_icu")
    )
    assert approved.status_code == 200
    assert approved.json()["event"] == "COMPLETED"
    assert approved.json()["status"] == "APPROVED"


def test_refused_submission_leaves_schedule_in_draft(client, as_user, make_line, schedule_id):
    line = make_line("nurse1", [("인사 확인", "HR_STAFF", "center1", {})])
    client.post(f"{API}/work-schedules/{schedule_id}/sign-creator", headers=as_user("nurse1"))

    response = client.post(
        f"{API}/work-schedules/{schedule_id}/submit",
        json={"approval_line_id": line.id},
        headers=as_user("nurse1"),
    )
    assert response.status_code == 400
    body = response.json()
    assert body["code"] == "APPROVER_PICK_REQUIRED"
    assert body["details"]["pending"][0]["step_order"] == 1

    detail = client.get(f"{API}/work-schedules/{schedule_id}", headers=as_user("nurse1")).json()
    assert detail["schedule"]["status"] == "DRAFT"
    assert detail["schedule"]["approval"] is None

    picked = client.post(
        f"{API}/work-schedules/{schedule_id}/submit",
        json={"approval_line_id": line.id, "approver_picks": {"1": "hr2"}},
        headers=as_user("nurse1"),
    )
    assert picked.status_code == 200
    assert picked.json()["schedule"]["approval"]["steps"][0]["approver_id"] == "hr2"


def test_rejection_needs_reason(client, as_user, make_line, schedule_id):
    line = make_line("nurse1", [("부서장", "DEPARTMENT_HEAD", "head_icu", {})])
    client.post(f"{API}/work-schedules/{schedule_id}/sign-creator", headers=as_user("nurse1"))
    client.post(f"{API}/work-schedules/{schedule_id}/submit", json={"approval_line_id": line.id}, headers=as_user("nurse1"))

    response = client.post(
        f"{API}/work-schedules/{schedule_id}/approve-step", json={"approve": False}, headers=as_user("head_icu")
    )
    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"


def test_corrupted_instance_does_not_hide_other_pending_items(client, as_user, make_line, db):
    line = make_line("nurse1", [
        ("부서장 검토", "DEPARTMENT_HEAD", "head_icu", {}),
        ("센터장 확인", "CENTER_DIRECTOR", "center1", {}),
    ])
    ids = []
    for month in ("2025-03", "2025-04"):
        created = client.post(
            f"{API}/work-schedules",
            json={"dept_code": "ICU", "schedule_year_month": month},
            headers=as_user("nurse1"),
        )
        schedule_id = created.json()["schedule"]["id"]
        client.post(f"{API}/work-schedules/{schedule_id}/sign-creator", headers=as_user("nurse1"))
        submitted = client.post(
            f"{API}/work-schedules/{schedule_id}/submit",
            json={"approval_line_id": line.id},
            headers=as_user("nurse1"),
        )
        assert submitted.status_code == 200
        ids.append(schedule_id)
    broken_id, healthy_id = ids

    db.expire_all()
    broken = db.query(ApprovalInstance).filter(
        ApprovalInstance.document_type == "WORK_SCHEDULE",
        ApprovalInstance.document_id == broken_id
    ).one()
    for step in broken.steps:
        step.is_current = True
    db.commit()

    response = client.get(f"{API}/pending-actions", headers=as_user("head_icu"))
    assert response.status_code == 200
    items = {p["document_id"]: p for p in response.json()["pending_actions"]}
    assert set(items) == {broken_id, healthy_id}
    assert items[healthy_id]["step_order"] == 1
    assert items[healthy_id]["integrity_error"] is None
    assert items[broken_id]["step_order"] is None
    assert items[broken_id]["integrity_error"]


def test_unknown_row_mode_in_draft_is_a_validation_error(client, as_user, schedule_id):
    detail = client.get(f"{API}/work-schedules/{schedule_id}", headers=as_user("nurse1")).json()
    entry_id = detail["schedule"]["entries"][0]["id"]

    response = client.put(
        f"{API}/work-schedules/{schedule_id}/draft",
        json={"entries": [{"entry_id": entry_id, "row_mode": "longText"}]},
        headers=as_user("nurse1"),
    )
    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"


def test_bad_year_month_is_unprocessable(client, as_user):
    response = client.post(
        f"{API}/work-schedules",
        json={"dept_code": "ICU", "schedule_year_month": "2025-13"},
        headers=as_user("nurse1"),
    )
    assert response.status_code == 422


# =====================================================
# CONTRACTS
# =====================================================

def test_contract_flow_over_http(client, as_user):
    created = client.post(
        f"{API}/employment-contract",
        json={"employee_id": "nurse2", "form_data_json": {"salary": {"base": 3000000}}},
        headers=as_user("hr1"),
    )
    assert created.status_code == 201
    contract_id = created.json()["contract"]["id"]

    assert client.get(f"{API}/employment-contract/{contract_id}", headers=as_user("nurse2")).status_code == 403

    sent = client.put(f"{API}/employment-contract/{contract_id}/send", json={}, headers=as_user("hr1"))
    assert sent.json()["contract"]["status"] == "SENT_TO_EMPLOYEE"

    pending = client.get(f"{API}/pending-actions", headers=as_user("nurse2")).json()
    assert [p["document_type"] for p in pending["pending_actions"]] == ["CONTRACT"]

    signed = client.put(
        f"{API}/employment-contract/{contract_id}/sign",
        json={"form_data_json": SIGNED_FORM},
        headers=as_user("nurse2"),
    )
    assert signed.json()["status"] == "SIGNED_BY_EMPLOYEE"

    completed = client.put(f"{API}/employment-contract/{contract_id}/approve", headers=as_user("hr1"))
    assert completed.json()["status"] == "COMPLETED"

    listed = client.get(f"{API}/employment-contract/completed", headers=as_user("nurse2")).json()
    assert [c["id"] for c in listed["contracts"]] == [contract_id]


def test_contract_requires_signatures(client, as_user):
    contract_id = client.post(
        f"{API}/employment-contract", json={"employee_id": "nurse2"}, headers=as_user("hr1")
    ).json()["contract"]["id"]
    client.put(f"{API}/employment-contract/{contract_id}/send", json={}, headers=as_user("hr1"))

    response = client.put(
        f"{API}/employment-contract/{contract_id}/sign",
        json={"form_data_json": {"agreements": {"page1": "agree"}}},
        headers=as_user("nurse2"),
    )
    assert response.status_code == 422


def test_contract_return_without_reason(client, as_user):
    contract_id = client.post(
        f"{API}/employment-contract", json={"employee_id": "nurse2"}, headers=as_user("hr1")
    ).json()["contract"]["id"]
    client.put(f"{API}/employment-contract/{contract_id}/send", json={}, headers=as_user("hr1"))

    response = client.put(f"{API}/employment-contract/{contract_id}/return", json={}, headers=as_user("nurse2"))
    assert response.status_code == 400

    returned = client.put(
        f"{API}/employment-contract/{contract_id}/return",
        json={"reason": "근무 시간 오기재"},
        headers=as_user("nurse2"),
    )
    assert returned.json()["status"] == "RETURNED_TO_ADMIN"


def test_non_admin_cannot_create_contract(client, as_user):
    response = client.post(f"{API}/employment-contract", json={"employee_id": "nurse2"}, headers=as_user("nurse1"))
    assert response.status_code == 403
