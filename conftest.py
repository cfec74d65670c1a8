"""
Shared pytest fixtures: in-memory SQLite database seeded with a small
hospital organisation (one ward, HR, executives).
"""

import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("LOG_LEVEL", "WARNING")

from datetime import date

import pytest
from fastapi.testclient import TestClient

from hrflow.core.database import Base, SessionLocal, engine
from hrflow.models import ApprovalLine, ApprovalLineStep, Department, Holiday, User


USERS = [
    # user_id, name, dept, job level, role, permissions, signature
    ("nurse1", "김간호", "ICU", "0", "USER", [], "sig://nurse1"),
    ("nurse2", "이간호", "ICU", "0", "USER", [], None),
    ("head_icu", "박수간", "ICU", "1", "USER", [], "sig://head_icu"),
    ("hr1", "최인사", "HR", "0", "ADMIN", ["HR_CONTRACT"], "sig://hr1"),
    ("hr2", "정인사", "HR", "0", "USER", [], "sig://hr2"),
    ("center1", "한센터", "EXEC", "2", "USER", [], "sig://center1"),
    ("admin_dir", "오행정", "EXEC", "4", "USER", [], "sig://admin_dir"),
    ("ceo", "윤대표", "EXEC", "5", "USER", [], "sig://ceo"),
]


def seed_organization(session):
    session.add_all([
        Department(dept_code="ICU", dept_name="중환자실"),
        Department(dept_code="HR", dept_name="인사팀"),
        Department(dept_code="EXEC", dept_name="경영진"),
    ])
    for user_id, name, dept, level, role, permissions, signature in USERS:
        session.add(User(
            user_id=user_id,
            user_name=name,
            dept_code=dept,
            job_level=level,
            role=role,
            permissions=permissions,
            signature_image=signature,
            is_active=True,
        ))
    session.add(User(user_id="retired", user_name="퇴사자", dept_code="ICU", job_level="0", is_active=False))
    session.add_all([
        Holiday(holiday_date=date(2025, 3, 1), name="삼일절"),
        Holiday(holiday_date=date(2025, 3, 3), name="대체공휴일"),
    ])


@pytest.fixture
def db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    seed_organization(session)
    session.commit()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def client(db):
    from hrflow.main import app

    return TestClient(app)


@pytest.fixture
def as_user():
    def headers(user_id):
        return {"X-User-Id": user_id}
    return headers


@pytest.fixture
def make_line(db):
    """Persist an approval line owned by ``owner`` from (name, type, approver, extra) tuples"""
    def factory(owner, steps, document_type="WORK_SCHEDULE", name="기본 결재선"):
        line = ApprovalLine(name=name, document_type=document_type, is_active=True, created_by=owner)
        line.steps = [
            ApprovalLineStep(
                step_order=order,
                step_name=step_name,
                approver_type=approver_type,
                approver_id=approver_id,
                **extra
            )
            for order, (step_name, approver_type, approver_id, extra) in enumerate(steps, start=1)
        ]
        db.add(line)
        db.commit()
        return line
    return factory


@pytest.fixture
def user(db):
    def lookup(user_id):
        return db.query(User).filter(User.user_id == user_id).first()
    return lookup
