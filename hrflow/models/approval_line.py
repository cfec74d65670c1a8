# =====================================================
# FILE: hrflow/models/approval_line.py
# Approval line templates and their step definitions
# =====================================================

from sqlalchemy import Column, String, Boolean, DateTime, Integer, ForeignKey, Text
from sqlalchemy.orm import relationship
from datetime import datetime

from hrflow.core.database import Base


class ApprovalLine(Base):
    __tablename__ = "approval_lines"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    description = Column(Text)
    document_type = Column(String(30), nullable=False, index=True)  # CONTRACT | WORK_SCHEDULE
    is_active = Column(Boolean, default=True)
    created_by = Column(String(50), ForeignKey("users.user_id"), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    steps = relationship(
        "ApprovalLineStep",
        back_populates="line",
        order_by="ApprovalLineStep.step_order",
        cascade="all, delete-orphan"
    )


class ApprovalLineStep(Base):
    __tablename__ = "approval_line_steps"

    id = Column(Integer, primary_key=True, autoincrement=True)
    line_id = Column(Integer, ForeignKey("approval_lines.id", ondelete="CASCADE"), nullable=False)
    step_order = Column(Integer, nullable=False)
    step_name = Column(String(100), nullable=False)
    approver_type = Column(String(30), nullable=False)
    approver_id = Column(String(50))
    job_level = Column(String(2))
    dept_code = Column(String(20))
    is_optional = Column(Boolean, default=False)
    can_skip = Column(Boolean, default=False)
    is_final_approval_available = Column(Boolean, default=False)

    line = relationship("ApprovalLine", back_populates="steps")
