# =====================================================
# FILE: hrflow/models/approval_instance.py
# Per-document approval instances and their materialized steps
# =====================================================

from sqlalchemy import Column, String, Boolean, DateTime, Integer, ForeignKey, Text
from sqlalchemy.orm import relationship
from datetime import datetime

from hrflow.core.database import Base


class ApprovalInstance(Base):
    __tablename__ = "approval_instances"

    id = Column(Integer, primary_key=True, autoincrement=True)
    document_type = Column(String(30), nullable=False)
    document_id = Column(Integer, nullable=False, index=True)
    # Templates may be deleted later; the instance keeps its own copy of the steps
    template_id = Column(Integer, ForeignKey("approval_lines.id", ondelete="SET NULL"))
    status = Column(String(20), nullable=False, default="ACTIVE")  # ACTIVE | COMPLETED | REJECTED
    created_by = Column(String(50), ForeignKey("users.user_id"))
    final_approval_by = Column(String(50))
    created_at = Column(DateTime, default=datetime.utcnow)
    completed_at = Column(DateTime)
    rejected_at = Column(DateTime)

    steps = relationship(
        "ApprovalStepInstance",
        back_populates="instance",
        order_by="ApprovalStepInstance.step_order",
        cascade="all, delete-orphan"
    )


class ApprovalStepInstance(Base):
    __tablename__ = "approval_step_instances"

    id = Column(Integer, primary_key=True, autoincrement=True)
    instance_id = Column(Integer, ForeignKey("approval_instances.id", ondelete="CASCADE"), nullable=False)
    step_order = Column(Integer, nullable=False)
    step_name = Column(String(100))
    approver_type = Column(String(30))
    approver_id = Column(String(50), nullable=False)
    is_final_approval_available = Column(Boolean, default=False)
    is_current = Column(Boolean, default=False)
    is_signed = Column(Boolean, default=False)
    signature_ref = Column(Text)
    signed_at = Column(DateTime)
    approved_at = Column(DateTime)
    is_skipped = Column(Boolean, default=False)
    is_rejected = Column(Boolean, default=False)
    rejection_reason = Column(Text)
    rejected_at = Column(DateTime)
    rejected_by = Column(String(50))

    instance = relationship("ApprovalInstance", back_populates="steps")
