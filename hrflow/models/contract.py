# =====================================================
# FILE: hrflow/models/contract.py
# Employment contract documents
# =====================================================

from sqlalchemy import Column, String, DateTime, Integer, ForeignKey, JSON
from datetime import datetime

from hrflow.core.database import Base


class EmploymentContract(Base):
    __tablename__ = "employment_contracts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    creator_id = Column(String(50), ForeignKey("users.user_id"), nullable=False)
    employee_id = Column(String(50), ForeignKey("users.user_id"), nullable=False)
    status = Column(String(30), nullable=False, default="DRAFT")
    form_data_json = Column(JSON, default=dict)
    rejection_reason = Column(String(500))
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    sent_at = Column(DateTime)
    completed_at = Column(DateTime)
