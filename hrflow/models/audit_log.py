# =====================================================
# FILE: hrflow/models/audit_log.py
# Audit Log Model for tracking workflow actions
# =====================================================

from sqlalchemy import Column, String, Integer, DateTime, JSON
from datetime import datetime

from hrflow.core.database import Base


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    entity_type = Column(String(50), nullable=False)  # approval_line, work_schedule, contract
    entity_id = Column(String(100), nullable=False)
    action = Column(String(50), nullable=False)  # created, submitted, signed, final_approved, ...
    user_id = Column(String(50))
    details = Column(JSON)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
