# =====================================================
# FILE: hrflow/models/user.py
# Directory: departments and identities
# =====================================================

from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, Text, JSON
from sqlalchemy.orm import relationship
from datetime import datetime

from hrflow.core.database import Base


class Department(Base):
    __tablename__ = "departments"

    dept_code = Column(String(20), primary_key=True)
    dept_name = Column(String(100), nullable=False)
    center_code = Column(String(20))
    is_active = Column(Boolean, default=True)

    members = relationship("User", back_populates="department")


class User(Base):
    __tablename__ = "users"

    user_id = Column(String(50), primary_key=True)
    user_name = Column(String(100), nullable=False)
    email = Column(String(255))
    dept_code = Column(String(20), ForeignKey("departments.dept_code"))
    job_level = Column(String(2), default="0")  # "0".."6", see JobLevel
    role = Column(String(20), default="USER")  # USER | ADMIN
    permissions = Column(JSON, default=list)
    is_active = Column(Boolean, default=True)
    # Stored signature image reference (URL or data URI)
    signature_image = Column(Text)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    department = relationship("Department", back_populates="members")

    @property
    def dept_name(self):
        return self.department.dept_name if self.department else None
