# =====================================================
# FILE: hrflow/models/work_schedule.py
# Monthly work schedules, per-person rows and duty configuration
# =====================================================

from sqlalchemy import (
    Column, String, Boolean, DateTime, Integer, Float, ForeignKey, Text, JSON, UniqueConstraint
)
from sqlalchemy.orm import relationship
from datetime import datetime

from hrflow.core.database import Base


class WorkSchedule(Base):
    __tablename__ = "work_schedules"
    __table_args__ = (
        UniqueConstraint("dept_code", "schedule_year_month", name="uq_work_schedule_dept_month"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    dept_code = Column(String(20), ForeignKey("departments.dept_code"), nullable=False)
    schedule_year_month = Column(String(7), nullable=False)  # YYYY-MM
    created_by = Column(String(50), ForeignKey("users.user_id"), nullable=False)
    status = Column(String(20), nullable=False, default="DRAFT")
    remarks = Column(Text)
    creator_signature_url = Column(Text)
    creator_signed_at = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    entries = relationship(
        "WorkScheduleEntry",
        back_populates="schedule",
        order_by="WorkScheduleEntry.display_order",
        cascade="all, delete-orphan"
    )
    duty_config = relationship(
        "DeptDutyConfig",
        back_populates="schedule",
        uselist=False,
        cascade="all, delete-orphan"
    )


class WorkScheduleEntry(Base):
    __tablename__ = "work_schedule_entries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    schedule_id = Column(Integer, ForeignKey("work_schedules.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(String(50), ForeignKey("users.user_id"), nullable=False)
    position_id = Column(String(50))
    display_order = Column(Integer, default=0)
    # {"1": "D", "2": "N", ...}; JSON object keys are day numbers as strings
    work_data = Column(JSON, default=dict)
    row_mode = Column(String(20), default="STRUCTURED")  # STRUCTURED | FREE_TEXT
    long_text_value = Column(Text)
    night_duty_required = Column(Integer, default=0)
    night_duty_actual = Column(Integer, default=0)
    night_duty_additional = Column(Integer, default=0)
    off_count = Column(Integer, default=0)
    vacation_total = Column(Float, default=0)
    vacation_used_this_month = Column(Float, default=0)
    vacation_used_total = Column(Float, default=0)
    duty_detail = Column(JSON)
    remarks = Column(Text)

    schedule = relationship("WorkSchedule", back_populates="entries")


class DeptDutyConfig(Base):
    __tablename__ = "dept_duty_configs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    schedule_id = Column(Integer, ForeignKey("work_schedules.id", ondelete="CASCADE"), nullable=False, unique=True)
    duty_mode = Column(String(20), nullable=False, default="NIGHT_SHIFT")
    display_name = Column(String(50), default="나이트")
    cell_symbol = Column(String(10), default="N")
    use_friday = Column(Boolean, default=False)
    use_holiday_sunday = Column(Boolean, default=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    schedule = relationship("WorkSchedule", back_populates="duty_config")
