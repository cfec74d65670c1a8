# =====================================================
# FILE: hrflow/models/holiday.py
# Public holiday calendar
# =====================================================

from sqlalchemy import Column, String, Date, Integer

from hrflow.core.database import Base


class Holiday(Base):
    __tablename__ = "holidays"

    id = Column(Integer, primary_key=True, autoincrement=True)
    holiday_date = Column(Date, nullable=False, unique=True, index=True)
    name = Column(String(100))
