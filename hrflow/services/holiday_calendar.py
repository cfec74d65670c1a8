# =====================================================
# FILE: hrflow/services/holiday_calendar.py
# Holiday calendar and per-day calendar styling
# =====================================================

from sqlalchemy.orm import Session
from datetime import date
from typing import Dict, List, Set, Tuple

from hrflow.models.holiday import Holiday
from hrflow.utils.datetime_helpers import WEEKDAY_NAMES_KO, month_dates


class HolidayCalendar:
    def __init__(self, db: Session):
        self.db = db

    def list_holidays(self, year: int) -> List[Dict[str, int]]:
        rows = self.db.query(Holiday).filter(
            Holiday.holiday_date >= date(year, 1, 1),
            Holiday.holiday_date <= date(year, 12, 31)
        ).order_by(Holiday.holiday_date).all()
        return [
            {"month": row.holiday_date.month, "day": row.holiday_date.day, "name": row.name}
            for row in rows
        ]

    def holiday_keys(self, year: int) -> Set[Tuple[int, int]]:
        return {(h["month"], h["day"]) for h in self.list_holidays(year)}

    def month_layout(self, year: int, month: int) -> List[Dict]:
        """Weekday name and weekend/holiday flags for every day of a month"""
        holidays = self.holiday_keys(year)
        layout = []
        for current in month_dates(year, month):
            weekday = current.weekday()
            layout.append({
                "day": current.day,
                "weekday": WEEKDAY_NAMES_KO[weekday],
                "is_saturday": weekday == 5,
                "is_sunday": weekday == 6,
                "is_holiday": (month, current.day) in holidays,
            })
        return layout
