# backend/drivebook/repositories/calendar_settings_repository.py
"""Data access for the singleton calendar settings and vacation days."""

from datetime import date
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from ..models.calendar_settings import CalendarSettings, VacationDay
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class CalendarSettingsRepository(BaseRepository[CalendarSettings]):
    def __init__(self, db: Session):
        super().__init__(db, CalendarSettings)

    def get_current(self) -> Optional[CalendarSettings]:
        return self.db.query(CalendarSettings).order_by(CalendarSettings.created_at.asc()).first()

    def list_vacation_days(
        self, start: Optional[date] = None, end: Optional[date] = None
    ) -> List[VacationDay]:
        query = self.db.query(VacationDay)
        if start is not None:
            query = query.filter(VacationDay.vacation_date >= start)
        if end is not None:
            query = query.filter(VacationDay.vacation_date <= end)
        return query.order_by(VacationDay.vacation_date.asc()).all()

    def get_vacation_day(self, vacation_date: date) -> Optional[VacationDay]:
        return self.db.query(VacationDay).filter(VacationDay.vacation_date == vacation_date).first()

    def upsert_vacation_day(self, vacation_date: date, reason: Optional[str]) -> VacationDay:
        existing = self.get_vacation_day(vacation_date)
        if existing is not None:
            existing.reason = reason
            self.db.flush()
            return existing
        row = VacationDay(vacation_date=vacation_date, reason=reason)
        self.db.add(row)
        self.db.flush()
        return row

    def delete_vacation_day(self, vacation_date: date) -> bool:
        existing = self.get_vacation_day(vacation_date)
        if existing is None:
            return False
        self.db.delete(existing)
        self.db.flush()
        return True
