from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String

from catfe_tv.db import Base
from catfe_tv.services.clock import utc_now
from catfe_tv.services.scheduling import format_days_csv, parse_days_csv


class TimeSlot(Base):
    __tablename__ = "time_slot"
    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    time_start = Column(String(5), nullable=False)  # HH:MM
    time_end = Column(String(5), nullable=False)  # HH:MM, earlier than start wraps midnight
    schedule_days = Column(String(16), nullable=True)  # CSV, Sunday = 0; empty means every day
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=utc_now)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now)

    @property
    def days_of_week(self) -> list[int]:
        return parse_days_csv(self.schedule_days)

    @days_of_week.setter
    def days_of_week(self, values: list[int] | None) -> None:
        self.schedule_days = format_days_csv(values)


class ScreenTimeSlot(Base):
    __tablename__ = "screen_time_slot"
    id = Column(Integer, primary_key=True, autoincrement=True)
    screen_id = Column(Integer, ForeignKey("screen.id"), nullable=False)
    time_slot_id = Column(Integer, ForeignKey("time_slot.id"), nullable=False, index=True)
    sort_order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=utc_now)
