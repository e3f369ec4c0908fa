from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text

from catfe_tv.db import Base
from catfe_tv.services.clock import utc_now
from catfe_tv.services.scheduling import format_days_csv, parse_days_csv


class Screen(Base):
    __tablename__ = "screen"
    id = Column(Integer, primary_key=True, autoincrement=True)
    type = Column(String(32), nullable=False, default="EVENT")
    title = Column(String(255), nullable=False)
    subtitle = Column(String(255), nullable=True)
    body = Column(Text, nullable=True)
    image_path = Column(String(1024), nullable=True)
    image_display_mode = Column(String(16), default="cover")
    qr_url = Column(String(1024), nullable=True)
    livestream_url = Column(String(1024), nullable=True)
    event_time = Column(String(100), nullable=True)
    event_location = Column(String(255), nullable=True)
    priority = Column(Integer, nullable=False, default=1)
    duration_seconds = Column(Integer, nullable=True, default=10)
    sort_order = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    is_protected = Column(Boolean, nullable=False, default=False)
    is_adopted = Column(Boolean, nullable=False, default=False)
    scheduling_enabled = Column(Boolean, nullable=False, default=False)
    start_at = Column(DateTime, nullable=True)
    end_at = Column(DateTime, nullable=True)
    schedule_days = Column(String(16), nullable=True)  # CSV: 0,1,2,3,4,5,6 (Sunday = 0)
    time_start = Column(String(5), nullable=True)  # HH:MM
    time_end = Column(String(5), nullable=True)  # HH:MM
    created_at = Column(DateTime, default=utc_now)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now)

    @property
    def days_of_week(self) -> list[int]:
        return parse_days_csv(self.schedule_days)

    @days_of_week.setter
    def days_of_week(self, values: list[int] | None) -> None:
        self.schedule_days = format_days_csv(values)
