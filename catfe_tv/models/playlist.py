from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text

from catfe_tv.db import Base
from catfe_tv.services.clock import utc_now
from catfe_tv.services.scheduling import (
    format_days_csv,
    format_windows_json,
    parse_days_csv,
    parse_windows_json,
)


class Playlist(Base):
    __tablename__ = "playlist"
    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    description = Column(String(500), nullable=True)
    color = Column(String(32), nullable=False, default="#C2884E")
    sort_order = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=False)
    is_default = Column(Boolean, nullable=False, default=False)
    scheduling_enabled = Column(Boolean, nullable=False, default=False)
    schedule_days = Column(String(16), nullable=True)  # CSV, Sunday = 0
    time_start = Column(String(5), nullable=True)  # HH:MM
    time_end = Column(String(5), nullable=True)  # HH:MM
    windows_json = Column(Text, nullable=True)  # JSON: [{"time_start", "time_end"}]
    created_at = Column(DateTime, default=utc_now)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now)

    @property
    def days_of_week(self) -> list[int]:
        return parse_days_csv(self.schedule_days)

    @days_of_week.setter
    def days_of_week(self, values: list[int] | None) -> None:
        self.schedule_days = format_days_csv(values)

    @property
    def time_windows(self) -> list[dict[str, str]]:
        return parse_windows_json(self.windows_json)

    @time_windows.setter
    def time_windows(self, values: list[dict[str, str]] | None) -> None:
        self.windows_json = format_windows_json(values)


class PlaylistScreen(Base):
    __tablename__ = "playlist_screen"
    id = Column(Integer, primary_key=True, autoincrement=True)
    playlist_id = Column(Integer, ForeignKey("playlist.id"), nullable=False, index=True)
    screen_id = Column(Integer, ForeignKey("screen.id"), nullable=False)
    sort_order = Column(Integer, nullable=False, default=0)
