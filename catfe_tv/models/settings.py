from sqlalchemy import Column, DateTime, Integer, String

from catfe_tv.db import Base
from catfe_tv.services.clock import utc_now


class Settings(Base):
    __tablename__ = "settings"
    id = Column(Integer, primary_key=True, autoincrement=True)
    location_name = Column(String(255), nullable=False, default="Catfé")
    default_duration_seconds = Column(Integer, nullable=False, default=10)
    snap_and_purr_frequency = Column(Integer, nullable=False, default=5)  # one SNAP_AND_PURR every N slides
    refresh_interval_seconds = Column(Integer, nullable=False, default=60)
    fallback_mode = Column(String(16), nullable=False, default="LOOP_DEFAULT")
    total_adoption_count = Column(Integer, nullable=False, default=0)
    logo_url = Column(String(1024), nullable=True)
    wifi_name = Column(String(255), nullable=True)
    wifi_password = Column(String(255), nullable=True)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now)
