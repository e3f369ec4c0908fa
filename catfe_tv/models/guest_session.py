from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text

from catfe_tv.db import Base


class GuestSession(Base):
    __tablename__ = "guest_session"
    id = Column(Integer, primary_key=True, autoincrement=True)
    guest_name = Column(String(255), nullable=False)
    guest_count = Column(Integer, nullable=False, default=1)
    duration = Column(String(4), nullable=False)  # minutes: "15", "30", "60" ("90" from bookings)
    notes = Column(Text, nullable=True)
    status = Column(String(16), nullable=False, default="active")
    check_in_at = Column(DateTime, nullable=False)
    expires_at = Column(DateTime, nullable=False)
    checked_out_at = Column(DateTime, nullable=True)
    reminder_shown = Column(Boolean, nullable=False, default=False)
