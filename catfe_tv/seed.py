import json

from sqlalchemy.orm import Session

from catfe_tv.db import Base, SessionLocal, engine, ensure_sqlite_schema
from catfe_tv.models.poll import Poll
from catfe_tv.models.screen import Screen
from catfe_tv.models.settings import Settings
from catfe_tv.models.guest_session import GuestSession  # noqa: F401
from catfe_tv.models.photo import PhotoSubmission  # noqa: F401
from catfe_tv.models.time_slot import TimeSlot  # noqa: F401
from catfe_tv.services.playlists import seed_default_playlists


def seed() -> None:
    Base.metadata.create_all(bind=engine)
    ensure_sqlite_schema()
    db: Session = SessionLocal()
    try:
        if db.query(Settings).first() is None:
            db.add(Settings(location_name="Catfé", default_duration_seconds=10, snap_and_purr_frequency=5))
            db.commit()

        if db.query(Screen).count() == 0:
            db.add(
                Screen(
                    type="SNAP_AND_PURR",
                    title="Snap & Purr!",
                    subtitle="Share your photos with us",
                    body="Scan the QR code to send us your best cat photo.",
                    priority=5,
                    duration_seconds=12,
                    is_protected=True,
                )
            )
            db.add(
                Screen(
                    type="EVENT",
                    title="Trivia Night",
                    subtitle="Every Thursday",
                    body="Test your cat knowledge and win prizes.",
                    event_time="7:00 PM",
                    event_location="Main lounge",
                    priority=3,
                    scheduling_enabled=True,
                    days_of_week=[4],
                    time_start="12:00",
                    time_end="21:00",
                )
            )
            db.add(
                Screen(
                    type="TODAY_AT_CATFE",
                    title="Happy Hour",
                    subtitle="2pm - 4pm",
                    body="Half price drinks while you hang out with the cats.",
                    priority=2,
                    scheduling_enabled=True,
                    time_start="14:00",
                    time_end="16:00",
                )
            )
            db.add(Screen(type="CHECK_IN", title="Welcome!", subtitle="Please check in at the front desk"))
            db.add(Screen(type="GUEST_STATUS_BOARD", title="Current Guests"))
            db.commit()

        if db.query(Poll).count() == 0:
            db.add(
                Poll(
                    question="Which cat should nap next?",
                    options=json.dumps(
                        [
                            {"id": "mochi", "text": "Mochi"},
                            {"id": "biscuit", "text": "Biscuit"},
                            {"id": "pepper", "text": "Pepper"},
                        ]
                    ),
                    status="active",
                    sort_order=1,
                    is_recurring=True,
                )
            )
            db.commit()

        seed_default_playlists(db)
    finally:
        db.close()


if __name__ == "__main__":
    seed()
