from dataclasses import asdict, dataclass
from datetime import datetime

REMINDER_WINDOW_MINUTES = 5
STATUS_BOARD_WINDOW_MINUTES = 60
URGENT_MINUTES = 5

SESSION_LABELS = {
    "60": "Full Purr",
    "30": "Mini Meow",
    "15": "Quick Peek",
    "90": "Study Session",
}


@dataclass(frozen=True)
class TimeStatus:
    label: str
    minutes: int
    seconds: int
    is_expired: bool
    is_urgent: bool
    percent: float

    def to_dict(self) -> dict:
        return asdict(self)


def time_status(expires_at: datetime, now: datetime, window_minutes: int) -> TimeStatus:
    """Remaining time for a guest session.

    `window_minutes` is the length the progress bar represents: the reminder
    overlay uses REMINDER_WINDOW_MINUTES, the status board
    STATUS_BOARD_WINDOW_MINUTES.
    """
    ms_left = int((expires_at - now).total_seconds() * 1000)
    if ms_left <= 0:
        return TimeStatus("Ended", 0, 0, True, True, 0.0)
    total_seconds = ms_left // 1000
    minutes, seconds = divmod(total_seconds, 60)
    window_ms = max(1, window_minutes) * 60 * 1000
    percent = max(0.0, min(100.0, ms_left / window_ms * 100))
    return TimeStatus(
        label=f"{minutes}:{seconds:02d}",
        minutes=minutes,
        seconds=seconds,
        is_expired=False,
        is_urgent=minutes < URGENT_MINUTES,
        percent=round(percent, 2),
    )


def session_label(duration: str) -> str:
    return SESSION_LABELS.get(duration, f"{duration} min")
