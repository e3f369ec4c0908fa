"""
Slide eligibility and playlist composition.

Every client (TV display, admin preview, headless player) builds its rotation
through this module so the scheduling rules only live in one place. Slides are
duck-typed: ORM rows and pydantic schemas both work, anything exposing the
attribute names used below.
"""

import json
import logging
import re
from datetime import datetime
from typing import Any, Iterable, Sequence

SCREEN_TYPES = (
    "SNAP_AND_PURR",
    "EVENT",
    "TODAY_AT_CATFE",
    "MEMBERSHIP",
    "REMINDER",
    "ADOPTION",
    "ADOPTION_SHOWCASE",
    "ADOPTION_COUNTER",
    "THANK_YOU",
    "LIVESTREAM",
    "HAPPY_TAILS",
    "SNAP_PURR_GALLERY",
    "HAPPY_TAILS_QR",
    "SNAP_PURR_QR",
    "POLL",
    "POLL_QR",
    "CHECK_IN",
    "GUEST_STATUS_BOARD",
    "CUSTOM",
)

INTERLEAVE_TYPE = "SNAP_AND_PURR"
FALLBACK_DURATION_SECONDS = 10
DEFAULT_SNAP_AND_PURR_FREQUENCY = 5

# Used when a slide carries no explicit duration.
TYPE_DEFAULT_DURATIONS: dict[str, int] = {
    "ADOPTION_SHOWCASE": 15,
    "LIVESTREAM": 30,
    "SNAP_PURR_GALLERY": 20,
    "HAPPY_TAILS": 15,
    "POLL": 20,
    "GUEST_STATUS_BOARD": 20,
}

logger = logging.getLogger(__name__)

_HHMM = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


def is_valid_hhmm(value: str | None) -> bool:
    return bool(value) and _HHMM.match(value) is not None


def day_of_week(now: datetime) -> int:
    """Sunday = 0 ... Saturday = 6."""
    return (now.weekday() + 1) % 7


def clock_label(now: datetime) -> str:
    return f"{now.hour:02d}:{now.minute:02d}"


def in_time_window(current: str, time_start: str, time_end: str) -> bool:
    # Zero-padded HH:MM strings order the same way as the times they name.
    if time_start > time_end:
        return current >= time_start or current <= time_end
    return time_start <= current <= time_end


def parse_days_csv(raw: str | None) -> list[int]:
    days: set[int] = set()
    for item in (raw or "").split(","):
        value = item.strip()
        if not value.isdigit():
            continue
        day = int(value)
        if 0 <= day <= 6:
            days.add(day)
    return sorted(days)


def format_days_csv(days: Iterable[int] | None) -> str | None:
    if not days:
        return None
    normalized = sorted({int(day) for day in days})
    for day in normalized:
        if day < 0 or day > 6:
            raise ValueError("days_of_week must be in range 0-6")
    return ",".join(str(day) for day in normalized)


def has_schedule(slide: Any) -> bool:
    return any(
        (
            getattr(slide, "start_at", None),
            getattr(slide, "end_at", None),
            getattr(slide, "days_of_week", None),
            getattr(slide, "time_start", None) and getattr(slide, "time_end", None),
        )
    )


def is_eligible(slide: Any, now: datetime) -> bool:
    if not getattr(slide, "is_active", False):
        return False
    if not getattr(slide, "scheduling_enabled", False) or not has_schedule(slide):
        return True

    start_at = getattr(slide, "start_at", None)
    if start_at is not None and start_at > now:
        return False
    end_at = getattr(slide, "end_at", None)
    if end_at is not None and end_at < now:
        return False

    days = getattr(slide, "days_of_week", None)
    if days and day_of_week(now) not in days:
        return False

    time_start = getattr(slide, "time_start", None)
    time_end = getattr(slide, "time_end", None)
    if time_start and time_end and not in_time_window(clock_label(now), time_start, time_end):
        return False
    return True


def _setting(settings: Any, name: str, default: int) -> int:
    value = getattr(settings, name, None) if settings is not None else None
    return default if value is None else int(value)


def sort_slides(slides: Iterable[Any]) -> list[Any]:
    return sorted(
        slides,
        key=lambda s: (-(s.priority or 0), s.sort_order or 0, getattr(s, "id", 0) or 0),
    )


def interleave(others: Sequence[Any], recurring: Sequence[Any], frequency: int) -> list[Any]:
    if not recurring or frequency < 1:
        return list(others)
    result: list[Any] = []
    inserted = 0
    for position, slide in enumerate(others, start=1):
        result.append(slide)
        if position % frequency == 0:
            result.append(recurring[inserted % len(recurring)])
            inserted += 1
    return result


def build_playlist(slides: Iterable[Any], settings: Any, now: datetime) -> list[Any]:
    ordered = sort_slides(slide for slide in slides if is_eligible(slide, now))
    recurring = [slide for slide in ordered if slide.type == INTERLEAVE_TYPE]
    others = [slide for slide in ordered if slide.type != INTERLEAVE_TYPE]
    if not recurring or not others:
        return others
    frequency = _setting(settings, "snap_and_purr_frequency", DEFAULT_SNAP_AND_PURR_FREQUENCY)
    return interleave(others, recurring, frequency)


def resolve_duration(slide: Any, settings: Any = None) -> int:
    explicit = getattr(slide, "duration_seconds", None)
    if explicit:
        return int(explicit)
    by_type = TYPE_DEFAULT_DURATIONS.get(getattr(slide, "type", ""))
    if by_type:
        return by_type
    return _setting(settings, "default_duration_seconds", FALLBACK_DURATION_SECONDS) or FALLBACK_DURATION_SECONDS


def parse_windows_json(raw: str | None) -> list[dict[str, str]]:
    """Stored `[{"time_start": "HH:MM", "time_end": "HH:MM"}, ...]`; malformed entries are dropped."""
    if not raw:
        return []
    try:
        items = json.loads(raw)
    except ValueError:
        logger.warning("Ignoring unreadable time windows: %r", raw)
        return []
    if not isinstance(items, list):
        return []
    windows = []
    for item in items:
        if not isinstance(item, dict):
            continue
        time_start, time_end = item.get("time_start"), item.get("time_end")
        if is_valid_hhmm(time_start) and is_valid_hhmm(time_end):
            windows.append({"time_start": time_start, "time_end": time_end})
    return windows


def format_windows_json(windows: Iterable[dict[str, str]] | None) -> str | None:
    items = [{"time_start": w["time_start"], "time_end": w["time_end"]} for w in windows or []]
    return json.dumps(items) if items else None


def schedule_windows(item: Any) -> list[tuple[str, str]]:
    """Time windows of a playlist: the window list wins over the single start/end pair."""
    windows = [(w["time_start"], w["time_end"]) for w in getattr(item, "time_windows", None) or []]
    if windows:
        return windows
    time_start = getattr(item, "time_start", None)
    time_end = getattr(item, "time_end", None)
    if time_start and time_end:
        return [(time_start, time_end)]
    return []


def is_scheduled_now(item: Any, now: datetime) -> bool:
    """Whether a scheduled playlist claims the screen right now.

    Days restrict when set; with no window at all it runs the whole day.
    """
    if not getattr(item, "scheduling_enabled", False):
        return False
    days = getattr(item, "days_of_week", None)
    if days and day_of_week(now) not in days:
        return False
    windows = schedule_windows(item)
    if not windows:
        return True
    current = clock_label(now)
    return any(in_time_window(current, start, end) for start, end in windows)


def is_time_slot_open(slot: Any, now: datetime) -> bool:
    if not getattr(slot, "is_active", False):
        return False
    days = getattr(slot, "days_of_week", None)
    if days and day_of_week(now) not in days:
        return False
    return in_time_window(clock_label(now), slot.time_start, slot.time_end)
