"""
Named playlists and time slots.

A playlist is an ordered selection of screens. Which one feeds the TV is
decided on every request:

1. the first playlist (by sort order) whose schedule matches right now,
2. the playlist an admin switched on by hand,
3. the default playlist,
4. no playlist at all, every active screen.

For the feed, a candidate that has no active screens is skipped and the next
rule applies, so a half-built playlist never blanks the display.
"""

import logging
from datetime import datetime
from typing import Any, Iterable, Sequence

from sqlalchemy import func
from sqlalchemy.orm import Session

from catfe_tv.models.playlist import Playlist, PlaylistScreen
from catfe_tv.models.screen import Screen
from catfe_tv.models.time_slot import ScreenTimeSlot, TimeSlot
from catfe_tv.services.scheduling import is_scheduled_now, is_time_slot_open

logger = logging.getLogger(__name__)

FALLBACK_NAME = "All Active Screens"

DEFAULT_PLAYLISTS = (
    {"name": "Lounge", "description": "Default playlist for the cat lounge", "is_default": True, "is_active": True},
    {"name": "Events", "description": "Special events and promotions"},
    {"name": "Volunteer Orientation", "description": "Information for new volunteers"},
)


class UnknownScreenError(ValueError):
    def __init__(self, screen_ids: Sequence[int]):
        super().__init__(f"Unknown screen ids: {sorted(screen_ids)}")
        self.screen_ids = list(screen_ids)


def _by_order(playlists: Iterable[Any]) -> list[Any]:
    return sorted(playlists, key=lambda p: (p.sort_order or 0, p.id or 0))


def serving_candidates(playlists: Iterable[Any], now: datetime) -> list[tuple[Any, str]]:
    """Scheduled, manual and default picks in the order they are tried."""
    ordered = _by_order(playlists)
    candidates: list[tuple[Any, str]] = []
    scheduled = next((p for p in ordered if is_scheduled_now(p, now)), None)
    if scheduled is not None:
        candidates.append((scheduled, "scheduled"))
    manual = next((p for p in ordered if p.is_active), None)
    if manual is not None:
        candidates.append((manual, "manual"))
    default = next((p for p in ordered if p.is_default), None)
    if default is not None:
        candidates.append((default, "default"))
    return candidates


def currently_serving(playlists: Iterable[Any], now: datetime) -> tuple[Any | None, str]:
    candidates = serving_candidates(playlists, now)
    if candidates:
        return candidates[0]
    return None, "fallback"


def next_sort_order(db: Session) -> int:
    current = db.query(func.max(Playlist.sort_order)).scalar()
    return 0 if current is None else current + 1


def _unique(ids: Iterable[int]) -> list[int]:
    return list(dict.fromkeys(ids))


def _require_screens(db: Session, screen_ids: Sequence[int]) -> None:
    if not screen_ids:
        return
    found = {row[0] for row in db.query(Screen.id).filter(Screen.id.in_(screen_ids)).all()}
    missing = [screen_id for screen_id in screen_ids if screen_id not in found]
    if missing:
        raise UnknownScreenError(missing)


def playlist_screens(db: Session, playlist_id: int) -> list[Screen]:
    """Screens of a playlist in playlist order, inactive ones included."""
    return (
        db.query(Screen)
        .join(PlaylistScreen, PlaylistScreen.screen_id == Screen.id)
        .filter(PlaylistScreen.playlist_id == playlist_id)
        .order_by(PlaylistScreen.sort_order.asc(), PlaylistScreen.id.asc())
        .all()
    )


def set_playlist_screens(db: Session, playlist: Playlist, screen_ids: Sequence[int]) -> list[Screen]:
    screen_ids = _unique(screen_ids)
    _require_screens(db, screen_ids)
    db.query(PlaylistScreen).filter(PlaylistScreen.playlist_id == playlist.id).delete(synchronize_session=False)
    for position, screen_id in enumerate(screen_ids):
        db.add(PlaylistScreen(playlist_id=playlist.id, screen_id=screen_id, sort_order=position))
    db.commit()
    return playlist_screens(db, playlist.id)


def add_playlist_screen(db: Session, playlist: Playlist, screen_id: int) -> bool:
    """Append a screen; False when it is already part of the playlist."""
    _require_screens(db, [screen_id])
    links = db.query(PlaylistScreen).filter(PlaylistScreen.playlist_id == playlist.id)
    if links.filter(PlaylistScreen.screen_id == screen_id).first() is not None:
        return False
    last = links.with_entities(func.max(PlaylistScreen.sort_order)).scalar()
    db.add(PlaylistScreen(playlist_id=playlist.id, screen_id=screen_id, sort_order=0 if last is None else last + 1))
    db.commit()
    return True


def remove_playlist_screen(db: Session, playlist: Playlist, screen_id: int) -> bool:
    removed = (
        db.query(PlaylistScreen)
        .filter(PlaylistScreen.playlist_id == playlist.id, PlaylistScreen.screen_id == screen_id)
        .delete(synchronize_session=False)
    )
    db.commit()
    return removed > 0


def activate(db: Session, playlist: Playlist) -> Playlist:
    db.query(Playlist).filter(Playlist.id != playlist.id).update({Playlist.is_active: False}, synchronize_session=False)
    playlist.is_active = True
    db.commit()
    db.refresh(playlist)
    logger.info("Playlist %s (%s) switched on", playlist.id, playlist.name)
    return playlist


def delete_playlist(db: Session, playlist: Playlist) -> None:
    db.query(PlaylistScreen).filter(PlaylistScreen.playlist_id == playlist.id).delete(synchronize_session=False)
    db.delete(playlist)
    db.commit()


def forget_screen(db: Session, screen_id: int) -> None:
    """Drop a deleted screen from every playlist and time slot. Caller commits."""
    db.query(PlaylistScreen).filter(PlaylistScreen.screen_id == screen_id).delete(synchronize_session=False)
    db.query(ScreenTimeSlot).filter(ScreenTimeSlot.screen_id == screen_id).delete(synchronize_session=False)


def serving_screens(db: Session, now: datetime) -> tuple[Playlist | None, str, list[Screen]]:
    """Active screens for the TV, from the first candidate playlist that has any."""
    for playlist, reason in serving_candidates(db.query(Playlist).all(), now):
        screens = [screen for screen in playlist_screens(db, playlist.id) if screen.is_active]
        if screens:
            return playlist, reason, screens
        logger.debug("Playlist %s (%s) has no active screens, falling through", playlist.id, reason)
    screens = (
        db.query(Screen)
        .filter(Screen.is_active.is_(True))
        .order_by(Screen.priority.desc(), Screen.sort_order.asc(), Screen.id.asc())
        .all()
    )
    return None, "fallback", screens


def seed_default_playlists(db: Session) -> int:
    if db.query(Playlist).count():
        return 0
    for position, fields in enumerate(DEFAULT_PLAYLISTS):
        db.add(Playlist(sort_order=position, **fields))
    db.commit()
    return len(DEFAULT_PLAYLISTS)


def time_slot_screens(db: Session, time_slot_id: int) -> list[Screen]:
    """Active screens assigned to a slot, in assignment order."""
    return (
        db.query(Screen)
        .join(ScreenTimeSlot, ScreenTimeSlot.screen_id == Screen.id)
        .filter(ScreenTimeSlot.time_slot_id == time_slot_id, Screen.is_active.is_(True))
        .order_by(ScreenTimeSlot.sort_order.asc(), ScreenTimeSlot.id.asc())
        .all()
    )


def set_time_slot_screens(db: Session, slot: TimeSlot, screen_ids: Sequence[int]) -> list[Screen]:
    screen_ids = _unique(screen_ids)
    _require_screens(db, screen_ids)
    db.query(ScreenTimeSlot).filter(ScreenTimeSlot.time_slot_id == slot.id).delete(synchronize_session=False)
    for position, screen_id in enumerate(screen_ids):
        db.add(ScreenTimeSlot(time_slot_id=slot.id, screen_id=screen_id, sort_order=position))
    db.commit()
    return time_slot_screens(db, slot.id)


def delete_time_slot(db: Session, slot: TimeSlot) -> None:
    db.query(ScreenTimeSlot).filter(ScreenTimeSlot.time_slot_id == slot.id).delete(synchronize_session=False)
    db.delete(slot)
    db.commit()


def open_time_slots(db: Session, now: datetime) -> list[TimeSlot]:
    slots = db.query(TimeSlot).filter(TimeSlot.is_active.is_(True)).order_by(TimeSlot.time_start.asc()).all()
    return [slot for slot in slots if is_time_slot_open(slot, now)]
