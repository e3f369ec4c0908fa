import logging
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from catfe_tv.models.guest_session import GuestSession
from catfe_tv.services.countdown import (
    REMINDER_WINDOW_MINUTES,
    STATUS_BOARD_WINDOW_MINUTES,
    session_label,
    time_status,
)

logger = logging.getLogger(__name__)

OPEN_STATUSES = ("active", "extended")
RECENT_CHECK_IN_SECONDS = 60


class SessionStateError(ValueError):
    pass


def check_in(
    db: Session,
    guest_name: str,
    duration: str,
    now: datetime,
    guest_count: int = 1,
    notes: str | None = None,
) -> GuestSession:
    minutes = int(duration)
    if minutes <= 0:
        raise SessionStateError("Session duration must be positive")
    session = GuestSession(
        guest_name=guest_name.strip(),
        guest_count=guest_count,
        duration=duration,
        notes=notes,
        status="active",
        check_in_at=now,
        expires_at=now + timedelta(minutes=minutes),
        reminder_shown=False,
    )
    db.add(session)
    db.commit()
    db.refresh(session)
    logger.info("Checked in %s (party of %d, %s min)", session.guest_name, guest_count, duration)
    return session


def check_out(db: Session, session: GuestSession, now: datetime) -> GuestSession:
    if session.status == "completed":
        raise SessionStateError("Session already completed")
    session.status = "completed"
    session.checked_out_at = now
    db.commit()
    db.refresh(session)
    return session


def extend(db: Session, session: GuestSession, additional_minutes: int) -> GuestSession:
    if session.status == "completed":
        raise SessionStateError("Cannot extend a completed session")
    session.expires_at = session.expires_at + timedelta(minutes=additional_minutes)
    session.status = "extended"
    session.reminder_shown = False
    db.commit()
    db.refresh(session)
    return session


def open_sessions(db: Session) -> list[GuestSession]:
    return (
        db.query(GuestSession)
        .filter(GuestSession.status.in_(OPEN_STATUSES))
        .order_by(GuestSession.expires_at.asc(), GuestSession.id.asc())
        .all()
    )


def needing_reminder(db: Session, now: datetime) -> list[GuestSession]:
    """Open sessions expiring within the reminder window, soonest first."""
    horizon = now + timedelta(minutes=REMINDER_WINDOW_MINUTES)
    return (
        db.query(GuestSession)
        .filter(
            GuestSession.status.in_(OPEN_STATUSES),
            GuestSession.expires_at >= now,
            GuestSession.expires_at <= horizon,
        )
        .order_by(GuestSession.expires_at.asc(), GuestSession.id.asc())
        .all()
    )


def recently_checked_in(db: Session, now: datetime) -> list[GuestSession]:
    since = now - timedelta(seconds=RECENT_CHECK_IN_SECONDS)
    return (
        db.query(GuestSession)
        .filter(GuestSession.status.in_(OPEN_STATUSES), GuestSession.check_in_at >= since)
        .order_by(GuestSession.check_in_at.desc(), GuestSession.id.desc())
        .all()
    )


def today_stats(db: Session, now: datetime) -> dict[str, int]:
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    sessions = db.query(GuestSession).filter(GuestSession.check_in_at >= midnight).all()
    return {
        "total_guests": sum(s.guest_count for s in sessions),
        "active_sessions": sum(1 for s in sessions if s.status == "active"),
        "completed_sessions": sum(1 for s in sessions if s.status == "completed"),
    }


def history(
    db: Session,
    start: datetime | None = None,
    end: datetime | None = None,
    status: str | None = None,
) -> list[GuestSession]:
    query = db.query(GuestSession)
    if start is not None:
        query = query.filter(GuestSession.check_in_at >= start)
    if end is not None:
        query = query.filter(GuestSession.check_in_at <= end)
    if status:
        query = query.filter(GuestSession.status == status)
    return query.order_by(GuestSession.check_in_at.desc(), GuestSession.id.desc()).all()


def with_time_status(session: GuestSession, now: datetime, window_minutes: int) -> dict:
    return {
        "id": session.id,
        "guest_name": session.guest_name,
        "guest_count": session.guest_count,
        "duration": session.duration,
        "notes": session.notes,
        "status": session.status,
        "check_in_at": session.check_in_at,
        "expires_at": session.expires_at,
        "checked_out_at": session.checked_out_at,
        "reminder_shown": bool(session.reminder_shown),
        "session_label": session_label(session.duration),
        "time_status": time_status(session.expires_at, now, window_minutes).to_dict(),
    }


def status_board(db: Session, now: datetime) -> list[dict]:
    return [with_time_status(s, now, STATUS_BOARD_WINDOW_MINUTES) for s in open_sessions(db)]
