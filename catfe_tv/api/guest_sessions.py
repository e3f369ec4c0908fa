from datetime import datetime
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from catfe_tv.db import get_db
from catfe_tv.models.guest_session import GuestSession
from catfe_tv.schemas.guest_session import (
    CheckInIn,
    ExtendIn,
    GuestSessionOut,
    GuestSessionStatusOut,
    NotesIn,
    TodayStatsOut,
)
from catfe_tv.security import require_admin
from catfe_tv.services import guest_sessions as sessions
from catfe_tv.services.clock import local_now
from catfe_tv.services.countdown import REMINDER_WINDOW_MINUTES

router = APIRouter(prefix="/guest-sessions", tags=["guest-sessions"])


def _get_session(db: Session, session_id: int) -> GuestSession:
    session = db.get(GuestSession, session_id)
    if not session:
        raise HTTPException(status_code=404, detail="Session not found")
    return session


@router.post("", response_model=GuestSessionOut, dependencies=[Depends(require_admin)])
def check_in(payload: CheckInIn, db: Session = Depends(get_db)):
    return sessions.check_in(
        db,
        guest_name=payload.guest_name,
        duration=payload.duration,
        now=local_now(),
        guest_count=payload.guest_count,
        notes=payload.notes,
    )


@router.get("", response_model=list[GuestSessionOut], dependencies=[Depends(require_admin)])
def list_sessions(db: Session = Depends(get_db)):
    return db.query(GuestSession).order_by(GuestSession.check_in_at.desc(), GuestSession.id.desc()).all()


@router.get("/active", response_model=list[GuestSessionOut])
def list_active(db: Session = Depends(get_db)):
    return sessions.open_sessions(db)


@router.get("/reminders", response_model=list[GuestSessionStatusOut])
def list_needing_reminder(db: Session = Depends(get_db)):
    now = local_now()
    return [
        sessions.with_time_status(item, now, REMINDER_WINDOW_MINUTES)
        for item in sessions.needing_reminder(db, now)
    ]


@router.get("/status-board", response_model=list[GuestSessionStatusOut])
def status_board(db: Session = Depends(get_db)):
    return sessions.status_board(db, local_now())


@router.get("/recent", response_model=list[GuestSessionOut])
def list_recently_checked_in(db: Session = Depends(get_db)):
    return sessions.recently_checked_in(db, local_now())


@router.get("/stats/today", response_model=TodayStatsOut, dependencies=[Depends(require_admin)])
def today_stats(db: Session = Depends(get_db)):
    return sessions.today_stats(db, local_now())


@router.get("/history", response_model=list[GuestSessionOut], dependencies=[Depends(require_admin)])
def session_history(
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    status: Literal["active", "extended", "completed"] | None = None,
    db: Session = Depends(get_db),
):
    return sessions.history(db, start=start_date, end=end_date, status=status)


@router.get("/{session_id}", response_model=GuestSessionOut, dependencies=[Depends(require_admin)])
def get_session(session_id: int, db: Session = Depends(get_db)):
    return _get_session(db, session_id)


@router.post("/{session_id}/check-out", response_model=GuestSessionOut, dependencies=[Depends(require_admin)])
def check_out(session_id: int, db: Session = Depends(get_db)):
    session = _get_session(db, session_id)
    try:
        return sessions.check_out(db, session, local_now())
    except sessions.SessionStateError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@router.post("/{session_id}/extend", response_model=GuestSessionOut, dependencies=[Depends(require_admin)])
def extend(session_id: int, payload: ExtendIn, db: Session = Depends(get_db)):
    session = _get_session(db, session_id)
    try:
        return sessions.extend(db, session, payload.additional_minutes)
    except sessions.SessionStateError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@router.post("/{session_id}/reminder-shown")
def mark_reminder_shown(session_id: int, db: Session = Depends(get_db)):
    session = _get_session(db, session_id)
    session.reminder_shown = True
    db.commit()
    return {"success": True}


@router.put("/{session_id}/notes", response_model=GuestSessionOut, dependencies=[Depends(require_admin)])
def update_notes(session_id: int, payload: NotesIn, db: Session = Depends(get_db)):
    session = _get_session(db, session_id)
    session.notes = payload.notes
    db.commit()
    db.refresh(session)
    return session
