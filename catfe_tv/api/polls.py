import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from catfe_tv.db import get_db
from catfe_tv.models.poll import Poll, PollVote
from catfe_tv.schemas.poll import PollIn, PollOut, PollResultsOut, PollUpdate, VoteIn
from catfe_tv.security import require_admin
from catfe_tv.services.clock import local_now
from catfe_tv.services.polls import encode_poll_options, poll_options, rotation, tally

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/polls", tags=["polls"])


def _get_poll(db: Session, poll_id: int) -> Poll:
    poll = db.get(Poll, poll_id)
    if not poll:
        raise HTTPException(status_code=404, detail="Poll not found")
    return poll


def _serialize(poll: Poll) -> dict:
    return {
        "id": poll.id,
        "question": poll.question,
        "status": poll.status,
        "sort_order": poll.sort_order,
        "total_votes": poll.total_votes,
        "is_recurring": bool(poll.is_recurring),
        "last_shown_at": poll.last_shown_at,
        "options": poll_options(poll),
    }


def _with_results(db: Session, poll: Poll) -> dict:
    rows = (
        db.query(PollVote.option_id, func.count(PollVote.id))
        .filter(PollVote.poll_id == poll.id)
        .group_by(PollVote.option_id)
        .all()
    )
    results, total = tally(poll_options(poll), {option_id: count for option_id, count in rows})
    data = _serialize(poll)
    data["options"] = results
    data["total_votes"] = total
    return data


def _active_polls(db: Session) -> list[Poll]:
    return db.query(Poll).filter(Poll.status == "active").order_by(Poll.sort_order.asc(), Poll.id.asc()).all()


@router.get("/current", response_model=PollOut | None)
def get_current(db: Session = Depends(get_db)):
    polls = _active_polls(db)
    return _serialize(polls[0]) if polls else None


@router.get("/tv", response_model=PollResultsOut | None)
def get_for_tv(db: Session = Depends(get_db)):
    """Poll for the TV slide; rotates among active polls every quarter hour."""
    now = local_now()

    def mark_shown(poll: Poll) -> None:
        poll.last_shown_at = now
        db.commit()

    poll = rotation.pick(_active_polls(db), now, on_switch=mark_shown)
    return _with_results(db, poll) if poll else None


@router.get("/voted")
def has_voted(poll_id: int, fingerprint: str, db: Session = Depends(get_db)):
    vote = (
        db.query(PollVote)
        .filter(PollVote.poll_id == poll_id, PollVote.voter_fingerprint == fingerprint)
        .first()
    )
    return {"has_voted": vote is not None, "option_id": vote.option_id if vote else None}


@router.get("", response_model=list[PollOut], dependencies=[Depends(require_admin)])
def list_polls(db: Session = Depends(get_db)):
    polls = db.query(Poll).order_by(Poll.sort_order.asc(), Poll.id.asc()).all()
    return [_serialize(poll) for poll in polls]


@router.get("/{poll_id}/results", response_model=PollResultsOut)
def get_with_results(poll_id: int, db: Session = Depends(get_db)):
    return _with_results(db, _get_poll(db, poll_id))


@router.post("/{poll_id}/vote")
def vote(poll_id: int, payload: VoteIn, db: Session = Depends(get_db)):
    poll = _get_poll(db, poll_id)
    if poll.status != "active":
        raise HTTPException(status_code=400, detail="Poll is not active")
    if payload.option_id not in {option["id"] for option in poll_options(poll)}:
        raise HTTPException(status_code=400, detail="Unknown option")

    existing = (
        db.query(PollVote)
        .filter(PollVote.poll_id == poll.id, PollVote.voter_fingerprint == payload.fingerprint)
        .first()
    )
    if existing:
        return {"success": False, "error": "Already voted", "already_voted": True}

    db.add(PollVote(poll_id=poll.id, option_id=payload.option_id, voter_fingerprint=payload.fingerprint))
    poll.total_votes = (poll.total_votes or 0) + 1
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        return {"success": False, "error": "Already voted", "already_voted": True}
    return {"success": True}


@router.post("", response_model=PollOut, dependencies=[Depends(require_admin)])
def create_poll(payload: PollIn, db: Session = Depends(get_db)):
    option_ids = [option.id for option in payload.options]
    if len(set(option_ids)) != len(option_ids):
        raise HTTPException(status_code=400, detail="Option ids must be unique")
    max_order = db.query(func.max(Poll.sort_order)).scalar()
    poll = Poll(
        question=payload.question,
        options=encode_poll_options(option.model_dump() for option in payload.options),
        status="draft",
        sort_order=(max_order or 0) + 1,
        is_recurring=payload.is_recurring,
    )
    db.add(poll)
    db.commit()
    db.refresh(poll)
    return _serialize(poll)


@router.put("/{poll_id}", response_model=PollOut, dependencies=[Depends(require_admin)])
def update_poll(poll_id: int, payload: PollUpdate, db: Session = Depends(get_db)):
    poll = _get_poll(db, poll_id)
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    if "options" in changes:
        option_ids = [option["id"] for option in changes["options"]]
        if len(set(option_ids)) != len(option_ids):
            raise HTTPException(status_code=400, detail="Option ids must be unique")
        changes["options"] = encode_poll_options(changes["options"])
    for field, value in changes.items():
        setattr(poll, field, value)
    db.commit()
    db.refresh(poll)
    return _serialize(poll)


@router.delete("/{poll_id}", dependencies=[Depends(require_admin)])
def delete_poll(poll_id: int, db: Session = Depends(get_db)):
    poll = _get_poll(db, poll_id)
    db.query(PollVote).filter(PollVote.poll_id == poll.id).delete(synchronize_session=False)
    db.delete(poll)
    db.commit()
    return {"ok": True}


@router.post("/{poll_id}/reset", dependencies=[Depends(require_admin)])
def reset_votes(poll_id: int, db: Session = Depends(get_db)):
    poll = _get_poll(db, poll_id)
    removed = db.query(PollVote).filter(PollVote.poll_id == poll.id).delete(synchronize_session=False)
    poll.total_votes = 0
    db.commit()
    logger.info("Reset %d votes on poll %s", removed, poll.id)
    return {"ok": True, "removed": removed}
