from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from catfe_tv.db import get_db
from catfe_tv.models.time_slot import TimeSlot
from catfe_tv.schemas.playlist import ScreenIdsIn
from catfe_tv.schemas.screen import ScreenOut
from catfe_tv.schemas.time_slot import OpenTimeSlotOut, TimeSlotIn, TimeSlotOut, TimeSlotUpdate
from catfe_tv.security import require_admin
from catfe_tv.services import playlists as service
from catfe_tv.services.clock import local_now

router = APIRouter(prefix="/time-slots", tags=["time-slots"])


def _get_slot(db: Session, slot_id: int) -> TimeSlot:
    slot = db.get(TimeSlot, slot_id)
    if not slot:
        raise HTTPException(status_code=404, detail="Time slot not found")
    return slot


@router.get("", response_model=list[TimeSlotOut], dependencies=[Depends(require_admin)])
def list_time_slots(db: Session = Depends(get_db)):
    return db.query(TimeSlot).order_by(TimeSlot.time_start.asc(), TimeSlot.id.asc()).all()


@router.get("/active", response_model=list[TimeSlotOut])
def list_active_time_slots(db: Session = Depends(get_db)):
    return (
        db.query(TimeSlot)
        .filter(TimeSlot.is_active.is_(True))
        .order_by(TimeSlot.time_start.asc(), TimeSlot.id.asc())
        .all()
    )


@router.get("/current", response_model=list[OpenTimeSlotOut])
def list_open_time_slots(db: Session = Depends(get_db)):
    """Slots whose window contains the café's current time, with their screens."""
    result = []
    for slot in service.open_time_slots(db, local_now()):
        item = OpenTimeSlotOut.model_validate(slot)
        item.screens = [ScreenOut.model_validate(screen) for screen in service.time_slot_screens(db, slot.id)]
        result.append(item)
    return result


@router.get("/{slot_id}", response_model=TimeSlotOut, dependencies=[Depends(require_admin)])
def get_time_slot(slot_id: int, db: Session = Depends(get_db)):
    return _get_slot(db, slot_id)


@router.post("", response_model=TimeSlotOut, dependencies=[Depends(require_admin)])
def create_time_slot(payload: TimeSlotIn, db: Session = Depends(get_db)):
    slot = TimeSlot(**payload.model_dump())
    db.add(slot)
    db.commit()
    db.refresh(slot)
    return slot


@router.put("/{slot_id}", response_model=TimeSlotOut, dependencies=[Depends(require_admin)])
def update_time_slot(slot_id: int, payload: TimeSlotUpdate, db: Session = Depends(get_db)):
    slot = _get_slot(db, slot_id)
    for field, value in payload.model_dump(exclude_unset=True).items():
        # days may be cleared; the other columns cannot hold NULL
        if value is None and field != "days_of_week":
            continue
        setattr(slot, field, value)
    db.commit()
    db.refresh(slot)
    return slot


@router.delete("/{slot_id}", dependencies=[Depends(require_admin)])
def delete_time_slot(slot_id: int, db: Session = Depends(get_db)):
    service.delete_time_slot(db, _get_slot(db, slot_id))
    return {"ok": True}


@router.get("/{slot_id}/screens", response_model=list[ScreenOut], dependencies=[Depends(require_admin)])
def list_time_slot_screens(slot_id: int, db: Session = Depends(get_db)):
    return service.time_slot_screens(db, _get_slot(db, slot_id).id)


@router.put("/{slot_id}/screens", response_model=list[ScreenOut], dependencies=[Depends(require_admin)])
def set_time_slot_screens(slot_id: int, payload: ScreenIdsIn, db: Session = Depends(get_db)):
    slot = _get_slot(db, slot_id)
    try:
        return service.set_time_slot_screens(db, slot, payload.screen_ids)
    except service.UnknownScreenError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
