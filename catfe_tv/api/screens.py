from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from catfe_tv.api.settings import get_or_create_settings
from catfe_tv.db import get_db
from catfe_tv.models.screen import Screen
from catfe_tv.schemas.screen import ScreenIn, ScreenOrderIn, ScreenOut, ScreenUpdate
from catfe_tv.security import require_admin
from catfe_tv.services.clock import local_now
from catfe_tv.services.playlists import forget_screen
from catfe_tv.services.scheduling import build_playlist, resolve_duration

router = APIRouter(prefix="/screens", tags=["screens"])

# Columns that cannot hold NULL; an explicit null in an update leaves them alone.
_REQUIRED_FIELDS = {
    "type",
    "title",
    "priority",
    "sort_order",
    "is_active",
    "is_protected",
    "is_adopted",
    "scheduling_enabled",
}


def _get_screen(db: Session, screen_id: int) -> Screen:
    screen = db.get(Screen, screen_id)
    if not screen:
        raise HTTPException(status_code=404, detail="Screen not found")
    return screen


def _check_window(screen: Screen) -> None:
    if screen.start_at and screen.end_at and screen.end_at < screen.start_at:
        raise HTTPException(status_code=400, detail="end_at must not be earlier than start_at")
    if bool(screen.time_start) != bool(screen.time_end):
        raise HTTPException(status_code=400, detail="time_start and time_end must be set together")


def _ordered(query):
    return query.order_by(Screen.priority.desc(), Screen.sort_order.asc(), Screen.id.asc())


@router.get("/active", response_model=list[ScreenOut])
def list_active_screens(db: Session = Depends(get_db)):
    return _ordered(db.query(Screen).filter(Screen.is_active.is_(True))).all()


@router.get("/playlist")
def get_playlist(db: Session = Depends(get_db)):
    """The rotation a display would play right now, with resolved durations."""
    settings = get_or_create_settings(db)
    now = local_now()
    screens = db.query(Screen).filter(Screen.is_active.is_(True)).all()
    items = []
    for screen in build_playlist(screens, settings, now):
        item = ScreenOut.model_validate(screen).model_dump()
        item["resolved_duration_seconds"] = resolve_duration(screen, settings)
        items.append(item)
    return {
        "generated_at": now.isoformat(),
        "snap_and_purr_frequency": settings.snap_and_purr_frequency,
        "items": items,
    }


@router.get("/adoption-count")
def get_adoption_count(db: Session = Depends(get_db)):
    adopted = db.query(Screen).filter(Screen.type == "ADOPTION", Screen.is_adopted.is_(True)).count()
    return {"count": adopted}


@router.get("/recently-adopted", response_model=list[ScreenOut])
def list_recently_adopted(limit: int = 5, db: Session = Depends(get_db)):
    limit = max(1, min(limit, 10))
    return (
        db.query(Screen)
        .filter(
            Screen.type == "ADOPTION",
            Screen.is_active.is_(True),
            Screen.is_adopted.is_(True),
            Screen.image_path.isnot(None),
        )
        .order_by(Screen.id.desc())
        .limit(limit)
        .all()
    )


@router.put("/order", dependencies=[Depends(require_admin)])
def reorder_screens(payload: list[ScreenOrderIn], db: Session = Depends(get_db)):
    ids = [item.id for item in payload]
    found = {screen.id: screen for screen in db.query(Screen).filter(Screen.id.in_(ids)).all()}
    missing = [screen_id for screen_id in ids if screen_id not in found]
    if missing:
        raise HTTPException(status_code=404, detail=f"Screen not found: {missing[0]}")
    for item in payload:
        found[item.id].sort_order = item.sort_order
    db.commit()
    return {"ok": True, "updated": len(payload)}


@router.get("", response_model=list[ScreenOut], dependencies=[Depends(require_admin)])
def list_screens(db: Session = Depends(get_db)):
    return _ordered(db.query(Screen)).all()


@router.get("/{screen_id}", response_model=ScreenOut)
def get_screen(screen_id: int, db: Session = Depends(get_db)):
    return _get_screen(db, screen_id)


@router.post("", response_model=ScreenOut, dependencies=[Depends(require_admin)])
def create_screen(payload: ScreenIn, db: Session = Depends(get_db)):
    screen = Screen(**payload.model_dump())
    _check_window(screen)
    db.add(screen)
    db.commit()
    db.refresh(screen)
    return screen


@router.put("/{screen_id}", response_model=ScreenOut, dependencies=[Depends(require_admin)])
def update_screen(screen_id: int, payload: ScreenUpdate, db: Session = Depends(get_db)):
    screen = _get_screen(db, screen_id)
    for field, value in payload.model_dump(exclude_unset=True).items():
        if value is None and field in _REQUIRED_FIELDS:
            continue
        setattr(screen, field, value)
    _check_window(screen)
    db.commit()
    db.refresh(screen)
    return screen


@router.delete("/{screen_id}", dependencies=[Depends(require_admin)])
def delete_screen(screen_id: int, db: Session = Depends(get_db)):
    screen = _get_screen(db, screen_id)
    if screen.is_protected:
        raise HTTPException(status_code=403, detail="Protected screens cannot be deleted")
    forget_screen(db, screen.id)
    db.delete(screen)
    db.commit()
    return {"ok": True}
