from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from catfe_tv.db import get_db
from catfe_tv.models.playlist import Playlist
from catfe_tv.schemas.playlist import CurrentlyServingOut, PlaylistIn, PlaylistOut, PlaylistUpdate, ScreenIdsIn
from catfe_tv.schemas.screen import ScreenOut
from catfe_tv.security import require_admin
from catfe_tv.services import playlists as service
from catfe_tv.services.clock import local_now

router = APIRouter(prefix="/playlists", tags=["playlists"])

_REQUIRED_FIELDS = {"name", "color", "scheduling_enabled"}


def _get_playlist(db: Session, playlist_id: int) -> Playlist:
    playlist = db.get(Playlist, playlist_id)
    if not playlist:
        raise HTTPException(status_code=404, detail="Playlist not found")
    return playlist


def _check_window(playlist: Playlist) -> None:
    if bool(playlist.time_start) != bool(playlist.time_end):
        raise HTTPException(status_code=400, detail="time_start and time_end must be set together")


@router.get("", response_model=list[PlaylistOut])
def list_playlists(db: Session = Depends(get_db)):
    return db.query(Playlist).order_by(Playlist.sort_order.asc(), Playlist.id.asc()).all()


@router.get("/active", response_model=PlaylistOut | None)
def get_active_playlist(db: Session = Depends(get_db)):
    return db.query(Playlist).filter(Playlist.is_active.is_(True)).order_by(Playlist.sort_order.asc()).first()


@router.get("/current", response_model=CurrentlyServingOut)
def get_currently_serving(db: Session = Depends(get_db)):
    playlist, reason = service.currently_serving(db.query(Playlist).all(), local_now())
    if playlist is None:
        return {"id": None, "name": service.FALLBACK_NAME, "reason": reason}
    return {"id": playlist.id, "name": playlist.name, "reason": reason}


@router.get("/current/screens", response_model=list[ScreenOut])
def list_serving_screens(db: Session = Depends(get_db)):
    """Active screens of the playlist feeding the TV right now."""
    _, _, screens = service.serving_screens(db, local_now())
    return screens


@router.post("/seed-defaults", dependencies=[Depends(require_admin)])
def seed_defaults(db: Session = Depends(get_db)):
    return {"ok": True, "created": service.seed_default_playlists(db)}


@router.get("/{playlist_id}", response_model=PlaylistOut)
def get_playlist(playlist_id: int, db: Session = Depends(get_db)):
    return _get_playlist(db, playlist_id)


@router.get("/{playlist_id}/screens", response_model=list[ScreenOut])
def list_playlist_screens(playlist_id: int, db: Session = Depends(get_db)):
    return service.playlist_screens(db, _get_playlist(db, playlist_id).id)


@router.post("", response_model=PlaylistOut, dependencies=[Depends(require_admin)])
def create_playlist(payload: PlaylistIn, db: Session = Depends(get_db)):
    playlist = Playlist(**payload.model_dump(), sort_order=service.next_sort_order(db))
    _check_window(playlist)
    db.add(playlist)
    db.commit()
    db.refresh(playlist)
    return playlist


@router.put("/{playlist_id}", response_model=PlaylistOut, dependencies=[Depends(require_admin)])
def update_playlist(playlist_id: int, payload: PlaylistUpdate, db: Session = Depends(get_db)):
    playlist = _get_playlist(db, playlist_id)
    for field, value in payload.model_dump(exclude_unset=True).items():
        if value is None and field in _REQUIRED_FIELDS:
            continue
        setattr(playlist, field, value)
    _check_window(playlist)
    db.commit()
    db.refresh(playlist)
    return playlist


@router.delete("/{playlist_id}", dependencies=[Depends(require_admin)])
def delete_playlist(playlist_id: int, db: Session = Depends(get_db)):
    service.delete_playlist(db, _get_playlist(db, playlist_id))
    return {"ok": True}


@router.post("/{playlist_id}/activate", response_model=PlaylistOut, dependencies=[Depends(require_admin)])
def activate_playlist(playlist_id: int, db: Session = Depends(get_db)):
    return service.activate(db, _get_playlist(db, playlist_id))


@router.put("/{playlist_id}/screens", response_model=list[ScreenOut], dependencies=[Depends(require_admin)])
def set_playlist_screens(playlist_id: int, payload: ScreenIdsIn, db: Session = Depends(get_db)):
    playlist = _get_playlist(db, playlist_id)
    try:
        return service.set_playlist_screens(db, playlist, payload.screen_ids)
    except service.UnknownScreenError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@router.post("/{playlist_id}/screens/{screen_id}", dependencies=[Depends(require_admin)])
def add_playlist_screen(playlist_id: int, screen_id: int, db: Session = Depends(get_db)):
    playlist = _get_playlist(db, playlist_id)
    try:
        added = service.add_playlist_screen(db, playlist, screen_id)
    except service.UnknownScreenError as exc:
        raise HTTPException(status_code=404, detail="Screen not found") from exc
    return {"ok": True, "added": added}


@router.delete("/{playlist_id}/screens/{screen_id}", dependencies=[Depends(require_admin)])
def remove_playlist_screen(playlist_id: int, screen_id: int, db: Session = Depends(get_db)):
    playlist = _get_playlist(db, playlist_id)
    return {"ok": True, "removed": service.remove_playlist_screen(db, playlist, screen_id)}
