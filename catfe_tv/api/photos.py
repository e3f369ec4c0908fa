import logging
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from catfe_tv.db import get_db
from catfe_tv.models.photo import PhotoLike, PhotoSubmission
from catfe_tv.schemas.photo import FingerprintIn, PhotoOut, PhotoSubmitIn, RejectIn
from catfe_tv.security import require_admin
from catfe_tv.services.clock import utc_now
from catfe_tv.services.storage import delete_photo, save_photo

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/photos", tags=["photos"])

PhotoType = Literal["happy_tails", "snap_purr"]


def _get_photo(db: Session, photo_id: int) -> PhotoSubmission:
    photo = db.get(PhotoSubmission, photo_id)
    if not photo:
        raise HTTPException(status_code=404, detail="Photo not found")
    return photo


def _visible(db: Session, photo_type: str):
    return db.query(PhotoSubmission).filter(
        PhotoSubmission.type == photo_type,
        PhotoSubmission.status == "approved",
        PhotoSubmission.show_on_tv.is_(True),
    )


def _find_like(db: Session, photo_id: int, fingerprint: str) -> PhotoLike | None:
    return (
        db.query(PhotoLike)
        .filter(PhotoLike.photo_id == photo_id, PhotoLike.voter_fingerprint == fingerprint)
        .first()
    )


@router.post("")
def submit_photo(payload: PhotoSubmitIn, db: Session = Depends(get_db)):
    try:
        photo_path, size = save_photo(payload.photo_base64, payload.type)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except OSError as exc:
        logger.error("Photo storage failed: %s", exc)
        raise HTTPException(status_code=500, detail="Failed to store photo. Please try again.") from exc

    photo = PhotoSubmission(
        type=payload.type,
        submitter_name=payload.submitter_name,
        submitter_email=payload.submitter_email or None,
        photo_path=photo_path,
        caption=payload.caption or None,
        cat_name=payload.cat_name or None,
        status="pending",
    )
    db.add(photo)
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        delete_photo(photo_path)
        logger.error("Photo submission insert failed, removed %s: %s", photo_path, exc)
        raise HTTPException(status_code=500, detail="Failed to store photo. Please try again.") from exc
    db.refresh(photo)
    logger.info("New %s submission %s from %s (%d bytes)", photo.type, photo.id, photo.submitter_name, size)
    return {"id": photo.id, "message": "Photo submitted for review!"}


@router.get("/approved", response_model=list[PhotoOut])
def list_approved(type: PhotoType, db: Session = Depends(get_db)):
    return _visible(db, type).order_by(PhotoSubmission.created_at.desc(), PhotoSubmission.id.desc()).all()


@router.get("/by-likes", response_model=list[PhotoOut])
def list_by_likes(type: PhotoType, limit: int = 20, db: Session = Depends(get_db)):
    limit = max(1, min(limit, 100))
    return (
        _visible(db, type)
        .order_by(PhotoSubmission.likes_count.desc(), PhotoSubmission.created_at.desc(), PhotoSubmission.id.desc())
        .limit(limit)
        .all()
    )


@router.get("/featured", response_model=list[PhotoOut])
def list_featured(db: Session = Depends(get_db)):
    return (
        db.query(PhotoSubmission)
        .filter(
            PhotoSubmission.status == "approved",
            PhotoSubmission.show_on_tv.is_(True),
            PhotoSubmission.is_featured.is_(True),
        )
        .order_by(PhotoSubmission.created_at.desc(), PhotoSubmission.id.desc())
        .all()
    )


@router.get("/liked")
def list_liked_ids(fingerprint: str, db: Session = Depends(get_db)):
    rows = db.query(PhotoLike.photo_id).filter(PhotoLike.voter_fingerprint == fingerprint).all()
    return {"photo_ids": sorted(photo_id for (photo_id,) in rows)}


@router.get("/pending", response_model=list[PhotoOut], dependencies=[Depends(require_admin)])
def list_pending(db: Session = Depends(get_db)):
    return (
        db.query(PhotoSubmission)
        .filter(PhotoSubmission.status == "pending")
        .order_by(PhotoSubmission.created_at.asc(), PhotoSubmission.id.asc())
        .all()
    )


@router.get("/stats", dependencies=[Depends(require_admin)])
def photo_stats(db: Session = Depends(get_db)):
    photos = db.query(PhotoSubmission.type, PhotoSubmission.status).all()
    return {
        "pending": sum(1 for _, status in photos if status == "pending"),
        "approved": sum(1 for _, status in photos if status == "approved"),
        "rejected": sum(1 for _, status in photos if status == "rejected"),
        "happy_tails": sum(1 for kind, status in photos if kind == "happy_tails" and status == "approved"),
        "snap_purr": sum(1 for kind, status in photos if kind == "snap_purr" and status == "approved"),
    }


@router.get("", response_model=list[PhotoOut], dependencies=[Depends(require_admin)])
def list_photos(db: Session = Depends(get_db)):
    return db.query(PhotoSubmission).order_by(PhotoSubmission.created_at.desc(), PhotoSubmission.id.desc()).all()


@router.get("/{photo_id}/liked")
def has_liked(photo_id: int, fingerprint: str, db: Session = Depends(get_db)):
    return {"has_liked": _find_like(db, photo_id, fingerprint) is not None}


@router.post("/{photo_id}/like")
def like_photo(photo_id: int, payload: FingerprintIn, db: Session = Depends(get_db)):
    photo = _get_photo(db, photo_id)
    if _find_like(db, photo.id, payload.fingerprint):
        return {"success": False, "error": "Already liked", "already_liked": True}
    db.add(PhotoLike(photo_id=photo.id, voter_fingerprint=payload.fingerprint))
    photo.likes_count = (photo.likes_count or 0) + 1
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        return {"success": False, "error": "Already liked", "already_liked": True}
    return {"success": True, "likes_count": photo.likes_count}


@router.post("/{photo_id}/unlike")
def unlike_photo(photo_id: int, payload: FingerprintIn, db: Session = Depends(get_db)):
    photo = _get_photo(db, photo_id)
    like = _find_like(db, photo.id, payload.fingerprint)
    if not like:
        return {"success": False, "error": "Not liked"}
    db.delete(like)
    photo.likes_count = max(0, (photo.likes_count or 0) - 1)
    db.commit()
    return {"success": True, "likes_count": photo.likes_count}


@router.post("/{photo_id}/approve", response_model=PhotoOut, dependencies=[Depends(require_admin)])
def approve_photo(photo_id: int, db: Session = Depends(get_db)):
    photo = _get_photo(db, photo_id)
    photo.status = "approved"
    photo.rejection_reason = None
    photo.reviewed_at = utc_now()
    db.commit()
    db.refresh(photo)
    return photo


@router.post("/{photo_id}/reject", response_model=PhotoOut, dependencies=[Depends(require_admin)])
def reject_photo(photo_id: int, payload: RejectIn | None = None, db: Session = Depends(get_db)):
    photo = _get_photo(db, photo_id)
    photo.status = "rejected"
    photo.rejection_reason = payload.reason if payload else None
    photo.reviewed_at = utc_now()
    db.commit()
    db.refresh(photo)
    return photo


@router.put("/{photo_id}/visibility", response_model=PhotoOut, dependencies=[Depends(require_admin)])
def set_visibility(photo_id: int, show_on_tv: bool, db: Session = Depends(get_db)):
    photo = _get_photo(db, photo_id)
    photo.show_on_tv = show_on_tv
    db.commit()
    db.refresh(photo)
    return photo


@router.put("/{photo_id}/featured", response_model=PhotoOut, dependencies=[Depends(require_admin)])
def set_featured(photo_id: int, is_featured: bool, db: Session = Depends(get_db)):
    photo = _get_photo(db, photo_id)
    photo.is_featured = is_featured
    db.commit()
    db.refresh(photo)
    return photo


@router.delete("/{photo_id}", dependencies=[Depends(require_admin)])
def delete_photo_submission(photo_id: int, db: Session = Depends(get_db)):
    photo = _get_photo(db, photo_id)
    db.query(PhotoLike).filter(PhotoLike.photo_id == photo.id).delete(synchronize_session=False)
    path = photo.photo_path
    db.delete(photo)
    db.commit()
    delete_photo(path)
    return {"ok": True}
