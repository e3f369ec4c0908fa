from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, UniqueConstraint

from catfe_tv.db import Base
from catfe_tv.services.clock import utc_now


class PhotoSubmission(Base):
    __tablename__ = "photo_submission"
    id = Column(Integer, primary_key=True, autoincrement=True)
    type = Column(String(16), nullable=False)  # happy_tails | snap_purr
    submitter_name = Column(String(255), nullable=False)
    submitter_email = Column(String(320), nullable=True)
    photo_path = Column(String(1024), nullable=False)
    caption = Column(String(500), nullable=True)
    cat_name = Column(String(255), nullable=True)
    status = Column(String(16), nullable=False, default="pending")
    show_on_tv = Column(Boolean, nullable=False, default=True)
    is_featured = Column(Boolean, nullable=False, default=False)
    likes_count = Column(Integer, nullable=False, default=0)
    rejection_reason = Column(String(500), nullable=True)
    created_at = Column(DateTime, default=utc_now)
    reviewed_at = Column(DateTime, nullable=True)


class PhotoLike(Base):
    __tablename__ = "photo_like"
    __table_args__ = (UniqueConstraint("photo_id", "voter_fingerprint", name="ux_photo_like_fingerprint"),)
    id = Column(Integer, primary_key=True, autoincrement=True)
    photo_id = Column(Integer, ForeignKey("photo_submission.id"), nullable=False)
    voter_fingerprint = Column(String(64), nullable=False)
    created_at = Column(DateTime, default=utc_now)
