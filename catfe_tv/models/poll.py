from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint

from catfe_tv.db import Base
from catfe_tv.services.clock import utc_now


class Poll(Base):
    __tablename__ = "poll"
    id = Column(Integer, primary_key=True, autoincrement=True)
    question = Column(String(255), nullable=False)
    options = Column(Text, nullable=False, default="[]")  # JSON: [{"id", "text", "image_url"}]
    status = Column(String(16), nullable=False, default="draft")
    sort_order = Column(Integer, nullable=False, default=0)
    total_votes = Column(Integer, nullable=False, default=0)
    is_recurring = Column(Boolean, nullable=False, default=False)
    last_shown_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utc_now)


class PollVote(Base):
    __tablename__ = "poll_vote"
    __table_args__ = (UniqueConstraint("poll_id", "voter_fingerprint", name="ux_poll_vote_fingerprint"),)
    id = Column(Integer, primary_key=True, autoincrement=True)
    poll_id = Column(Integer, ForeignKey("poll.id"), nullable=False)
    option_id = Column(String(64), nullable=False)
    voter_fingerprint = Column(String(64), nullable=False)
    created_at = Column(DateTime, default=utc_now)
