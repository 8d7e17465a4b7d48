# src/urbanfix/models/vote.py
"""Models capturing community votes on issues."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from urbanfix.db.session import Base
from urbanfix.db.time import utcnow

VOTE_UPVOTE = "upvote"
VOTE_DOWNVOTE = "downvote"
VOTE_TYPES = (VOTE_UPVOTE, VOTE_DOWNVOTE)


class IssueVote(Base):
    """A user's current stance on one issue."""

    __tablename__ = "issue_votes"
    __table_args__ = (
        CheckConstraint("vote_type IN ('upvote', 'downvote')", name="ck_issue_votes_vote_type"),
        Index("ix_issue_votes_user_id", "user_id"),
    )

    # Composite primary key: one row per (issue, user), never both directions.
    issue_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("issues.id", ondelete="CASCADE"),
        primary_key=True,
    )
    user_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    )
    vote_type: Mapped[str] = mapped_column(String(8), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )
