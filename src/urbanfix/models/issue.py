# src/urbanfix/models/issue.py
"""SQLAlchemy models for reported issues and the reports merged into them."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from urbanfix.db.session import Base
from urbanfix.db.time import utcnow

# Lifecycle states: pending -> verified -> addressed (terminal).
ISSUE_STATUS_PENDING = "pending"
ISSUE_STATUS_VERIFIED = "verified"
ISSUE_STATUS_ADDRESSED = "addressed"

ISSUE_STATUSES = (ISSUE_STATUS_PENDING, ISSUE_STATUS_VERIFIED, ISSUE_STATUS_ADDRESSED)
# Only open issues take part in duplicate matching.
OPEN_ISSUE_STATUSES = (ISSUE_STATUS_PENDING, ISSUE_STATUS_VERIFIED)


def _new_id() -> str:
    return str(uuid.uuid4())


class Issue(Base):
    """A reported urban problem.

    Location, image and reporter are evidence and never change after
    creation. ``priority_score`` and ``users_reported`` are only ever changed
    through atomic SQL increments.
    """

    __tablename__ = "issues"
    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'verified', 'addressed')",
            name="ck_issues_status",
        ),
        CheckConstraint("users_reported >= 1", name="ck_issues_users_reported"),
        CheckConstraint(
            "(status = 'addressed') = (addressed_at IS NOT NULL)",
            name="ck_issues_addressed_at",
        ),
        Index("ix_issues_status_latitude", "status", "latitude"),
        Index("ix_issues_status_priority", "status", "priority_score"),
        Index("ix_issues_created_by", "created_by"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    created_by: Mapped[str | None] = mapped_column(
        String(64),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    image_url: Mapped[str] = mapped_column(Text, nullable=False)

    latitude: Mapped[float] = mapped_column(Float, nullable=False)
    longitude: Mapped[float] = mapped_column(Float, nullable=False)
    # Reverse-geocoded label; advisory only, never used for matching.
    address: Mapped[str | None] = mapped_column(Text, nullable=True)

    status: Mapped[str] = mapped_column(String(16), nullable=False, default=ISSUE_STATUS_PENDING)
    ai_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    priority_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    users_reported: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    addressed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    @property
    def is_open(self) -> bool:
        """Return True while the issue can still absorb duplicate reports."""
        return self.status in OPEN_ISSUE_STATUSES


class IssueReport(Base):
    """One reporter's accepted submission, either the original or a merge."""

    __tablename__ = "issue_reports"
    __table_args__ = (
        # A reporter counts once per issue.
        UniqueConstraint("issue_id", "user_id", name="uq_issue_reports_issue_user"),
        Index("ix_issue_reports_issue_id", "issue_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    issue_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("issues.id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id: Mapped[str | None] = mapped_column(
        String(64),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    image_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
