# src/urbanfix/models/user.py
"""SQLAlchemy models for users known to the identity provider."""

from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import CheckConstraint, Date, DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from urbanfix.db.session import Base
from urbanfix.db.time import utcnow

USER_ROLE_USER = "user"
USER_ROLE_NGO = "ngo"
USER_ROLE_ADMIN = "admin"


class User(Base):
    """Mirror of an identity-provider account.

    The provider is authoritative for ``role``; the row is refreshed whenever a
    token for the user is seen.
    """

    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint("role IN ('user', 'ngo', 'admin')", name="ck_users_role"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    email: Mapped[str | None] = mapped_column(Text, nullable=True)
    full_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    role: Mapped[str] = mapped_column(String(16), nullable=False, default=USER_ROLE_USER)

    # UTC day of the last newly created issue; drives the daily report limit.
    last_issue_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )
