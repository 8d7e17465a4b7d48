"""Helpers for syncing principals into ``users`` and enforcing the daily report limit."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime, time, timedelta

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from urbanfix.core.errors import NotFound, RateLimited
from urbanfix.core.security import Principal
from urbanfix.core.settings import settings
from urbanfix.db.time import seconds_until_next_utc_midnight, utc_day
from urbanfix.models.issue import Issue
from urbanfix.models.user import User

__all__ = [
    "DailyReportStatus",
    "claim_new_issue_slot",
    "daily_report_status",
    "ensure_user",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DailyReportStatus:
    """How many new issues a user has created today and when the limit resets."""

    created_today: int
    limit: int
    seconds_until_reset: int

    @property
    def can_create(self) -> bool:
        return self.created_today < self.limit


def ensure_user(db: Session, principal: Principal) -> User:
    """Return the ``users`` row for a principal, creating or refreshing it.

    The identity provider is authoritative for role, email and display name.
    """
    user = db.get(User, principal.user_id)
    if user is None:
        try:
            with db.begin_nested():
                user = User(
                    id=principal.user_id,
                    email=principal.email,
                    full_name=principal.full_name,
                    role=principal.role,
                )
                db.add(user)
        except IntegrityError:
            # Another request inserted the row first.
            user = db.get(User, principal.user_id)
            if user is None:  # pragma: no cover - row vanished between insert and read
                raise
        else:
            logger.info("Registered user %s with role %s", principal.user_id, principal.role)
            return user

    if user.role != principal.role:
        logger.info(
            "Role for user %s changed from %s to %s", user.id, user.role, principal.role
        )
        user.role = principal.role
    if principal.email and user.email != principal.email:
        user.email = principal.email
    if principal.full_name and user.full_name != principal.full_name:
        user.full_name = principal.full_name
    return user


def _day_bounds(moment: datetime) -> tuple[datetime, datetime]:
    start = datetime.combine(utc_day(moment), time.min, UTC)
    return start, start + timedelta(days=1)


def _created_on_day(db: Session, user_id: str, moment: datetime) -> int:
    start, end = _day_bounds(moment)
    return int(
        db.execute(
            select(func.count())
            .select_from(Issue)
            .where(
                Issue.created_by == user_id,
                Issue.created_at >= start,
                Issue.created_at < end,
            )
        ).scalar_one()
    )


def daily_report_status(db: Session, user: User, moment: datetime) -> DailyReportStatus:
    """Return the read-only daily limit status for a user.

    ``last_issue_date`` is stamped on every new issue, so a user whose stamp is
    not today has created nothing today and the count query is skipped.
    """
    if user.last_issue_date == utc_day(moment):
        created_today = _created_on_day(db, user.id, moment)
    else:
        created_today = 0
    return DailyReportStatus(
        created_today=created_today,
        limit=settings.max_issues_per_day,
        seconds_until_reset=seconds_until_next_utc_midnight(moment),
    )


def claim_new_issue_slot(db: Session, user_id: str, moment: datetime) -> None:
    """Reserve one of today's new-issue slots for a user or raise ``RateLimited``.

    The user row is locked for the rest of the transaction so two creations by
    the same user cannot both pass the check.
    """
    # Pending changes from ensure_user must survive the refreshing read below.
    db.flush()
    user = db.execute(
        select(User)
        .where(User.id == user_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).scalars().first()
    if user is None:
        raise NotFound("Reporter is not registered")

    status = daily_report_status(db, user, moment)
    if not status.can_create:
        logger.info(
            "User %s hit the daily limit of %d new issues", user_id, status.limit
        )
        raise RateLimited(
            "You have already reported a new issue today; try again after midnight UTC",
            retry_after_seconds=status.seconds_until_reset,
        )
    user.last_issue_date = utc_day(moment)
