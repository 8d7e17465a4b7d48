"""Data access helpers for working with issues."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from urbanfix.db.time import as_utc, utcnow
from urbanfix.models.issue import (
    ISSUE_STATUS_VERIFIED,
    ISSUE_STATUSES,
    OPEN_ISSUE_STATUSES,
    Issue,
    IssueReport,
)
from urbanfix.utils.geo import GeoPoint, bounding_box, haversine_meters

__all__ = ["IssueRepository", "NearbyIssue", "find_nearby_issues"]

# Absorbs float noise so that a report at exactly the radius counts as inside.
_BOUNDARY_TOLERANCE_METERS = 1e-6


@dataclass(frozen=True)
class NearbyIssue:
    """One proximity match: an open issue and its distance from the query point."""

    issue_id: str
    distance_meters: float
    created_at: datetime


class IssueRepository:
    """Thin wrapper around database access for issue entities."""

    def __init__(self, session: Session) -> None:
        """Initialize the repository with a SQLAlchemy session."""
        self.session = session

    def get(self, issue_id: str) -> Issue | None:
        """Return an issue by identifier."""
        return self.session.get(Issue, issue_id)

    def get_for_update(self, issue_id: str) -> Issue | None:
        """Return an issue with its row locked until the transaction ends."""
        result = self.session.execute(
            select(Issue)
            .where(Issue.id == issue_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    def find_nearby(
        self,
        point: GeoPoint,
        radius_meters: float,
        days_back: int,
        *,
        now: datetime | None = None,
    ) -> list[NearbyIssue]:
        """Return open issues within ``radius_meters`` created in the last ``days_back`` days.

        Results are nearest first; equal distances put the oldest issue first,
        then fall back to the identifier so the order is total. The boundary is
        inclusive. Addressed issues never match.
        """
        moment = as_utc(now or utcnow())
        cutoff = moment - timedelta(days=days_back)
        box = bounding_box(point, radius_meters)

        stmt = select(Issue.id, Issue.latitude, Issue.longitude, Issue.created_at).where(
            Issue.status.in_(OPEN_ISSUE_STATUSES),
            Issue.created_at >= cutoff,
            Issue.created_at <= moment,
            Issue.latitude.between(box.min_latitude, box.max_latitude),
        )
        # Boxes that wrap the antimeridian are filtered in Python instead.
        if -180.0 <= box.min_longitude and box.max_longitude <= 180.0:
            stmt = stmt.where(Issue.longitude.between(box.min_longitude, box.max_longitude))

        matches: list[NearbyIssue] = []
        for issue_id, latitude, longitude, created_at in self.session.execute(stmt):
            distance = haversine_meters(point, GeoPoint(latitude, longitude))
            if distance <= radius_meters + _BOUNDARY_TOLERANCE_METERS:
                matches.append(
                    NearbyIssue(
                        issue_id=issue_id,
                        distance_meters=distance,
                        created_at=as_utc(created_at),
                    )
                )
        matches.sort(key=lambda match: (match.distance_meters, match.created_at, match.issue_id))
        return matches

    def increment_users_reported(self, issue_id: str, *, now: datetime) -> None:
        """Atomically add one reporter to an issue and refresh ``updated_at``."""
        self.session.execute(
            update(Issue)
            .where(Issue.id == issue_id)
            .values(users_reported=Issue.users_reported + 1, updated_at=now)
            .execution_options(synchronize_session=False)
        )

    def adjust_priority(self, issue_id: str, delta: int) -> None:
        """Atomically apply a vote delta to the stored score."""
        if delta == 0:
            return
        self.session.execute(
            update(Issue)
            .where(Issue.id == issue_id)
            .values(priority_score=Issue.priority_score + delta)
            .execution_options(synchronize_session=False)
        )

    def has_report(self, issue_id: str, user_id: str) -> bool:
        """Return True if ``user_id`` is already counted on ``issue_id``."""
        stmt = select(IssueReport.id).where(
            IssueReport.issue_id == issue_id,
            IssueReport.user_id == user_id,
        )
        return self.session.execute(stmt).first() is not None

    def list_reports(self, issue_id: str) -> list[IssueReport]:
        """Return the reports merged into an issue, oldest first."""
        result = self.session.execute(
            select(IssueReport)
            .where(IssueReport.issue_id == issue_id)
            .order_by(IssueReport.created_at.asc(), IssueReport.id.asc())
        )
        return list(result.scalars())

    def list_by_status(
        self,
        statuses: tuple[str, ...],
        *,
        limit: int,
        offset: int = 0,
    ) -> list[Issue]:
        """Return issues in triage order: score descending, then oldest first."""
        result = self.session.execute(
            select(Issue)
            .where(Issue.status.in_(statuses))
            .order_by(Issue.priority_score.desc(), Issue.created_at.asc(), Issue.id.asc())
            .offset(offset)
            .limit(limit)
        )
        return list(result.scalars())

    def triage(self, *, limit: int, offset: int = 0) -> list[Issue]:
        """Return verified issues in the order NGOs should work them."""
        return self.list_by_status((ISSUE_STATUS_VERIFIED,), limit=limit, offset=offset)

    def status_counts(self) -> dict[str, int]:
        """Return the number of issues in each lifecycle state."""
        counts = {status: 0 for status in ISSUE_STATUSES}
        rows = self.session.execute(
            select(Issue.status, func.count()).group_by(Issue.status)
        )
        for status, total in rows:
            counts[status] = int(total)
        return counts

    def count_created_by(self, user_id: str) -> int:
        """Return how many issues a user originally created."""
        return int(
            self.session.execute(
                select(func.count()).select_from(Issue).where(Issue.created_by == user_id)
            ).scalar_one()
        )


def find_nearby_issues(
    db: Session,
    lat: float,
    lng: float,
    radius_meters: float,
    days_back: int,
    *,
    now: datetime | None = None,
) -> list[tuple[str, float]]:
    """Stored geoproximity query: ``(issue_id, distance_meters)`` pairs, nearest first."""
    matches = IssueRepository(db).find_nearby(
        GeoPoint(lat, lng), radius_meters, days_back, now=now
    )
    return [(match.issue_id, match.distance_meters) for match in matches]
