"""Report ingestion: validate, then merge into a nearby open issue or create one."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Literal

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from urbanfix.core.errors import Conflict, Forbidden, TransientStorageError, ValidationError
from urbanfix.core.security import Principal
from urbanfix.core.settings import settings
from urbanfix.db.time import as_utc, utcnow
from urbanfix.models.issue import ISSUE_STATUS_PENDING, Issue, IssueReport
from urbanfix.models.user import USER_ROLE_NGO
from urbanfix.repositories.issue_repo import IssueRepository
from urbanfix.services.duplicates import DuplicateResolver
from urbanfix.services.geocoding import ReverseGeocoder, get_reverse_geocoder
from urbanfix.services.lifecycle import IssueLifecycle
from urbanfix.services.storage import storage_guard
from urbanfix.services.users import claim_new_issue_slot, ensure_user
from urbanfix.utils.geo import GeoPoint, haversine_meters

logger = logging.getLogger(__name__)

ReportAction = Literal["created", "merged", "already_reported"]


@dataclass(frozen=True)
class ReportSubmission:
    """A new photo report as handed over by the client."""

    title: str
    image_url: str
    latitude: float | None
    longitude: float | None
    description: str | None = None
    address: str | None = None


@dataclass(frozen=True)
class ReportOutcome:
    """Which issue a report ended up on and how it got there."""

    issue: Issue
    action: ReportAction
    distance_meters: float | None = None

    @property
    def created(self) -> bool:
        return self.action == "created"


def validate_submission(submission: ReportSubmission) -> tuple[GeoPoint, str, str | None]:
    """Return the parsed location, title and description or raise ``ValidationError``."""
    if submission.latitude is None or submission.longitude is None:
        raise ValidationError("A location is required")
    try:
        point = GeoPoint(float(submission.latitude), float(submission.longitude))
    except (TypeError, ValueError) as exc:
        raise ValidationError(str(exc)) from exc

    if not submission.image_url or not submission.image_url.strip():
        raise ValidationError("A photo is required")

    title = (submission.title or "").strip()
    if not title:
        raise ValidationError("A title is required")
    if len(title) < settings.title_min_length:
        raise ValidationError(
            f"Title must be at least {settings.title_min_length} characters"
        )
    if len(title) > settings.title_max_length:
        raise ValidationError(
            f"Title must be less than {settings.title_max_length} characters"
        )

    description = (submission.description or "").strip() or None
    if description and len(description) > settings.description_max_length:
        raise ValidationError(
            f"Description must be less than {settings.description_max_length} characters"
        )
    return point, title, description


class ReportService:
    """Service running the merge-or-create protocol for new reports."""

    def __init__(
        self,
        resolver: DuplicateResolver | None = None,
        lifecycle: IssueLifecycle | None = None,
        geocoder: ReverseGeocoder | None = None,
    ) -> None:
        self.resolver = resolver or DuplicateResolver()
        self.lifecycle = lifecycle or IssueLifecycle()
        self._geocoder = geocoder

    @property
    def geocoder(self) -> ReverseGeocoder:
        return self._geocoder or get_reverse_geocoder()

    async def submit_report(
        self,
        db: Session,
        principal: Principal,
        submission: ReportSubmission,
        *,
        submitted_at: datetime | None = None,
    ) -> ReportOutcome:
        """Merge a report into the nearest open issue or create a new issue.

        Raises:
            ValidationError: Missing location, title or image reference.
            Forbidden: NGO accounts cannot file reports.
            RateLimited: The report would create a new issue and the reporter
                already created one today.
            Conflict: A concurrent report by the same user was merged first;
                ``issue_id`` names the issue it landed on.
        """
        point, title, description = validate_submission(submission)
        if principal.role == USER_ROLE_NGO:
            raise Forbidden("NGO accounts cannot file reports")

        moment = as_utc(submitted_at or utcnow())

        async with self.resolver.cluster_lock(db, point):
            with storage_guard(db, "submit_report"):
                ensure_user(db, principal)
                match = self.resolver.find_match(db, point, moment)
                if match is not None:
                    outcome = self._merge(db, principal, match, submission, point, moment)
                else:
                    outcome = self._create(
                        db, principal, submission, point, title, description, moment
                    )
                db.commit()

        db.refresh(outcome.issue)
        if outcome.created and outcome.issue.address is None:
            await self._enrich_address(db, outcome.issue, point)
        return outcome

    def _merge(
        self,
        db: Session,
        principal: Principal,
        issue: Issue,
        submission: ReportSubmission,
        point: GeoPoint,
        moment: datetime,
    ) -> ReportOutcome:
        distance = haversine_meters(point, GeoPoint(issue.latitude, issue.longitude))
        repo = IssueRepository(db)
        if repo.has_report(issue.id, principal.user_id):
            logger.info("User %s already reported issue %s", principal.user_id, issue.id)
            return ReportOutcome(issue=issue, action="already_reported", distance_meters=distance)

        try:
            with db.begin_nested():
                db.add(
                    IssueReport(
                        issue_id=issue.id,
                        user_id=principal.user_id,
                        image_url=submission.image_url,
                        created_at=moment,
                    )
                )
        except IntegrityError as exc:
            raise Conflict(
                "This report was already merged by a concurrent request",
                issue_id=issue.id,
            ) from exc

        repo.increment_users_reported(issue.id, now=moment)
        db.refresh(issue)
        self.lifecycle.evaluate_verification(issue, now=moment)
        logger.info(
            "Merged report by %s into issue %s (%.1fm away, %d reporters)",
            principal.user_id,
            issue.id,
            distance,
            issue.users_reported,
        )
        return ReportOutcome(issue=issue, action="merged", distance_meters=distance)

    def _create(
        self,
        db: Session,
        principal: Principal,
        submission: ReportSubmission,
        point: GeoPoint,
        title: str,
        description: str | None,
        moment: datetime,
    ) -> ReportOutcome:
        claim_new_issue_slot(db, principal.user_id, moment)

        issue = Issue(
            created_by=principal.user_id,
            title=title,
            description=description,
            image_url=submission.image_url,
            latitude=point.latitude,
            longitude=point.longitude,
            address=(submission.address or "").strip() or None,
            status=ISSUE_STATUS_PENDING,
            ai_verified=False,
            priority_score=0,
            users_reported=1,
            created_at=moment,
            updated_at=moment,
        )
        db.add(issue)
        db.flush()
        db.add(
            IssueReport(
                issue_id=issue.id,
                user_id=principal.user_id,
                image_url=submission.image_url,
                created_at=moment,
            )
        )
        self.lifecycle.evaluate_verification(issue, now=moment)
        logger.info("User %s created issue %s", principal.user_id, issue.id)
        return ReportOutcome(issue=issue, action="created")

    async def _enrich_address(self, db: Session, issue: Issue, point: GeoPoint) -> None:
        geocoder = self.geocoder
        if not geocoder.enabled:
            return
        address = await geocoder.reverse(point)
        if address is None:
            return
        try:
            with storage_guard(db, "enrich_address"):
                issue.address = address
                db.commit()
        except TransientStorageError:
            logger.warning("Could not store address for issue %s", issue.id)
            return
        db.refresh(issue)
