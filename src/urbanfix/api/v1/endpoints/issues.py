"""Issue-related endpoints for the UrbanFix API."""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from urbanfix.core.errors import Conflict, UrbanFixError
from urbanfix.core.settings import settings
from urbanfix.models import Issue, IssueReport
from urbanfix.models.issue import ISSUE_STATUSES
from urbanfix.repositories.issue_repo import IssueRepository, find_nearby_issues
from urbanfix.schemas.issue import (
    AiVerificationUpdate,
    IssueCreate,
    IssueReportResponse,
    IssueResponse,
    IssueStats,
    IssueStatusFilter,
    ReportResponse,
)
from urbanfix.services.lifecycle import IssueLifecycle
from urbanfix.services.reports import ReportService, ReportSubmission

from ..dependencies import CurrentPrincipalDep, SessionDep, raise_http_error

router = APIRouter(prefix="/issues", tags=["issues"])
report_service = ReportService()
lifecycle = IssueLifecycle()


def get_report_service_dep() -> ReportService:
    """Return the shared report ingestion service."""
    return report_service


def get_lifecycle_dep() -> IssueLifecycle:
    """Return the shared lifecycle service."""
    return lifecycle


ReportServiceDep = Annotated[ReportService, Depends(get_report_service_dep)]
LifecycleDep = Annotated[IssueLifecycle, Depends(get_lifecycle_dep)]


def _get_issue_or_404(repo: IssueRepository, issue_id: str) -> Issue:
    issue = repo.get(issue_id)
    if issue is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Issue not found")
    return issue


def _limit(limit: int | None) -> int:
    if limit is None:
        return settings.feed_default_limit
    return min(limit, settings.feed_max_limit)


@router.get("/", response_model=list[IssueResponse])
async def list_issues(
    db: SessionDep,
    status_filter: IssueStatusFilter = Query(
        "verified", alias="status", description="Lifecycle state to list, or 'all'"
    ),
    limit: int | None = Query(None, ge=1, description="Maximum number of issues to return"),
    offset: int = Query(0, ge=0),
) -> list[Issue]:
    """List issues in triage order (score descending, oldest first on ties).

    Args:
        db: Database session
        status_filter: Lifecycle state to include; defaults to verified issues
        limit: Maximum number of issues to return (capped by configuration)
        offset: Number of issues to skip for pagination

    Returns:
        List of Issue objects
    """
    statuses = ISSUE_STATUSES if status_filter == "all" else (status_filter,)
    return IssueRepository(db).list_by_status(statuses, limit=_limit(limit), offset=offset)


@router.get("/triage", response_model=list[IssueResponse])
async def triage_queue(
    db: SessionDep,
    limit: int | None = Query(None, ge=1),
    offset: int = Query(0, ge=0),
) -> list[Issue]:
    """Return verified issues in the order NGOs should work them."""
    return IssueRepository(db).triage(limit=_limit(limit), offset=offset)


@router.get("/stats", response_model=IssueStats)
async def issue_stats(db: SessionDep) -> IssueStats:
    """Return issue counts per lifecycle state."""
    counts = IssueRepository(db).status_counts()
    return IssueStats(**counts, total=sum(counts.values()))


@router.get("/nearby")
async def nearby_issues(
    db: SessionDep,
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
) -> list[dict[str, str | float]]:
    """Preview which open issues a report at ``(lat, lng)`` would merge into.

    Radius and window are the server's duplicate-detection constants.
    """
    matches = find_nearby_issues(
        db,
        lat,
        lng,
        settings.duplicate_radius_meters,
        settings.duplicate_window_days,
    )
    return [
        {"issue_id": issue_id, "distance_meters": round(distance, 2)}
        for issue_id, distance in matches
    ]


@router.get("/{issue_id}", response_model=IssueResponse)
async def get_issue(issue_id: str, db: SessionDep) -> Issue:
    """Get a specific issue by ID.

    Raises:
        HTTPException: If the issue does not exist
    """
    return _get_issue_or_404(IssueRepository(db), issue_id)


@router.get("/{issue_id}/reports", response_model=list[IssueReportResponse])
async def list_issue_reports(issue_id: str, db: SessionDep) -> list[IssueReport]:
    """Return every report that was merged into an issue, oldest first."""
    repo = IssueRepository(db)
    _get_issue_or_404(repo, issue_id)
    return repo.list_reports(issue_id)


@router.post(
    "/",
    response_model=ReportResponse,
    status_code=status.HTTP_201_CREATED,
)
async def submit_report(
    payload: IssueCreate,
    principal: CurrentPrincipalDep,
    db: SessionDep,
    service: ReportServiceDep,
    response: Response,
) -> ReportResponse:
    """Submit a photo report.

    A report within the duplicate radius of a recent open issue is merged into
    it (200); otherwise a new issue is created (201).

    Raises:
        HTTPException: 422 on invalid input, 403 for NGO accounts, 429 when the
            daily new-issue limit is reached, 503 on storage failure
    """
    submission = ReportSubmission(
        title=payload.title,
        description=payload.description,
        image_url=payload.image_url,
        latitude=payload.latitude,
        longitude=payload.longitude,
        address=payload.address,
    )
    try:
        outcome = await service.submit_report(db, principal, submission)
    except Conflict as exc:
        # A concurrent submission by the same user already landed on this issue.
        issue = IssueRepository(db).get(exc.issue_id) if exc.issue_id else None
        if issue is None:
            raise_http_error(exc)
        response.status_code = status.HTTP_200_OK
        return ReportResponse(
            action="already_reported",
            issue=IssueResponse.model_validate(issue),
        )
    except UrbanFixError as exc:
        raise_http_error(exc)

    if not outcome.created:
        response.status_code = status.HTTP_200_OK
    return ReportResponse(
        action=outcome.action,
        distance_meters=outcome.distance_meters,
        issue=IssueResponse.model_validate(outcome.issue),
    )


@router.post("/{issue_id}/address", response_model=IssueResponse)
async def mark_issue_addressed(
    issue_id: str,
    principal: CurrentPrincipalDep,
    db: SessionDep,
    service: LifecycleDep,
) -> Issue:
    """Mark a verified issue as resolved (NGO or admin only)."""
    try:
        return await service.mark_addressed(db, principal, issue_id)
    except UrbanFixError as exc:
        raise_http_error(exc)


@router.post("/{issue_id}/ai-verification", response_model=IssueResponse)
async def record_ai_verification(
    issue_id: str,
    payload: AiVerificationUpdate,
    principal: CurrentPrincipalDep,
    db: SessionDep,
    service: LifecycleDep,
) -> Issue:
    """Record the AI verifier's verdict; a positive verdict verifies a pending issue."""
    try:
        return await service.set_ai_verified(db, principal, issue_id, payload.ai_verified)
    except UrbanFixError as exc:
        raise_http_error(exc)
