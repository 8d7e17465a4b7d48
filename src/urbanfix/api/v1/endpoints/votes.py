"""Vote-related endpoints for the UrbanFix API."""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from urbanfix.core.errors import UrbanFixError
from urbanfix.repositories.issue_repo import IssueRepository
from urbanfix.schemas.vote import VoteCreate, VoteResponse
from urbanfix.services.scoring import PriorityScoringEngine

from ..dependencies import CurrentPrincipalDep, SessionDep, raise_http_error

router = APIRouter(prefix="/votes", tags=["votes"])
scoring_engine = PriorityScoringEngine()


def get_scoring_engine_dep() -> PriorityScoringEngine:
    """Return the shared priority scoring engine."""
    return scoring_engine


ScoringEngineDep = Annotated[PriorityScoringEngine, Depends(get_scoring_engine_dep)]


@router.post("/", response_model=VoteResponse, status_code=status.HTTP_201_CREATED)
async def cast_vote(
    vote_data: VoteCreate,
    principal: CurrentPrincipalDep,
    db: SessionDep,
    engine: ScoringEngineDep,
) -> VoteResponse:
    """Cast, switch or retract a vote on an issue.

    Re-sending the current vote type retracts it; sending the opposite type
    switches it. The response carries the authoritative score.

    Args:
        vote_data: Issue id and vote type
        principal: Acting user
        db: Database session
        engine: Priority scoring engine

    Returns:
        Updated score and the caller's vote state
    """
    try:
        outcome = await engine.cast_vote(db, principal, vote_data.issue_id, vote_data.vote_type)
    except UrbanFixError as exc:
        raise_http_error(exc)
    return VoteResponse(
        issue_id=outcome.issue_id,
        priority_score=outcome.priority_score,
        user_vote=outcome.user_vote,
    )


@router.get("/mine")
async def my_votes(principal: CurrentPrincipalDep, db: SessionDep) -> dict[str, str]:
    """Return the caller's votes keyed by issue id, for rendering vote buttons."""
    return PriorityScoringEngine.votes_for_user(db, principal.user_id)


@router.get("/{issue_id}/my-vote", response_model=VoteResponse)
async def my_vote(issue_id: str, principal: CurrentPrincipalDep, db: SessionDep) -> VoteResponse:
    """Return the caller's current vote on an issue alongside its score."""
    issue = IssueRepository(db).get(issue_id)
    if issue is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Issue not found")
    return VoteResponse(
        issue_id=issue.id,
        priority_score=issue.priority_score,
        user_vote=PriorityScoringEngine.current_vote(db, issue_id, principal.user_id),
    )
