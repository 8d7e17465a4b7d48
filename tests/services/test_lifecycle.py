"""Tests for the issue lifecycle state machine."""

import pytest

from urbanfix.core.errors import Conflict, Forbidden, InvalidTransition, NotFound
from urbanfix.db.time import utcnow
from urbanfix.models import Issue
from urbanfix.models.issue import (
    ISSUE_STATUS_ADDRESSED,
    ISSUE_STATUS_PENDING,
    ISSUE_STATUS_VERIFIED,
)
from urbanfix.services.lifecycle import IssueLifecycle, can_transition

pytestmark = pytest.mark.asyncio


@pytest.mark.parametrize(
    ("current", "target", "allowed"),
    [
        ("pending", "verified", True),
        ("verified", "addressed", True),
        ("pending", "addressed", False),
        ("verified", "pending", False),
        ("addressed", "verified", False),
        ("addressed", "pending", False),
        ("addressed", "addressed", False),
    ],
)
async def test_transition_table(current, target, allowed) -> None:
    assert can_transition(current, target) is allowed


async def test_single_report_stays_pending() -> None:
    issue = Issue(status=ISSUE_STATUS_PENDING, users_reported=1, ai_verified=False)

    assert IssueLifecycle(crowd_verify_threshold=2).evaluate_verification(issue) is False
    assert issue.status == ISSUE_STATUS_PENDING


async def test_crowd_threshold_verifies() -> None:
    issue = Issue(status=ISSUE_STATUS_PENDING, users_reported=2, ai_verified=False)

    assert IssueLifecycle(crowd_verify_threshold=2).evaluate_verification(issue) is True
    assert issue.status == ISSUE_STATUS_VERIFIED


async def test_ai_flag_verifies_single_report() -> None:
    issue = Issue(status=ISSUE_STATUS_PENDING, users_reported=1, ai_verified=True)

    assert IssueLifecycle().evaluate_verification(issue) is True
    assert issue.status == ISSUE_STATUS_VERIFIED


async def test_evaluation_never_moves_addressed_issue() -> None:
    issue = Issue(
        status=ISSUE_STATUS_ADDRESSED,
        users_reported=10,
        ai_verified=True,
        addressed_at=utcnow(),
    )

    assert IssueLifecycle().evaluate_verification(issue) is False
    assert issue.status == ISSUE_STATUS_ADDRESSED


async def test_ngo_marks_verified_issue_addressed(db_session, issue_factory, ngo) -> None:
    issue = issue_factory(status=ISSUE_STATUS_VERIFIED, users_reported=2)

    updated = await IssueLifecycle().mark_addressed(db_session, ngo, issue.id)

    assert updated.status == ISSUE_STATUS_ADDRESSED
    assert updated.addressed_at is not None


async def test_admin_may_mark_addressed(db_session, issue_factory, admin) -> None:
    issue = issue_factory(status=ISSUE_STATUS_VERIFIED, users_reported=2)

    updated = await IssueLifecycle().mark_addressed(db_session, admin, issue.id)

    assert updated.status == ISSUE_STATUS_ADDRESSED


async def test_citizen_cannot_mark_addressed(db_session, issue_factory, citizen) -> None:
    issue = issue_factory(status=ISSUE_STATUS_VERIFIED, users_reported=2)

    with pytest.raises(Forbidden):
        await IssueLifecycle().mark_addressed(db_session, citizen, issue.id)

    db_session.expire_all()
    assert db_session.get(Issue, issue.id).status == ISSUE_STATUS_VERIFIED


async def test_pending_issue_cannot_be_addressed(db_session, issue_factory, ngo) -> None:
    issue = issue_factory()

    with pytest.raises(InvalidTransition) as excinfo:
        await IssueLifecycle().mark_addressed(db_session, ngo, issue.id)

    assert isinstance(excinfo.value, Conflict)
    db_session.expire_all()
    assert db_session.get(Issue, issue.id).status == ISSUE_STATUS_PENDING


async def test_addressed_issue_is_terminal(db_session, issue_factory, ngo) -> None:
    issue = issue_factory(status=ISSUE_STATUS_ADDRESSED, addressed_at=utcnow())

    with pytest.raises(InvalidTransition):
        await IssueLifecycle().mark_addressed(db_session, ngo, issue.id)


async def test_mark_missing_issue(db_session, ngo) -> None:
    with pytest.raises(NotFound):
        await IssueLifecycle().mark_addressed(db_session, ngo, "does-not-exist")


async def test_ai_verdict_verifies_pending_issue(db_session, issue_factory, admin) -> None:
    issue = issue_factory()

    updated = await IssueLifecycle().set_ai_verified(db_session, admin, issue.id, True)

    assert updated.ai_verified is True
    assert updated.status == ISSUE_STATUS_VERIFIED


async def test_clearing_ai_flag_keeps_status(db_session, issue_factory, admin) -> None:
    issue = issue_factory(status=ISSUE_STATUS_VERIFIED, ai_verified=True)

    updated = await IssueLifecycle().set_ai_verified(db_session, admin, issue.id, False)

    assert updated.ai_verified is False
    assert updated.status == ISSUE_STATUS_VERIFIED


async def test_only_admin_records_ai_verdict(db_session, issue_factory, ngo) -> None:
    issue = issue_factory()

    with pytest.raises(Forbidden):
        await IssueLifecycle().set_ai_verified(db_session, ngo, issue.id, True)
