"""Tests for report ingestion: merge-or-create, rate limiting and enrichment."""

import asyncio
from contextlib import asynccontextmanager
from datetime import UTC, datetime, timedelta

import httpx
import pytest

from urbanfix.core.errors import Conflict, Forbidden, RateLimited, ValidationError
from urbanfix.core.security import Principal
from urbanfix.models import Issue, IssueReport, User
from urbanfix.models.issue import (
    ISSUE_STATUS_ADDRESSED,
    ISSUE_STATUS_PENDING,
    ISSUE_STATUS_VERIFIED,
)
from urbanfix.repositories.issue_repo import IssueRepository, find_nearby_issues
from urbanfix.services.duplicates import DuplicateResolver
from urbanfix.services.geocoding import GeocoderConfig, ReverseGeocoder
from urbanfix.services.lifecycle import IssueLifecycle
from urbanfix.services.reports import ReportService, ReportSubmission, validate_submission
from urbanfix.services.scoring import PriorityScoringEngine
from urbanfix.utils.geo import GeoPoint, haversine_meters

pytestmark = pytest.mark.asyncio

T0 = datetime(2026, 3, 2, 8, 0, tzinfo=UTC)


def _submission(latitude: float = 18.5204, longitude: float = 73.8567, **overrides) -> ReportSubmission:
    fields = {
        "title": "Pothole on FC Road",
        "image_url": "https://img.example.org/pothole.jpg",
        "latitude": latitude,
        "longitude": longitude,
        "description": "Deep pothole near the bus stop",
    }
    fields.update(overrides)
    return ReportSubmission(**fields)


def _disabled_geocoder() -> ReverseGeocoder:
    return ReverseGeocoder(
        GeocoderConfig(enabled=False, base_url="http://geo.test", timeout_seconds=1, user_agent="t")
    )


class _SlowClusterResolver(DuplicateResolver):
    """Resolver that yields to the event loop while holding the cluster lock."""

    def __init__(self) -> None:
        super().__init__()
        self.waiting = 0
        self.peak_waiting = 0

    @asynccontextmanager
    async def cluster_lock(self, db, point):
        self.waiting += 1
        self.peak_waiting = max(self.peak_waiting, self.waiting)
        async with super().cluster_lock(db, point):
            self.waiting -= 1
            await asyncio.sleep(0.01)
            yield


@pytest.fixture()
def service() -> ReportService:
    return ReportService(geocoder=_disabled_geocoder())


async def test_end_to_end_pothole_lifecycle(db_session, service) -> None:
    user_a = Principal(user_id="user-a")
    user_b = Principal(user_id="user-b")
    user_c = Principal(user_id="user-c")
    user_d = Principal(user_id="user-d")
    user_e = Principal(user_id="user-e")
    ngo = Principal(user_id="ngo-x", role="ngo")

    created = await service.submit_report(
        db_session, user_a, _submission(18.5204, 73.8567), submitted_at=T0
    )
    assert created.action == "created"
    assert created.issue.users_reported == 1
    assert created.issue.status == ISSUE_STATUS_PENDING

    merged = await service.submit_report(
        db_session,
        user_b,
        _submission(18.5205, 73.8568),
        submitted_at=T0 + timedelta(hours=1),
    )
    assert merged.action == "merged"
    assert merged.issue.id == created.issue.id
    assert merged.issue.users_reported == 2
    assert merged.issue.status == ISSUE_STATUS_VERIFIED
    assert 14.0 < merged.distance_meters < 16.0

    engine = PriorityScoringEngine()
    await engine.cast_vote(db_session, user_c, created.issue.id, "upvote")
    outcome = await engine.cast_vote(db_session, user_d, created.issue.id, "upvote")
    assert outcome.priority_score == 2

    addressed = await IssueLifecycle().mark_addressed(
        db_session, ngo, created.issue.id, now=T0 + timedelta(hours=1, minutes=30)
    )
    assert addressed.status == ISSUE_STATUS_ADDRESSED
    assert addressed.addressed_at is not None
    assert find_nearby_issues(
        db_session, 18.5204, 73.8567, 50, 7, now=T0 + timedelta(hours=2)
    ) == []

    fresh = await service.submit_report(
        db_session,
        user_e,
        _submission(18.5204, 73.8567),
        submitted_at=T0 + timedelta(hours=2),
    )
    assert fresh.action == "created"
    assert fresh.issue.id != created.issue.id
    assert fresh.issue.users_reported == 1
    assert fresh.issue.status == ISSUE_STATUS_PENDING


@pytest.mark.parametrize("order", [("x", "y"), ("y", "x")])
async def test_merge_target_does_not_depend_on_order(db_session, issue_factory, service, order) -> None:
    issue = issue_factory(created_at=T0)
    reporters = {
        "x": (Principal(user_id="reporter-x"), _submission(18.52045, 73.85675)),
        "y": (Principal(user_id="reporter-y"), _submission(18.52035, 73.85665)),
    }

    targets = []
    for offset, key in enumerate(order, start=1):
        principal, submission = reporters[key]
        outcome = await service.submit_report(
            db_session, principal, submission, submitted_at=T0 + timedelta(minutes=offset)
        )
        targets.append(outcome.issue.id)

    assert targets == [issue.id, issue.id]


async def test_report_exactly_at_radius_merges(db_session, issue_factory) -> None:
    issue = issue_factory(created_at=T0)
    point = GeoPoint(18.5208, 73.8567)
    radius = haversine_meters(point, GeoPoint(issue.latitude, issue.longitude))
    service = ReportService(
        resolver=DuplicateResolver(radius_meters=radius), geocoder=_disabled_geocoder()
    )

    outcome = await service.submit_report(
        db_session,
        Principal(user_id="edge-reporter"),
        _submission(point.latitude, point.longitude),
        submitted_at=T0 + timedelta(minutes=5),
    )

    assert outcome.action == "merged"
    assert outcome.issue.id == issue.id


async def test_report_just_beyond_radius_creates(db_session, issue_factory) -> None:
    issue = issue_factory(created_at=T0)
    point = GeoPoint(18.5208, 73.8567)
    radius = haversine_meters(point, GeoPoint(issue.latitude, issue.longitude)) - 0.01
    service = ReportService(
        resolver=DuplicateResolver(radius_meters=radius), geocoder=_disabled_geocoder()
    )

    outcome = await service.submit_report(
        db_session,
        Principal(user_id="edge-reporter"),
        _submission(point.latitude, point.longitude),
        submitted_at=T0 + timedelta(minutes=5),
    )

    assert outcome.action == "created"
    assert outcome.issue.id != issue.id


async def test_report_after_window_creates_new_issue(db_session, issue_factory, service, citizen) -> None:
    issue_factory(created_at=T0)

    outcome = await service.submit_report(
        db_session, citizen, _submission(), submitted_at=T0 + timedelta(days=8)
    )

    assert outcome.action == "created"


async def test_second_new_issue_same_day_is_rate_limited(db_session, service, citizen) -> None:
    await service.submit_report(db_session, citizen, _submission(), submitted_at=T0)

    with pytest.raises(RateLimited) as excinfo:
        await service.submit_report(
            db_session,
            citizen,
            _submission(19.0760, 72.8777),
            submitted_at=T0 + timedelta(hours=3),
        )

    # 08:00 + 3h leaves 13 hours until midnight UTC.
    assert excinfo.value.retry_after_seconds == 13 * 3600
    assert db_session.query(Issue).count() == 1


async def test_rate_limit_resets_at_utc_midnight(db_session, service, citizen) -> None:
    await service.submit_report(db_session, citizen, _submission(), submitted_at=T0)

    outcome = await service.submit_report(
        db_session,
        citizen,
        _submission(19.0760, 72.8777),
        submitted_at=datetime(2026, 3, 3, 0, 0, 1, tzinfo=UTC),
    )

    assert outcome.action == "created"
    assert db_session.get(User, citizen.user_id).last_issue_date.isoformat() == "2026-03-03"


async def test_rate_limited_user_can_still_merge_and_vote(
    db_session, issue_factory, service, citizen
) -> None:
    elsewhere = issue_factory(latitude=19.0760, longitude=72.8777, created_at=T0)
    await service.submit_report(db_session, citizen, _submission(), submitted_at=T0)

    merged = await service.submit_report(
        db_session,
        citizen,
        _submission(19.07601, 72.87771),
        submitted_at=T0 + timedelta(hours=1),
    )
    vote = await PriorityScoringEngine().cast_vote(db_session, citizen, elsewhere.id, "upvote")

    assert merged.action == "merged"
    assert merged.issue.id == elsewhere.id
    assert vote.priority_score == 1


async def test_same_user_reporting_twice_is_counted_once(db_session, service, citizen) -> None:
    first = await service.submit_report(db_session, citizen, _submission(), submitted_at=T0)

    again = await service.submit_report(
        db_session, citizen, _submission(18.52041, 73.85671), submitted_at=T0 + timedelta(minutes=10)
    )

    assert again.action == "already_reported"
    assert again.issue.id == first.issue.id
    assert again.issue.users_reported == 1
    assert again.issue.status == ISSUE_STATUS_PENDING


async def test_lost_report_race_raises_conflict_with_winner(
    db_session, service, citizen, mocker
) -> None:
    first = await service.submit_report(db_session, citizen, _submission(), submitted_at=T0)
    mocker.patch.object(IssueRepository, "has_report", return_value=False)

    with pytest.raises(Conflict) as excinfo:
        await service.submit_report(
            db_session, citizen, _submission(), submitted_at=T0 + timedelta(minutes=1)
        )

    assert excinfo.value.issue_id == first.issue.id
    db_session.expire_all()
    assert db_session.get(Issue, first.issue.id).users_reported == 1


async def test_nearby_reports_waiting_on_cluster_lock_create_one_issue(db_session) -> None:
    resolver = _SlowClusterResolver()
    service = ReportService(resolver=resolver, geocoder=_disabled_geocoder())
    reporters = [Principal(user_id=f"burst-{index}") for index in range(4)]

    outcomes = await asyncio.gather(
        *(
            service.submit_report(
                db_session,
                principal,
                _submission(18.5204 + index * 0.00003, 73.8567),
                submitted_at=T0,
            )
            for index, principal in enumerate(reporters)
        )
    )

    # The other three reports queued behind the first one's lock.
    assert resolver.peak_waiting == 3
    assert sorted(outcome.action for outcome in outcomes) == ["created", "merged", "merged", "merged"]
    assert len({outcome.issue.id for outcome in outcomes}) == 1
    db_session.expire_all()
    [issue] = db_session.query(Issue).all()
    assert issue.users_reported == 4
    assert db_session.query(IssueReport).count() == 4


async def test_ngo_cannot_file_reports(db_session, service, ngo) -> None:
    with pytest.raises(Forbidden):
        await service.submit_report(db_session, ngo, _submission(), submitted_at=T0)


async def test_admin_can_file_reports(db_session, service, admin) -> None:
    outcome = await service.submit_report(db_session, admin, _submission(), submitted_at=T0)

    assert outcome.action == "created"


@pytest.mark.parametrize(
    "overrides",
    [
        {"latitude": None},
        {"longitude": None},
        {"latitude": 91.0},
        {"title": "   "},
        {"title": "Hole"},
        {"title": "x" * 101},
        {"image_url": ""},
        {"description": "d" * 501},
    ],
)
async def test_invalid_submissions_are_rejected(db_session, service, citizen, overrides) -> None:
    submission = _submission(**{"latitude": 18.5204, "longitude": 73.8567, **overrides})

    with pytest.raises(ValidationError):
        await service.submit_report(db_session, citizen, submission, submitted_at=T0)

    assert db_session.query(Issue).count() == 0
    assert db_session.query(User).count() == 0


async def test_validation_strips_title_and_blank_description() -> None:
    point, title, description = validate_submission(
        _submission(title="  Broken streetlight  ", description="   ")
    )

    assert point == GeoPoint(18.5204, 73.8567)
    assert title == "Broken streetlight"
    assert description is None


async def test_created_issue_is_enriched_with_address(db_session, citizen) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/reverse"
        assert request.url.params["format"] == "jsonv2"
        return httpx.Response(200, json={"display_name": "FC Road, Pune, Maharashtra"})

    geocoder = ReverseGeocoder(
        GeocoderConfig(enabled=True, base_url="http://geo.test", timeout_seconds=1, user_agent="t"),
        transport=httpx.MockTransport(handler),
    )
    service = ReportService(geocoder=geocoder)

    outcome = await service.submit_report(db_session, citizen, _submission(), submitted_at=T0)
    await geocoder.close()

    assert outcome.issue.address == "FC Road, Pune, Maharashtra"


async def test_geocoding_failure_does_not_block_creation(db_session, citizen) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503)

    geocoder = ReverseGeocoder(
        GeocoderConfig(enabled=True, base_url="http://geo.test", timeout_seconds=1, user_agent="t"),
        transport=httpx.MockTransport(handler),
    )
    service = ReportService(geocoder=geocoder)

    outcome = await service.submit_report(db_session, citizen, _submission(), submitted_at=T0)
    await geocoder.close()

    assert outcome.action == "created"
    assert outcome.issue.address is None


async def test_client_address_is_kept(db_session, service, citizen) -> None:
    outcome = await service.submit_report(
        db_session, citizen, _submission(address="Near Goodluck Cafe"), submitted_at=T0
    )

    assert outcome.issue.address == "Near Goodluck Cafe"
