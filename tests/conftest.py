"""
Pytest configuration and fixtures for GrantPilot tests.

Provides helper factories and common fixtures built on the rubric packs
shipped in ``packs/``.
"""
import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from pathlib import Path

from grantpilot.config import Settings
from grantpilot.engine import (
    DueDiligenceWorkflow,
    EvaluationService,
    LockManager,
    OversightEscalation,
    ReviewWorkflow,
    ScoringProgress,
)
from grantpilot.models import (
    Actor,
    Application,
    ApplicationStatus,
    Role,
    Rubric,
    Track,
)
from grantpilot.packs import RubricRegistry
from grantpilot.store import InMemoryStore


PACKS_DIR = Path(__file__).parent.parent / "packs"

START = datetime(2025, 3, 3, 9, 0, tzinfo=timezone.utc)

NOTES = "Receipts and bank statements confirm steady sales"
PRIMARY_NOTES = "Site visit confirmed operations and stock"
VALIDATOR_COMMENTS = "Evidence checks out"
OVERRIDE_REASON = "Site visit contradicted the bookkeeping"
JUSTIFICATION = "Reviewer scores diverge sharply on compliance evidence"


# =============================================================================
# Actors
# =============================================================================

ADMIN = Actor("admin-1", Role.ADMIN)
APPLICANT = Actor("applicant-1", Role.APPLICANT)
REVIEWER_A = Actor("rev-a", Role.REVIEWER_1)
REVIEWER_B = Actor("rev-b", Role.REVIEWER_2)
REVIEWER_C = Actor("rev-c", Role.TECHNICAL_REVIEWER)
OVERSIGHT = Actor("ovs-1", Role.OVERSIGHT)
DD_PRIMARY = Actor("dd-a", Role.REVIEWER_1)
DD_VALIDATOR = Actor("dd-b", Role.REVIEWER_1)
DD_OTHER = Actor("dd-c", Role.REVIEWER_1)

VALIDATOR_POOL = ["dd-a", "dd-b", "dd-c"]


# =============================================================================
# Factory Helpers
# =============================================================================

class FixedClock:
    """Deterministic clock the workflows can be driven with."""

    def __init__(self, start: datetime = START):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


def make_application(
    application_id: int = 1,
    track: Track = Track.FOUNDATION,
    status: ApplicationStatus = ApplicationStatus.SUBMITTED,
) -> Application:
    """Create an Application with required fields."""
    return Application(
        id=application_id,
        track=track,
        status=status,
        submitted_at=START,
        applicant_id="applicant-1",
        business_name=f"Enterprise {application_id}",
        updated_at=START,
    )


def make_scores(rubric: Rubric, total) -> dict[str, Decimal]:
    """
    Spread ``total`` points across the rubric's criteria, filling each
    criterion to its max before moving on.
    """
    remaining = Decimal(str(total))
    scores: dict[str, Decimal] = {}
    for criterion in rubric.iter_criteria():
        if remaining <= 0:
            break
        take = min(criterion.max_points, remaining)
        scores[criterion.id] = take
        remaining -= take
    if remaining > 0:
        raise ValueError(f"{total} exceeds the rubric maximum {rubric.max_total}")
    return scores


def review_both(
    workflow: ReviewWorkflow,
    application_id: int,
    reviewer1_total,
    reviewer2_total,
    track: Track = Track.FOUNDATION,
):
    """Fill both review slots with the given totals; returns the slot 2 submission."""
    rubric = workflow.rubrics.for_track(track)
    workflow.submit_review(application_id, REVIEWER_A, make_scores(rubric, reviewer1_total), NOTES)
    return workflow.submit_review(
        application_id, REVIEWER_B, make_scores(rubric, reviewer2_total), NOTES
    )


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture(scope="session")
def registry() -> RubricRegistry:
    return RubricRegistry.from_directory(PACKS_DIR)


@pytest.fixture
def foundation_rubric(registry) -> Rubric:
    return registry.for_track(Track.FOUNDATION)


@pytest.fixture
def settings() -> Settings:
    return Settings(packs_dir=PACKS_DIR)


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def store() -> InMemoryStore:
    store = InMemoryStore()
    store.add_application(make_application(1))
    return store


@pytest.fixture
def reviews(store, registry, settings, clock) -> ReviewWorkflow:
    return ReviewWorkflow(store, registry, settings, clock)


@pytest.fixture
def locks(store, clock) -> LockManager:
    return LockManager(store, clock)


@pytest.fixture
def dd(store, registry, settings, clock) -> DueDiligenceWorkflow:
    return DueDiligenceWorkflow(store, registry, settings, clock)


@pytest.fixture
def oversight(store, settings) -> OversightEscalation:
    return OversightEscalation(store, settings)


@pytest.fixture
def progress(store, registry, clock) -> ScoringProgress:
    return ScoringProgress(store, registry, clock)


@pytest.fixture
def service(registry, settings, clock) -> EvaluationService:
    return EvaluationService(
        rubrics=registry, store=InMemoryStore(), settings=settings, clock=clock
    )


@pytest.fixture
def awaiting_approval(dd):
    """Application 1 claimed by DD_PRIMARY, assessed, and handed to DD_VALIDATOR."""
    dd.claim(1, DD_PRIMARY)
    dd.submit_primary_review(1, DD_PRIMARY, Decimal("72"), PRIMARY_NOTES)
    return dd.select_validator(1, DD_PRIMARY, DD_VALIDATOR.actor_id, VALIDATOR_POOL)
