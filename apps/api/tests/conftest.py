"""Shared test fixtures for the Echo Sprout API test suite."""

import os

# Must be set before echo_sprout is imported: the app engine is built at import
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("DATABASE_URL_SYNC", "sqlite:///:memory:")

import uuid  # noqa: E402
from collections.abc import AsyncGenerator  # noqa: E402
from datetime import date, datetime, timezone  # noqa: E402
from unittest.mock import AsyncMock, patch  # noqa: E402

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

import echo_sprout.models  # noqa: E402,F401
from echo_sprout.core.database import Base  # noqa: E402
from echo_sprout.main import app  # noqa: E402
from echo_sprout.models.core import User  # noqa: E402
from echo_sprout.models.enums import (  # noqa: E402
    AlertSeverity,
    MilestoneStatus,
    MilestoneType,
    PaymentStatus,
    ProgressUpdateType,
    ProjectStatus,
    ProjectType,
    UserRole,
)
from echo_sprout.models.marketplace import (  # noqa: E402
    ProgressUpdate,
    Project,
    ProjectMilestone,
    Purchase,
    SystemAlert,
)
from echo_sprout.schemas.auth import CurrentUser  # noqa: E402

# ── Sample identities ─────────────────────────────────────────────────────

BUYER_ID = uuid.UUID("00000000-0000-0000-0000-000000000101")
OTHER_BUYER_ID = uuid.UUID("00000000-0000-0000-0000-000000000102")
VERIFIER_ID = uuid.UUID("00000000-0000-0000-0000-000000000103")
ADMIN_ID = uuid.UUID("00000000-0000-0000-0000-000000000104")
CREATOR_ID = uuid.UUID("00000000-0000-0000-0000-000000000105")

SOLAR_PROJECT_ID = uuid.UUID("00000000-0000-0000-0000-000000000201")
FOREST_PROJECT_ID = uuid.UUID("00000000-0000-0000-0000-000000000202")

BUYER_CLERK_ID = "user_buyer_clerk"

BUYER = CurrentUser(
    user_id=BUYER_ID,
    role=UserRole.CREDIT_BUYER,
    email="buyer@example.com",
    external_auth_id=BUYER_CLERK_ID,
)
OTHER_BUYER = CurrentUser(
    user_id=OTHER_BUYER_ID,
    role=UserRole.CREDIT_BUYER,
    email="other@example.com",
    external_auth_id="user_other_clerk",
)
VERIFIER = CurrentUser(
    user_id=VERIFIER_ID,
    role=UserRole.VERIFIER,
    email="verifier@example.com",
    external_auth_id="user_verifier_clerk",
)
ADMIN = CurrentUser(
    user_id=ADMIN_ID,
    role=UserRole.ADMIN,
    email="admin@example.com",
    external_auth_id="user_admin_clerk",
)
CREATOR = CurrentUser(
    user_id=CREATOR_ID,
    role=UserRole.PROJECT_CREATOR,
    email="creator@example.com",
    external_auth_id="user_creator_clerk",
)


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
async def engine() -> AsyncGenerator[AsyncEngine]:
    """Fresh in-memory database per test; StaticPool keeps one connection alive."""
    eng = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
async def db(engine: AsyncEngine) -> AsyncGenerator[AsyncSession]:
    session = AsyncSession(bind=engine, expire_on_commit=False)
    try:
        yield session
    finally:
        await session.close()


@pytest.fixture
async def client() -> AsyncGenerator[AsyncClient]:
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


# ── Sample data fixtures ──────────────────────────────────────────────────


def _user(identity: CurrentUser, name: str) -> User:
    return User(
        id=identity.user_id,
        email=identity.email,
        full_name=name,
        role=identity.role,
        external_auth_id=identity.external_auth_id,
        is_active=True,
    )


@pytest.fixture
async def users(db: AsyncSession) -> dict[str, User]:
    rows = {
        "buyer": _user(BUYER, "Ada Buyer"),
        "other": _user(OTHER_BUYER, "Other Buyer"),
        "verifier": _user(VERIFIER, "Vera Verifier"),
        "admin": _user(ADMIN, "Alex Admin"),
        "creator": _user(CREATOR, "Casey Creator"),
    }
    db.add_all(rows.values())
    await db.flush()
    return rows


@pytest.fixture
async def projects(db: AsyncSession, users: dict[str, User]) -> dict[str, Project]:
    rows = {
        "solar": Project(
            id=SOLAR_PROJECT_ID,
            creator_id=CREATOR_ID,
            title="Sunfield Solar",
            description="Community solar farm feeding the regional grid",
            project_type=ProjectType.SOLAR,
            status=ProjectStatus.ACTIVE,
            location_country="Kenya",
            location_region="Rift Valley",
            latitude=-0.3,
            longitude=36.1,
            start_date=date(2023, 1, 1),
            expected_completion_date=date(2026, 1, 1),
            target_carbon_impact=500.0,
            verification_status="verified",
            verification_completed_at=datetime(2024, 11, 5, tzinfo=timezone.utc),
        ),
        "forest": Project(
            id=FOREST_PROJECT_ID,
            creator_id=CREATOR_ID,
            title="Highland Reforestation",
            project_type=ProjectType.REFORESTATION,
            status=ProjectStatus.COMPLETED,
            location_country="Peru",
            location_region="Cusco",
            start_date=date(2022, 3, 1),
            expected_completion_date=date(2024, 3, 1),
            actual_completion_date=date(2024, 2, 15),
            target_carbon_impact=200.0,
            verification_status="verified",
        ),
    }
    db.add_all(rows.values())
    await db.flush()
    return rows


@pytest.fixture
async def purchases(db: AsyncSession, projects: dict[str, Project]) -> list[Purchase]:
    """100 solar credits for $3000 and 50 forest credits for $1500, plus noise."""
    rows = [
        Purchase(
            buyer_id=BUYER_ID,
            project_id=SOLAR_PROJECT_ID,
            credit_amount=100,
            unit_price=30,
            total_amount=3000,
            payment_status=PaymentStatus.COMPLETED,
            created_at=datetime(2024, 5, 1, tzinfo=timezone.utc),
        ),
        Purchase(
            buyer_id=BUYER_ID,
            project_id=FOREST_PROJECT_ID,
            credit_amount=50,
            unit_price=30,
            total_amount=1500,
            payment_status=PaymentStatus.COMPLETED,
            created_at=datetime(2025, 2, 1, tzinfo=timezone.utc),
        ),
        # Not completed: never counted
        Purchase(
            buyer_id=BUYER_ID,
            project_id=SOLAR_PROJECT_ID,
            credit_amount=999,
            unit_price=30,
            total_amount=29970,
            payment_status=PaymentStatus.REFUNDED,
            created_at=datetime(2025, 3, 1, tzinfo=timezone.utc),
        ),
        # Another buyer's purchase
        Purchase(
            buyer_id=OTHER_BUYER_ID,
            project_id=SOLAR_PROJECT_ID,
            credit_amount=10,
            unit_price=30,
            total_amount=300,
            payment_status=PaymentStatus.COMPLETED,
            created_at=datetime(2025, 3, 1, tzinfo=timezone.utc),
        ),
    ]
    db.add_all(rows)
    await db.flush()
    return rows


@pytest.fixture
async def progress_updates(db: AsyncSession, projects: dict[str, Project]) -> list[ProgressUpdate]:
    rows = [
        ProgressUpdate(
            project_id=SOLAR_PROJECT_ID,
            title="Panels installed",
            update_type=ProgressUpdateType.MILESTONE,
            carbon_impact_to_date=80.0,
            progress_percentage=60.0,
            reporting_date=datetime(2025, 1, 10, tzinfo=timezone.utc),
            measurement_data={"energyGenerated": 120000},
            created_at=datetime(2025, 1, 10, tzinfo=timezone.utc),
        ),
        ProgressUpdate(
            project_id=SOLAR_PROJECT_ID,
            title="Site survey",
            carbon_impact_to_date=10.0,
            progress_percentage=10.0,
            created_at=datetime(2024, 6, 1, tzinfo=timezone.utc),
        ),
        ProgressUpdate(
            project_id=FOREST_PROJECT_ID,
            title="Final planting",
            update_type=ProgressUpdateType.ACHIEVEMENT,
            carbon_impact_to_date=40.0,
            progress_percentage=100.0,
            measurement_data={"trees_planted": 1600},
            created_at=datetime(2025, 2, 20, tzinfo=timezone.utc),
        ),
    ]
    db.add_all(rows)
    await db.flush()
    return rows


@pytest.fixture
def mock_clerk_jwt():
    """Mock verify_clerk_token to bypass Clerk JWKS verification in tests."""
    mock_payload = {
        "sub": BUYER_CLERK_ID,
        "email": "buyer@example.com",
        "iss": "https://test.clerk.accounts.dev",
        "exp": int(datetime.now(timezone.utc).timestamp()) + 3600,
    }
    with patch(
        "echo_sprout.auth.clerk_jwt.verify_clerk_token",
        new_callable=AsyncMock,
        return_value=mock_payload,
    ) as mock:
        yield mock


@pytest.fixture
async def milestones(db: AsyncSession, projects: dict[str, Project]) -> list[ProjectMilestone]:
    """Solar plan: setup done, grid connection running, verification pending."""
    rows = [
        ProjectMilestone(
            project_id=SOLAR_PROJECT_ID,
            milestone_type=MilestoneType.VERIFICATION,
            title="Third-party verification",
            planned_date=date(2025, 12, 1),
            status=MilestoneStatus.PENDING,
            sequence=3,
        ),
        ProjectMilestone(
            project_id=SOLAR_PROJECT_ID,
            milestone_type=MilestoneType.SETUP,
            title="Site setup",
            planned_date=date(2023, 6, 1),
            actual_date=date(2023, 6, 20),
            status=MilestoneStatus.COMPLETED,
            sequence=1,
        ),
        ProjectMilestone(
            project_id=SOLAR_PROJECT_ID,
            milestone_type=MilestoneType.PROGRESS_50,
            title="Grid connection",
            planned_date=date(2025, 9, 1),
            status=MilestoneStatus.IN_PROGRESS,
            delay_reason="Awaiting utility sign-off",
            sequence=2,
        ),
    ]
    db.add_all(rows)
    await db.flush()
    return rows


@pytest.fixture
async def alerts(db: AsyncSession, projects: dict[str, Project]) -> list[SystemAlert]:
    """One open and one resolved alert on the solar project, plus a platform-wide one."""
    rows = [
        SystemAlert(
            project_id=SOLAR_PROJECT_ID,
            alert_type="performance",
            severity=AlertSeverity.HIGH,
            message="Inverter output below forecast",
            is_resolved=False,
            created_at=datetime(2025, 3, 2, tzinfo=timezone.utc),
        ),
        SystemAlert(
            project_id=SOLAR_PROJECT_ID,
            alert_type="monitoring",
            severity=AlertSeverity.LOW,
            message="Sensor offline",
            is_resolved=True,
            resolved_at=datetime(2024, 9, 3, tzinfo=timezone.utc),
            resolution_notes="Sensor replaced",
            created_at=datetime(2024, 9, 1, tzinfo=timezone.utc),
        ),
        SystemAlert(
            alert_type="system",
            severity=AlertSeverity.CRITICAL,
            message="Platform maintenance",
            is_resolved=False,
            created_at=datetime(2025, 3, 5, tzinfo=timezone.utc),
        ),
    ]
    db.add_all(rows)
    await db.flush()
    return rows
