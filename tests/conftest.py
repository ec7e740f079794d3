import uuid
from collections.abc import AsyncGenerator, Iterator
from datetime import UTC, date, datetime, timedelta

import jwt
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from pydantic import SecretStr
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from pathfinder.core.config import settings
from pathfinder.core.database import build_engine
from pathfinder.core.rate_limiting import limiter
from pathfinder.models import Base, Experience
from pathfinder.providers import factory
from pathfinder.providers.llm.base import TaskType
from pathfinder.providers.llm.mock_adapter import MockLLMProvider
from pathfinder.services.competency_catalog import reseed_catalog

# Test user IDs (consistent across tests for predictable auth)
TEST_USER_ID = uuid.UUID("00000000-0000-0000-0000-000000000001")
USER_B_ID = uuid.UUID("00000000-0000-0000-0000-000000000099")

# Security: This is a test-only secret. Production uses a real secret from env.
TEST_AUTH_SECRET = "test-secret-key-that-is-at-least-32-characters-long"  # nosec B105  # gitleaks:allow

AA1_EXPERIENCE_TEXT = (
    "Tested internal controls over financial reporting, identified control "
    "deficiencies, designed remediation plans for SOX compliance"
)

AUDIT_FIELDWORK_TEXT = (
    "Led audit fieldwork, tested internal controls, documented deficiencies, "
    "prepared management letter"
)

MOCK_PERT_OUTPUT = """<situation>Our client's month-end close had recurring control gaps.</situation>
<task>I was asked to test the key controls and report deficiencies.</task>
<action>I tested 40 controls, documented three deficiencies and designed remediation plans with the controller.</action>
<result>Audit findings showed a 30% reduction year over year and the close shortened.</result>
<quantified_impact>30% reduction in audit findings</quantified_impact>"""


def create_test_jwt(
    user_id: uuid.UUID = TEST_USER_ID,
    *,
    secret: str = TEST_AUTH_SECRET,
    expires_delta: timedelta | None = None,
    audience: str | None = None,
) -> str:
    """Create a signed JWT for test authentication.

    Args:
        user_id: User UUID to encode in the sub claim.
        secret: Signing secret (must match settings.auth_secret in tests).
        expires_delta: Time until expiration. Defaults to 1 hour.
        audience: aud claim. Defaults to settings.auth_audience.

    Returns:
        Encoded JWT string.
    """
    now = datetime.now(UTC)
    payload = {
        "sub": str(user_id),
        "aud": audience or settings.auth_audience,
        "iss": settings.auth_issuer,
        "exp": now + (expires_delta or timedelta(hours=1)),
        "iat": now,
    }
    return jwt.encode(payload, secret, algorithm="HS256")


def make_experience(
    user_id: uuid.UUID = TEST_USER_ID,
    *,
    title: str = "Senior Auditor",
    description: str = AA1_EXPERIENCE_TEXT,
    start_date: date = date(2022, 1, 1),
    end_date: date | None = None,
) -> Experience:
    """Build an unsaved Experience with sensible defaults."""
    return Experience(
        id=uuid.uuid4(),
        user_id=user_id,
        title=title,
        organization="Maple & Co LLP",
        description=description,
        start_date=start_date,
        end_date=end_date,
    )


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest_asyncio.fixture(scope="function")
async def db_engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """SQLite test database with schema and seeded catalog.

    A file database (not :memory:) so concurrent sessions share it.
    """
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'pathfinder.db'}")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    seed_factory = async_sessionmaker(engine, class_=AsyncSession)
    async with seed_factory() as session:
        await reseed_catalog(session)
        await session.commit()

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test database."""
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(scope="function")
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def experience(db_session: AsyncSession) -> Experience:
    """An internal-control experience owned by TEST_USER_ID."""
    exp = make_experience()
    db_session.add(exp)
    await db_session.flush()
    return exp


# =============================================================================
# Provider Fixtures
# =============================================================================


@pytest.fixture
def mock_llm() -> Iterator[MockLLMProvider]:
    """Fixture that provides mock LLM and resets after test.

    Injects into the factory singleton so services that default to
    factory.get_llm_provider() see the mock.

    Yields:
        MockLLMProvider instance with pre-configured responses.
    """
    mock = MockLLMProvider(
        {
            TaskType.COMPETENCY_SCORING: "<score>0.80</score>",
            TaskType.PERT_GENERATION: MOCK_PERT_OUTPUT,
        }
    )

    factory._llm_provider = mock

    yield mock

    factory.reset_providers()


# =============================================================================
# API Test Fixtures
# =============================================================================


@pytest_asyncio.fixture
async def client(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client for authenticated API tests.

    Sets up:
    - Test database via dependency override (commit per request)
    - JWT auth with test secret
    - Rate limiting disabled
    - httpx.AsyncClient with ASGI transport + auth cookie

    Yields:
        Configured AsyncClient for making authenticated API requests.
    """
    from pathfinder.core.database import get_db
    from pathfinder.main import app

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db

    original_auth_enabled = settings.auth_enabled
    original_auth_secret = settings.auth_secret
    original_limiter_enabled = limiter.enabled
    settings.auth_enabled = True
    settings.auth_secret = SecretStr(TEST_AUTH_SECRET)
    limiter.enabled = False

    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport,
        base_url="http://test",
        cookies={settings.auth_cookie_name: create_test_jwt(TEST_USER_ID)},
    ) as ac:
        yield ac

    settings.auth_enabled = original_auth_enabled
    settings.auth_secret = original_auth_secret
    limiter.enabled = original_limiter_enabled
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def unauthenticated_client(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client without authentication.

    Auth is enabled but no JWT cookie is provided.
    """
    from pathfinder.core.database import get_db
    from pathfinder.main import app

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db

    original_auth_enabled = settings.auth_enabled
    original_auth_secret = settings.auth_secret
    settings.auth_enabled = True
    settings.auth_secret = SecretStr(TEST_AUTH_SECRET)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    settings.auth_enabled = original_auth_enabled
    settings.auth_secret = original_auth_secret
    app.dependency_overrides.clear()
