"""Pytest fixtures for testing."""
import os

# Must be set before any app imports that trigger Settings validation.
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["JWT_SECRET"] = "test-secret-key-with-at-least-32-characters"

from collections.abc import AsyncGenerator, Awaitable, Callable  # noqa: E402

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool  # noqa: E402

from models.base import Base  # noqa: E402
from models.member import Member  # noqa: E402
from services.member_service import get_or_create_group, hash_password  # noqa: E402
from services.token_service import TokenConfig, TokenService  # noqa: E402


TEST_JWT_SECRET = os.environ["JWT_SECRET"]
TEST_PASSWORD = "correct-horse-battery"


@pytest.fixture
async def async_engine() -> AsyncGenerator[AsyncEngine]:
    """
    Create a fresh in-memory SQLite database for each test.

    StaticPool keeps a single connection so every session sees the same
    in-memory database.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
async def db_session(async_engine: AsyncEngine) -> AsyncGenerator[AsyncSession]:
    """Create an async session on the test database."""
    session_factory = async_sessionmaker(
        bind=async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    async with session_factory() as session:
        yield session


@pytest.fixture
def token_service() -> TokenService:
    """Token service with the test secret and default lifetimes."""
    return TokenService(TokenConfig(secret=TEST_JWT_SECRET, issuer="http://test"))


@pytest.fixture
def make_member(db_session: AsyncSession) -> Callable[..., Awaitable[Member]]:
    """Factory for committed members, optionally in groups (created on demand)."""

    async def _make_member(
        email: str,
        password: str = TEST_PASSWORD,
        groups: tuple[str, ...] = (),
        first_name: str | None = None,
    ) -> Member:
        member_groups = [await get_or_create_group(db_session, code) for code in groups]
        member = Member(
            email=email,
            first_name=first_name,
            password_hash=hash_password(password),
            groups=member_groups,
        )
        db_session.add(member)
        await db_session.commit()
        return member

    return _make_member


@pytest.fixture
async def member(make_member: Callable[..., Awaitable[Member]]) -> Member:
    return await make_member("alice@example.com", first_name="Alice")


@pytest.fixture
async def other_member(make_member: Callable[..., Awaitable[Member]]) -> Member:
    return await make_member("bob@example.com", first_name="Bob")


@pytest.fixture
async def admin(make_member: Callable[..., Awaitable[Member]]) -> Member:
    return await make_member("admin@example.com", groups=("administrators",))


@pytest.fixture
def auth_headers(token_service: TokenService) -> Callable[[Member], dict[str, str]]:
    """Build an Authorization header carrying a fresh token for a member."""

    def _auth_headers(member: Member) -> dict[str, str]:
        return {"Authorization": f"Bearer {token_service.issue(member.id, member.email)}"}

    return _auth_headers


@pytest.fixture
async def client(
    db_session: AsyncSession,
    token_service: TokenService,
) -> AsyncGenerator[AsyncClient]:
    """Create a test client with database session and token service overrides."""
    from core.config import get_settings

    get_settings.cache_clear()

    from api.dependencies import get_token_service
    from api.main import app
    from db.session import get_async_session

    async def override_get_async_session() -> AsyncGenerator[AsyncSession]:
        yield db_session

    app.dependency_overrides[get_async_session] = override_get_async_session
    app.dependency_overrides[get_token_service] = lambda: token_service

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as test_client:
        yield test_client

    app.dependency_overrides.clear()
