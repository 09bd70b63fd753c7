"""Tests for the /auth endpoints."""
from collections.abc import AsyncGenerator, Callable

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_reset_code_notifier
from api.main import app
from models.member import Member
from services.member_service import verify_password
from services.token_service import TokenService


TEST_PASSWORD = "correct-horse-battery"

AuthHeaders = Callable[[Member], dict[str, str]]


class RecordingNotifier:
    """Captures reset codes instead of delivering them."""

    def __init__(self) -> None:
        self.sent: list[tuple[int, str]] = []

    async def send_reset_code(self, member: Member, code: str) -> None:
        self.sent.append((member.id, code))


@pytest.fixture
async def notifier(client: AsyncClient) -> AsyncGenerator[RecordingNotifier]:
    recorder = RecordingNotifier()
    app.dependency_overrides[get_reset_code_notifier] = lambda: recorder
    yield recorder
    app.dependency_overrides.pop(get_reset_code_notifier, None)


# =============================================================================
# Login
# =============================================================================


async def test__login__returns_token(
    client: AsyncClient, member: Member, token_service: TokenService,
) -> None:
    response = await client.post(
        "/auth/login", json={"email": "alice@example.com", "password": TEST_PASSWORD},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["token_type"] == "Bearer"
    assert token_service.resolve_principal_id(body["token"]) == member.id
    assert body["expires_at"] == token_service.expires_at(body["token"])


async def test__login__email_is_case_insensitive(client: AsyncClient, member: Member) -> None:
    response = await client.post(
        "/auth/login", json={"email": "  Alice@Example.COM ", "password": TEST_PASSWORD},
    )
    assert response.status_code == 200


async def test__login__wrong_password_401(client: AsyncClient, member: Member) -> None:
    response = await client.post(
        "/auth/login", json={"email": "alice@example.com", "password": "wrong-password"},
    )
    assert response.status_code == 401
    assert response.json() == {"errors": ["Invalid email or password"]}


async def test__login__unknown_email_401(client: AsyncClient) -> None:
    response = await client.post(
        "/auth/login", json={"email": "nobody@example.com", "password": TEST_PASSWORD},
    )
    assert response.status_code == 401


async def test__login__missing_fields_400(client: AsyncClient) -> None:
    response = await client.post("/auth/login", json={"email": "alice@example.com"})
    assert response.status_code == 400
    assert response.json()["errors"]


# =============================================================================
# Register
# =============================================================================


async def test__register__creates_member(client: AsyncClient) -> None:
    response = await client.post(
        "/auth/register",
        json={"email": "New@Example.com", "password": "long-enough-pw", "first_name": "Nina"},
    )

    assert response.status_code == 201
    body = response.json()
    assert body["email"] == "new@example.com"
    assert body["first_name"] == "Nina"
    assert "password_hash" not in body

    response = await client.post(
        "/auth/login", json={"email": "new@example.com", "password": "long-enough-pw"},
    )
    assert response.status_code == 200


async def test__register__duplicate_email_409(client: AsyncClient, member: Member) -> None:
    response = await client.post(
        "/auth/register", json={"email": "ALICE@example.com", "password": "long-enough-pw"},
    )
    assert response.status_code == 409


async def test__register__short_password_400(client: AsyncClient) -> None:
    response = await client.post(
        "/auth/register", json={"email": "new@example.com", "password": "short"},
    )
    assert response.status_code == 400


# =============================================================================
# Refresh / verify
# =============================================================================


async def test__refresh__issues_new_token(
    client: AsyncClient, member: Member, auth_headers: AuthHeaders, token_service: TokenService,
) -> None:
    headers = auth_headers(member)

    response = await client.post("/auth/refresh", headers=headers)

    assert response.status_code == 200
    token = response.json()["token"]
    assert token_service.resolve_principal_id(token) == member.id


async def test__refresh__invalid_token_401(client: AsyncClient) -> None:
    response = await client.post("/auth/refresh", headers={"Authorization": "Bearer nope"})
    assert response.status_code == 401


async def test__refresh__missing_header_401(client: AsyncClient) -> None:
    response = await client.post("/auth/refresh")
    assert response.status_code == 401


async def test__verify__returns_member(
    client: AsyncClient, member: Member, auth_headers: AuthHeaders,
) -> None:
    response = await client.get("/auth/verify", headers=auth_headers(member))

    assert response.status_code == 200
    body = response.json()["member"]
    assert body["id"] == member.id
    assert body["email"] == "alice@example.com"


async def test__verify__anonymous_401(client: AsyncClient) -> None:
    response = await client.get("/auth/verify")
    assert response.status_code == 401


# =============================================================================
# Password reset
# =============================================================================


async def test__forgot_then_reset_password(
    client: AsyncClient, member: Member, notifier: RecordingNotifier,
) -> None:
    response = await client.post("/auth/forgot-password", json={"email": "alice@example.com"})
    assert response.status_code == 200
    [(member_id, code)] = notifier.sent
    assert member_id == member.id

    response = await client.post(
        "/auth/reset-password", json={"code": code, "password": "a-new-password"},
    )
    assert response.status_code == 200
    assert verify_password("a-new-password", member.password_hash)

    # Codes are single use
    response = await client.post(
        "/auth/reset-password", json={"code": code, "password": "another-password"},
    )
    assert response.status_code == 404


async def test__forgot_password__unknown_email_404(
    client: AsyncClient, notifier: RecordingNotifier,
) -> None:
    response = await client.post("/auth/forgot-password", json={"email": "nobody@example.com"})
    assert response.status_code == 404
    assert notifier.sent == []


async def test__reset_password__bad_code_404(client: AsyncClient) -> None:
    response = await client.post(
        "/auth/reset-password", json={"code": "000000", "password": "a-new-password"},
    )
    assert response.status_code == 404


# =============================================================================
# Change password
# =============================================================================


async def test__change_password__success(
    client: AsyncClient, member: Member, auth_headers: AuthHeaders, db_session: AsyncSession,
) -> None:
    response = await client.post(
        "/auth/change-password",
        json={"old_password": TEST_PASSWORD, "new_password": "rotated-password"},
        headers=auth_headers(member),
    )

    assert response.status_code == 200
    await db_session.refresh(member)
    assert verify_password("rotated-password", member.password_hash)


async def test__change_password__wrong_old_password_403(
    client: AsyncClient, member: Member, auth_headers: AuthHeaders,
) -> None:
    response = await client.post(
        "/auth/change-password",
        json={"old_password": "not-my-password", "new_password": "rotated-password"},
        headers=auth_headers(member),
    )
    assert response.status_code == 403


async def test__change_password__anonymous_401(client: AsyncClient) -> None:
    response = await client.post(
        "/auth/change-password",
        json={"old_password": TEST_PASSWORD, "new_password": "rotated-password"},
    )
    assert response.status_code == 401
