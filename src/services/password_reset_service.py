"""Service layer for the password reset code flow."""
import logging
import secrets
from datetime import UTC, datetime, timedelta
from typing import Protocol

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from models.member import Member
from models.password_reset_request import PasswordResetRequest
from services.member_service import set_password

logger = logging.getLogger(__name__)


CODE_LENGTH = 6


class ResetCodeNotifier(Protocol):
    """Delivers a reset code to the member (email, SMS, ...)."""

    async def send_reset_code(self, member: Member, code: str) -> None: ...


class LoggingResetCodeNotifier:
    """Default notifier: records that a code was issued. The code itself is never logged."""

    async def send_reset_code(self, member: Member, code: str) -> None:
        logger.info("Password reset code issued for member %s", member.id)


def generate_reset_code() -> str:
    """Six random digits, zero padded."""
    return f"{secrets.randbelow(10**CODE_LENGTH):0{CODE_LENGTH}d}"


async def create_reset_request(
    db: AsyncSession,
    member: Member,
    now: datetime | None = None,
) -> PasswordResetRequest:
    """Create a reset request for a member, replacing any they already have."""
    await db.execute(
        delete(PasswordResetRequest).where(PasswordResetRequest.member_id == member.id),
    )
    request = PasswordResetRequest(
        member_id=member.id,
        code=generate_reset_code(),
        created_at=now or datetime.now(UTC),
    )
    db.add(request)
    await db.flush()
    return request


async def find_active_request(
    db: AsyncSession,
    code: str,
    expiry_minutes: int,
    now: datetime | None = None,
) -> PasswordResetRequest | None:
    """Return the unexpired request for ``code``, or None."""
    if now is None:
        now = datetime.now(UTC)
    cutoff = now - timedelta(minutes=expiry_minutes)
    result = await db.execute(
        select(PasswordResetRequest)
        .where(
            PasswordResetRequest.code == code,
            PasswordResetRequest.created_at >= cutoff,
        )
        .order_by(PasswordResetRequest.created_at.desc())
        .limit(1),
    )
    return result.scalar_one_or_none()


async def reset_password(
    db: AsyncSession,
    code: str,
    password: str,
    expiry_minutes: int,
    now: datetime | None = None,
) -> Member | None:
    """
    Set a new password using a reset code.

    The request is consumed on success. Returns the member, or None when the
    code is unknown or expired.
    """
    request = await find_active_request(db, code, expiry_minutes, now=now)
    if request is None:
        return None
    member = await db.get(Member, request.member_id)
    if member is None:
        return None
    await set_password(db, member, password)
    await db.delete(request)
    await db.flush()
    logger.info("Password reset completed for member %s", member.id)
    return member
