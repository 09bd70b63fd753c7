"""
Scheduled cleanup task.

Deletes password reset requests that have outlived their expiry window.
Designed to run as a cron job (e.g., hourly).

Usage:
    python -m tasks.cleanup

The expiry window is PASSWORD_RESET_EXPIRY_MINUTES, the same setting the
reset endpoint uses to reject stale codes.
"""
import asyncio
import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import get_settings
from db.session import async_session_factory
from models.password_reset_request import PasswordResetRequest

logger = logging.getLogger(__name__)


@dataclass
class CleanupStats:
    """Statistics from a cleanup run."""

    expired_reset_requests_deleted: int = 0

    def to_dict(self) -> dict[str, int]:
        """Convert to simple dict for logging/return."""
        return {"expired_reset_requests_deleted": self.expired_reset_requests_deleted}


async def cleanup_expired_password_resets(
    db: AsyncSession,
    now: datetime | None = None,
    expiry_minutes: int | None = None,
) -> CleanupStats:
    """
    Delete reset requests created before ``now - expiry_minutes``.

    Args:
        db: Database session.
        now: Current time for cutoff calculation. Defaults to datetime.now(UTC).
        expiry_minutes: Expiry window. Defaults to PASSWORD_RESET_EXPIRY_MINUTES.

    Returns:
        CleanupStats with the number of deleted requests.
    """
    if now is None:
        now = datetime.now(UTC)
    if expiry_minutes is None:
        expiry_minutes = get_settings().password_reset_expiry_minutes

    cutoff = now - timedelta(minutes=expiry_minutes)
    result = await db.execute(
        delete(PasswordResetRequest).where(PasswordResetRequest.created_at < cutoff),
    )
    deleted = result.rowcount or 0
    await db.commit()

    if deleted > 0:
        logger.info(
            "Deleted %d expired password reset requests (cutoff=%s)",
            deleted,
            cutoff.isoformat(),
        )
    return CleanupStats(expired_reset_requests_deleted=deleted)


async def run_cleanup(
    db: AsyncSession | None = None,
    now: datetime | None = None,
) -> CleanupStats:
    """
    Run all cleanup tasks.

    Args:
        db: Database session. If None, creates one from async_session_factory.
        now: Current time for cutoff calculation. Defaults to datetime.now(UTC).
    """
    logger.info("Starting cleanup task")

    if db is not None:
        stats = await cleanup_expired_password_resets(db, now=now)
    else:
        async with async_session_factory() as session:
            stats = await cleanup_expired_password_resets(session, now=now)

    logger.info("Cleanup complete: %s", stats.to_dict())
    return stats


def main() -> None:
    """Entry point for running cleanup as a script."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    asyncio.run(run_cleanup())


if __name__ == "__main__":
    main()
