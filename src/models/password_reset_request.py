"""Password reset request model."""
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from models.base import Base, utcnow

if TYPE_CHECKING:
    from models.member import Member


class PasswordResetRequest(Base):
    """
    A one-time code that lets a member set a new password.

    A member has at most one outstanding request; creating a new one removes
    the others (see services.password_reset_service).
    """

    __tablename__ = "password_reset_requests"

    id: Mapped[int] = mapped_column(primary_key=True)
    member_id: Mapped[int] = mapped_column(
        ForeignKey("members.id", ondelete="CASCADE"),
        index=True,
    )
    code: Mapped[str] = mapped_column(String(6), index=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
        index=True,
    )

    member: Mapped["Member"] = relationship(back_populates="password_reset_requests")

    def expires_at(self, expiry_minutes: int) -> datetime:
        """When this request stops being usable."""
        created = self.created_at
        if created.tzinfo is None:
            # SQLite drops tzinfo; stored values are always UTC
            created = created.replace(tzinfo=UTC)
        return created + timedelta(minutes=expiry_minutes)

    def is_expired(self, expiry_minutes: int, now: datetime | None = None) -> bool:
        """Check whether the request is older than the expiry window."""
        if now is None:
            now = datetime.now(UTC)
        return now > self.expires_at(expiry_minutes)
