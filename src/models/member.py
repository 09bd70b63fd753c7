"""Member and group models - the principals that authenticate against the API."""
from typing import TYPE_CHECKING

from sqlalchemy import Column, ForeignKey, String, Table
from sqlalchemy.orm import Mapped, mapped_column, relationship

from models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from models.password_reset_request import PasswordResetRequest


member_groups = Table(
    "member_groups",
    Base.metadata,
    Column("member_id", ForeignKey("members.id", ondelete="CASCADE"), primary_key=True),
    Column("group_id", ForeignKey("groups.id", ondelete="CASCADE"), primary_key=True),
)


class Group(Base, TimestampMixin):
    """A named set of members, e.g. 'api-users' or 'administrators'."""

    __tablename__ = "groups"

    id: Mapped[int] = mapped_column(primary_key=True)
    code: Mapped[str] = mapped_column(String(100), unique=True, index=True)
    title: Mapped[str] = mapped_column(String(255))


class Member(Base, TimestampMixin):
    """
    Member model - an authenticated actor.

    Groups are loaded eagerly so capability checks can run synchronously
    against a member returned by authentication.
    """

    __tablename__ = "members"

    id: Mapped[int] = mapped_column(primary_key=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    first_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    surname: Mapped[str | None] = mapped_column(String(100), nullable=True)
    password_hash: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        comment="passlib hash; NULL means password login is disabled",
    )

    groups: Mapped[list[Group]] = relationship(secondary=member_groups, lazy="selectin")
    password_reset_requests: Mapped[list["PasswordResetRequest"]] = relationship(
        back_populates="member",
        cascade="all, delete-orphan",
    )

    def in_group(self, code: str) -> bool:
        """Check group membership by group code."""
        return any(group.code == code for group in self.groups)
