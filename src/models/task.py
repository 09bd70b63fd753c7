"""Task and TaskComment models - example record types exposed through the CRUD API."""
from datetime import date

from sqlalchemy import Boolean, Date, Enum, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from models.base import Base, TimestampMixin
from models.member import Member


TASK_PRIORITIES = ("Low", "Medium", "High")


class Task(Base, TimestampMixin):
    """
    A to-do item owned by the member who created it.

    Addressed over the API by ``uuid`` rather than the numeric primary key.
    """

    __tablename__ = "tasks"

    id: Mapped[int] = mapped_column(primary_key=True)
    uuid: Mapped[str | None] = mapped_column(String(36), unique=True, index=True, nullable=True)
    title: Mapped[str] = mapped_column(String(255), default="")
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    private_note: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_completed: Mapped[bool] = mapped_column(Boolean, default=False)
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    priority: Mapped[str] = mapped_column(
        Enum(*TASK_PRIORITIES, name="task_priority"),
        default="Medium",
    )
    assigned_to_id: Mapped[int | None] = mapped_column(
        ForeignKey("members.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    created_by_id: Mapped[int | None] = mapped_column(
        ForeignKey("members.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    assigned_to: Mapped[Member | None] = relationship(foreign_keys=[assigned_to_id])
    created_by: Mapped[Member | None] = relationship(foreign_keys=[created_by_id])
    comments: Mapped[list["TaskComment"]] = relationship(
        back_populates="task",
        cascade="all, delete-orphan",
        order_by="TaskComment.id",
    )

    def is_overdue(self, today: date | None = None) -> bool:
        """A task is overdue when it is open and its due date has passed."""
        if self.due_date is None or self.is_completed:
            return False
        return self.due_date < (today or date.today())

    def days_until_due(self, today: date | None = None) -> int | None:
        """Whole days until the due date (negative once overdue)."""
        if self.due_date is None:
            return None
        return (self.due_date - (today or date.today())).days


class TaskComment(Base, TimestampMixin):
    """A comment attached to a task."""

    __tablename__ = "task_comments"

    id: Mapped[int] = mapped_column(primary_key=True)
    task_id: Mapped[int] = mapped_column(
        ForeignKey("tasks.id", ondelete="CASCADE"),
        index=True,
    )
    author_id: Mapped[int | None] = mapped_column(
        ForeignKey("members.id", ondelete="SET NULL"),
        nullable=True,
    )
    body: Mapped[str] = mapped_column(Text, default="")

    task: Mapped[Task] = relationship(back_populates="comments")
    author: Mapped[Member | None] = relationship()
