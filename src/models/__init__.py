"""SQLAlchemy models."""
from models.base import Base, TimestampMixin
from models.member import Group, Member, member_groups
from models.password_reset_request import PasswordResetRequest
from models.task import Task, TaskComment

__all__ = [
    "Base",
    "Group",
    "Member",
    "PasswordResetRequest",
    "Task",
    "TaskComment",
    "TimestampMixin",
    "member_groups",
]
