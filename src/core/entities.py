"""Entity types exposed through the CRUD API."""
from datetime import date
from functools import lru_cache
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import async_object_session

from core.config import get_settings
from models.member import Member
from models.task import Task, TaskComment
from services.capability_gate import AuthenticatedOnly
from services.entity_registry import EntityRegistry
from services.field_policy import ApiConfig


# =============================================================================
# Member
# =============================================================================


class MemberCapabilities(AuthenticatedOnly):
    """Members can see their own record; administrators can see everyone. No writes."""

    def can_view(self, principal: Member | None, record: Member | None) -> bool:
        if principal is None:
            return False
        if record is None or self.is_admin(principal):
            return True
        return record.id == principal.id

    def list_scope(self, principal: Member | None, model: type[Member]) -> Any | None:
        if principal is None or self.is_admin(principal):
            return None
        return model.id == principal.id

    def can_create(self, principal: Member | None) -> bool:
        return False

    def can_edit(self, principal: Member | None, record: Member) -> bool:
        return False

    def can_delete(self, principal: Member | None, record: Member) -> bool:
        return False


MEMBER_CONFIG = ApiConfig(
    fields=("email", "first_name", "surname", "created_at"),
)


# =============================================================================
# Task
# =============================================================================


class TaskCapabilities(AuthenticatedOnly):
    """Any member may view and create tasks; the creator or an admin may edit."""

    def can_edit(self, principal: Member | None, record: Task) -> bool:
        if principal is None:
            return False
        return record.created_by_id == principal.id or self.is_admin(principal)


TASK_CONFIG = ApiConfig(
    fields=(
        "uuid",
        "title",
        "description",
        "is_completed",
        "due_date",
        "priority",
        "assigned_to_id",
        "assigned_to",
        "created_by",
        "created_at",
        "updated_at",
    ),
    exclude_fields=("private_note",),
    writable_fields=(
        "title",
        "description",
        "is_completed",
        "due_date",
        "priority",
        "assigned_to_id",
        "private_note",
    ),
    uuid_field="uuid",
)


def validate_task(task: Task, values: dict[str, Any]) -> list[str]:
    """Business rules applied after per-field type checks."""
    errors = []
    title = values["title"] if "title" in values else task.title
    if not (title or "").strip():
        errors.append("Title cannot be empty")
    due_date = values.get("due_date")
    if task.id is None and due_date is not None and due_date < date.today():
        errors.append("Due date cannot be in the past")
    return errors


def set_task_creator(task: Task, principal: Member | None) -> None:
    if principal is not None:
        task.created_by_id = principal.id


async def count_task_comments(task: Task) -> int:
    session = async_object_session(task)
    if task.id is None or session is None:
        return 0
    return await session.scalar(
        select(func.count()).select_from(TaskComment).where(TaskComment.task_id == task.id),
    )


TASK_COMPUTED_FIELDS = {
    "is_overdue": lambda task: task.is_overdue(),
    "days_until_due": lambda task: task.days_until_due(),
    "comment_count": count_task_comments,
}


# =============================================================================
# TaskComment
# =============================================================================


class TaskCommentCapabilities(AuthenticatedOnly):
    """The author or an admin may edit or delete a comment."""

    def can_edit(self, principal: Member | None, record: TaskComment) -> bool:
        if principal is None:
            return False
        return record.author_id == principal.id or self.is_admin(principal)

    def can_delete(self, principal: Member | None, record: TaskComment) -> bool:
        return self.can_edit(principal, record)


TASK_COMMENT_CONFIG = ApiConfig(
    writable_fields=("task_id", "body"),
)


def validate_task_comment(comment: TaskComment, values: dict[str, Any]) -> list[str]:
    errors = []
    body = values["body"] if "body" in values else comment.body
    if not (body or "").strip():
        errors.append("Comment body cannot be empty")
    task_id = values["task_id"] if "task_id" in values else comment.task_id
    if task_id is None:
        errors.append("Task is required")
    return errors


def set_comment_author(comment: TaskComment, principal: Member | None) -> None:
    if principal is not None:
        comment.author_id = principal.id


# =============================================================================
# Registry
# =============================================================================


def build_entity_registry(admin_group: str) -> EntityRegistry:
    """Register every entity type the API exposes."""
    registry = EntityRegistry()
    registry.register(
        "Member",
        Member,
        config=MEMBER_CONFIG,
        capabilities=MemberCapabilities(admin_group),
        writable=False,
    )
    registry.register(
        "Task",
        Task,
        config=TASK_CONFIG,
        capabilities=TaskCapabilities(admin_group),
        computed_fields=TASK_COMPUTED_FIELDS,
        validator=validate_task,
        before_create=set_task_creator,
    )
    registry.register(
        "TaskComment",
        TaskComment,
        config=TASK_COMMENT_CONFIG,
        capabilities=TaskCommentCapabilities(admin_group),
        validator=validate_task_comment,
        before_create=set_comment_author,
    )
    return registry


@lru_cache
def get_entity_registry() -> EntityRegistry:
    """Get the process-wide registry (built once)."""
    return build_entity_registry(get_settings().admin_group)
