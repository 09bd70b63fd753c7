"""
Permission checks for CRUD verbs.

The CRUD layer never decides who may do what. Each registered entity type
supplies a Capabilities implementation and the gate routes each verb to the
matching predicate. Results are never cached.
"""
from enum import StrEnum
from typing import TYPE_CHECKING, Any, Protocol

from models.member import Member

if TYPE_CHECKING:
    from services.entity_registry import EntityRegistration


class Verb(StrEnum):
    """CRUD verbs that require a capability check."""

    READ = "read"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class Capabilities(Protocol):
    """
    Per-entity-type permission predicates.

    ``principal`` is None for anonymous requests. ``record`` is None for
    type-level checks (e.g. before listing).
    """

    def can_view(self, principal: Member | None, record: Any | None) -> bool: ...

    def can_create(self, principal: Member | None) -> bool: ...

    def can_edit(self, principal: Member | None, record: Any) -> bool: ...

    def can_delete(self, principal: Member | None, record: Any) -> bool: ...


class AllowAll:
    """Every verb is allowed, including for anonymous callers."""

    def can_view(self, principal: Member | None, record: Any | None) -> bool:
        return True

    def can_create(self, principal: Member | None) -> bool:
        return True

    def can_edit(self, principal: Member | None, record: Any) -> bool:
        return True

    def can_delete(self, principal: Member | None, record: Any) -> bool:
        return True


class AuthenticatedOnly:
    """Any member may view and create; only administrators may edit or delete."""

    def __init__(self, admin_group: str = "administrators") -> None:
        self.admin_group = admin_group

    def is_admin(self, principal: Member | None) -> bool:
        return principal is not None and principal.in_group(self.admin_group)

    def can_view(self, principal: Member | None, record: Any | None) -> bool:
        return principal is not None

    def can_create(self, principal: Member | None) -> bool:
        return principal is not None

    def can_edit(self, principal: Member | None, record: Any) -> bool:
        return self.is_admin(principal)

    def can_delete(self, principal: Member | None, record: Any) -> bool:
        return self.is_admin(principal)


def authorize(
    verb: Verb,
    principal: Member | None,
    registration: "EntityRegistration",
    record: Any | None = None,
) -> bool:
    """Ask the entity type's capabilities whether ``principal`` may perform ``verb``."""
    capabilities = registration.capabilities
    if verb is Verb.READ:
        return capabilities.can_view(principal, record)
    if verb is Verb.CREATE:
        return capabilities.can_create(principal)
    if verb is Verb.UPDATE:
        return capabilities.can_edit(principal, record)
    if verb is Verb.DELETE:
        return capabilities.can_delete(principal, record)
    raise ValueError(f"Unknown verb: {verb}")


def list_scope(principal: Member | None, registration: "EntityRegistration") -> Any | None:
    """
    SQL condition limiting a list query to the rows ``principal`` may view.

    Capabilities may define ``list_scope(principal, model)``; without it, or
    when it returns None, the list is not narrowed in the query.
    """
    scope = getattr(registration.capabilities, "list_scope", None)
    if scope is None:
        return None
    return scope(principal, registration.model)
