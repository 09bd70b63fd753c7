"""
Generic CRUD over registered entity types.

Every operation follows the same path: resolve the type in the registry,
resolve the record, check the capability for the verb, then read or write
through the record serializer. Failures raise ApiError subclasses which the
API layer renders as ``{"errors": [...]}``.
"""
import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from sqlalchemy import BigInteger, func, inspect, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from models.member import Member
from services.capability_gate import Verb, authorize, list_scope
from services.entity_registry import SAFE_NAME_PATTERN, EntityRegistration, EntityRegistry
from services.exceptions import (
    ApiValidationError,
    AuthenticationRequiredError,
    AuthorizationDeniedError,
    NotFoundError,
    PersistenceError,
)
from services.record_serializer import apply_update, coerce_value, is_valid_value, to_view

logger = logging.getLogger(__name__)


SORT_PATTERN = re.compile(r"^([A-Za-z_][A-Za-z0-9_]*)(?:\s+(ASC|DESC))?$", re.IGNORECASE)

INT_MAX = 2**31 - 1
BIGINT_MAX = 2**63 - 1


def max_primary_key(model: type) -> int:
    """Largest id the primary key column can hold. Larger ids cannot match a row."""
    column = inspect(model).primary_key[0]
    return BIGINT_MAX if isinstance(column.type, BigInteger) else INT_MAX


@dataclass
class PageResult:
    """One page of a list query."""

    data: list[dict[str, Any]]
    total: int
    offset: int
    limit: int

    @property
    def has_more(self) -> bool:
        return self.offset + self.limit < self.total


class CrudService:
    """CRUD operations over an EntityRegistry."""

    def __init__(
        self,
        registry: EntityRegistry,
        default_page_size: int = 50,
        max_page_size: int = 100,
    ) -> None:
        self.registry = registry
        self.default_page_size = default_page_size
        self.max_page_size = max_page_size

    # -------------------------------------------------------------------------
    # Resolution and authorization
    # -------------------------------------------------------------------------

    def get_registration(self, type_name: str) -> EntityRegistration:
        registration = self.registry.get(type_name)
        if registration is None:
            raise NotFoundError(f"Entity type '{type_name}' not found")
        return registration

    @staticmethod
    def require(
        verb: Verb,
        principal: Member | None,
        registration: EntityRegistration,
        record: Any | None = None,
    ) -> None:
        """
        Raise if the capability check fails.

        Anonymous callers get 401 so clients know to log in; members get 403.
        """
        if authorize(verb, principal, registration, record):
            return
        if principal is None:
            raise AuthenticationRequiredError()
        raise AuthorizationDeniedError(f"Permission denied to {verb} {registration.name}")

    @staticmethod
    def require_readable(registration: EntityRegistration) -> None:
        if not registration.readable:
            raise AuthorizationDeniedError(f"{registration.name} is not readable via API")

    @staticmethod
    def require_writable(registration: EntityRegistration) -> None:
        if not registration.writable:
            raise AuthorizationDeniedError(f"{registration.name} is not writable via API")

    async def load_record(
        self,
        db: AsyncSession,
        registration: EntityRegistration,
        record_id: str,
    ) -> Any:
        """
        Resolve a record by its API identifier.

        Uses the external identifier field when the type has one, the numeric
        primary key otherwise.

        Raises:
            NotFoundError: If no record matches.
        """
        model = registration.model
        record = None
        if registration.uuid_field:
            column = getattr(model, registration.uuid_field)
            result = await db.execute(select(model).where(column == record_id))
            record = result.scalar_one_or_none()
        elif record_id.isascii() and record_id.isdigit():
            primary_key = int(record_id)
            if primary_key <= max_primary_key(model):
                record = await db.get(model, primary_key)
        if record is None:
            raise NotFoundError(f"{registration.name} not found")
        return record

    # -------------------------------------------------------------------------
    # Query building
    # -------------------------------------------------------------------------

    @staticmethod
    def filter_conditions(
        registration: EntityRegistration,
        filters: Mapping[str, Any],
    ) -> list[Any]:
        """Equality conditions for filters on readable attributes. Anything else is ignored."""
        conditions = []
        for name, value in filters.items():
            if not SAFE_NAME_PATTERN.fullmatch(name) or not registration.policy.is_readable(name):
                continue
            spec = registration.schema.attribute(name)
            if spec is None or value is None or not is_valid_value(spec, value):
                continue
            column = getattr(registration.model, name)
            conditions.append(column == coerce_value(spec, value))
        return conditions

    @staticmethod
    def order_clause(registration: EntityRegistration, sort: str | None) -> list[Any]:
        """ORDER BY for ``field [ASC|DESC]``; unsafe or unknown sort fields fall back to id order."""
        model = registration.model
        identifier = getattr(model, registration.schema.identifier)
        if not sort:
            return [identifier]
        match = SORT_PATTERN.fullmatch(sort.strip())
        if match is None:
            return [identifier]
        name, direction = match.group(1), (match.group(2) or "ASC").upper()
        if registration.schema.attribute(name) is None or not registration.policy.is_readable(name):
            return [identifier]
        column = getattr(model, name)
        return [column.desc() if direction == "DESC" else column.asc(), identifier]

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    async def list_records(
        self,
        db: AsyncSession,
        principal: Member | None,
        type_name: str,
        filters: Mapping[str, Any] | None = None,
        sort: str | None = None,
        offset: int = 0,
        limit: int | None = None,
    ) -> PageResult:
        """
        List records of a type.

        The type's list scope (see ``list_scope``) is applied to both the page
        and ``total``, so a principal limited to its own rows never sees how many
        others exist. Records the principal may not view are still left out of
        ``data`` for types that only decide per record.
        """
        registration = self.get_registration(type_name)
        self.require_readable(registration)
        self.require(Verb.READ, principal, registration)

        offset = max(offset, 0)
        limit = self.default_page_size if limit is None else min(max(limit, 1), self.max_page_size)
        conditions = self.filter_conditions(registration, filters or {})
        scope = list_scope(principal, registration)
        if scope is not None:
            conditions.append(scope)
        model = registration.model

        total = await db.scalar(select(func.count()).select_from(model).where(*conditions))
        result = await db.execute(
            select(model)
            .where(*conditions)
            .order_by(*self.order_clause(registration, sort))
            .offset(offset)
            .limit(limit),
        )

        data = []
        for record in result.scalars().all():
            if not authorize(Verb.READ, principal, registration, record):
                continue
            data.append(await to_view(record, registration, self.registry, principal=principal))
        return PageResult(data=data, total=total or 0, offset=offset, limit=limit)

    async def get_record(
        self,
        db: AsyncSession,
        principal: Member | None,
        type_name: str,
        record_id: str,
    ) -> dict[str, Any]:
        registration = self.get_registration(type_name)
        self.require_readable(registration)
        record = await self.load_record(db, registration, record_id)
        self.require(Verb.READ, principal, registration, record)
        return await to_view(record, registration, self.registry, principal=principal)

    async def create_record(
        self,
        db: AsyncSession,
        principal: Member | None,
        type_name: str,
        data: Any,
    ) -> dict[str, Any]:
        """
        Create a record from API data.

        Raises:
            ApiValidationError: If the body is empty or fails validation.
            PersistenceError: If the database rejects the insert.
        """
        registration = self.get_registration(type_name)
        self.require_writable(registration)
        self.require(Verb.CREATE, principal, registration)
        _require_body(data)

        record = registration.model()
        if registration.before_create is not None:
            registration.before_create(record, principal)
        await self._save(db, record, data, registration)
        logger.info("Created %s %s", registration.name, registration.record_id(record))
        return await to_view(record, registration, self.registry, principal=principal)

    async def update_record(
        self,
        db: AsyncSession,
        principal: Member | None,
        type_name: str,
        record_id: str,
        data: Any,
    ) -> dict[str, Any]:
        registration = self.get_registration(type_name)
        record = await self.load_record(db, registration, record_id)
        self.require_writable(registration)
        self.require(Verb.UPDATE, principal, registration, record)
        _require_body(data)

        await self._save(db, record, data, registration)
        return await to_view(record, registration, self.registry, principal=principal)

    async def delete_record(
        self,
        db: AsyncSession,
        principal: Member | None,
        type_name: str,
        record_id: str,
    ) -> None:
        registration = self.get_registration(type_name)
        record = await self.load_record(db, registration, record_id)
        self.require_writable(registration)
        self.require(Verb.DELETE, principal, registration, record)

        try:
            await db.delete(record)
            await db.flush()
        except SQLAlchemyError as e:
            logger.exception("Failed to delete %s %s", registration.name, record_id)
            await db.rollback()
            raise PersistenceError(f"Failed to delete {registration.name}") from e
        logger.info("Deleted %s %s", registration.name, record_id)

    async def _save(
        self,
        db: AsyncSession,
        record: Any,
        data: dict[str, Any],
        registration: EntityRegistration,
    ) -> None:
        saved, errors = await apply_update(db, record, data, registration)
        if errors:
            raise ApiValidationError(errors)
        if not saved:
            raise PersistenceError(f"Failed to save {registration.name}")


def _require_body(data: Any) -> None:
    if not isinstance(data, dict) or not data:
        raise ApiValidationError(["JSON data required"])
