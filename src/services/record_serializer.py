"""
Conversion between ORM records and their API representation.

Reads go through ``to_view``: only readable fields, normalized to JSON-safe
values, plus computed fields and a synthesized ``id``. Writes go through
``apply_update``: every key is checked against the writable set and the
declared attribute type before anything on the record changes.
"""
import inspect
import logging
import math
from datetime import UTC, date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Any

import uuid6
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from models.member import Member
from services.capability_gate import Verb, authorize
from services.entity_registry import EntityRegistration, EntityRegistry
from services.field_policy import FieldSpec, FieldType

logger = logging.getLogger(__name__)


DATETIME_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


# =============================================================================
# Value rules
# =============================================================================


def _as_number(value: Any) -> int | float | Decimal | None:
    """Return value as a number if it is numeric (numeric strings included), else None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float | Decimal):
        return value if math.isfinite(value) else None
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return int(text)
        except ValueError:
            pass
        try:
            number = float(text)
        except ValueError:
            return None
        return number if math.isfinite(number) else None
    return None


def _parse_datetime(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    if isinstance(value, str) and value.strip():
        try:
            return datetime.fromisoformat(value.strip())
        except ValueError:
            return None
    return None


def is_valid_value(spec: FieldSpec, value: Any) -> bool:
    """Check a raw API value against the declared attribute type."""
    if value is None:
        return spec.nullable
    match spec.type:
        case FieldType.BOOLEAN:
            if isinstance(value, bool):
                return True
            if isinstance(value, str) and value.strip().lower() in ("true", "false"):
                return True
            return _as_number(value) is not None
        case FieldType.INTEGER:
            number = _as_number(value)
            return number is not None and int(number) == number
        case FieldType.FLOAT | FieldType.DECIMAL:
            return _as_number(value) is not None
        case FieldType.VARCHAR:
            return isinstance(value, str) and (
                spec.max_length is None or len(value) <= spec.max_length
            )
        case FieldType.TEXT:
            return isinstance(value, str)
        case FieldType.DATE | FieldType.DATETIME:
            return _parse_datetime(value) is not None
        case FieldType.ENUM:
            return isinstance(value, str) and value in spec.choices
        case _:
            return True


def coerce_value(spec: FieldSpec, value: Any) -> Any:
    """Convert a value that passed ``is_valid_value`` to the attribute's native type."""
    if value is None:
        return None
    match spec.type:
        case FieldType.BOOLEAN:
            if isinstance(value, bool):
                return value
            if isinstance(value, str) and value.strip().lower() in ("true", "false"):
                return value.strip().lower() == "true"
            return bool(_as_number(value))
        case FieldType.INTEGER:
            return int(_as_number(value))
        case FieldType.FLOAT | FieldType.DECIMAL:
            return float(_as_number(value))
        case FieldType.DATE:
            if isinstance(value, date) and not isinstance(value, datetime):
                return value
            return _parse_datetime(value).date()
        case FieldType.DATETIME:
            parsed = _parse_datetime(value)
            if parsed.tzinfo is None:
                return parsed.replace(tzinfo=UTC)
            return parsed.astimezone(UTC)
        case _:
            return value


def normalize_value(value: Any) -> Any:
    """Convert a stored attribute value to its wire form."""
    if isinstance(value, datetime):
        if value.tzinfo is None:
            # Naive values are stored as UTC (SQLite drops tzinfo)
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC).strftime(DATETIME_FORMAT)
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, Enum):
        return value.value
    return value


# =============================================================================
# Read
# =============================================================================


def _identifier_view(record: Any, registry: EntityRegistry) -> dict[str, Any]:
    target = registry.for_model(type(record))
    if target is None:
        return {"id": getattr(record, "id", None)}
    return {"id": target.record_id(record)}


async def _related_view(
    record: Any,
    registry: EntityRegistry,
    visited: frozenset[tuple[str, Any]],
    principal: Member | None,
) -> dict[str, Any]:
    target = registry.for_model(type(record))
    if target is None:
        return _identifier_view(record, registry)
    if (target.name, target.primary_key(record)) in visited:
        return {"id": target.record_id(record)}
    if not target.readable or not authorize(Verb.READ, principal, target, record):
        return {"id": target.record_id(record)}
    return await to_view(record, target, registry, visited, principal=principal)


async def to_view(
    record: Any,
    registration: EntityRegistration,
    registry: EntityRegistry,
    visited: frozenset[tuple[str, Any]] = frozenset(),
    *,
    principal: Member | None = None,
) -> dict[str, Any]:
    """
    Serialize a record to its API view.

    Args:
        record: The ORM instance.
        registration: The record's entity registration.
        registry: Used to resolve the registrations of related records.
        visited: ``(type name, primary key)`` pairs already being serialized
            on the current path. A related record already on the path is
            rendered as ``{"id": ...}`` only.
        principal: The caller. A related record of a type the principal may not
            view (or a type that is not readable) is rendered as
            ``{"id": ...}`` only.
    """
    visited = visited | {(registration.name, registration.primary_key(record))}
    schema = registration.schema
    view: dict[str, Any] = {}

    for name in registration.policy.readable_fields:
        relation = schema.relation(name)
        if relation is None:
            view[name] = normalize_value(getattr(record, name))
            continue

        related = await getattr(record.awaitable_attrs, name)
        if relation.many:
            view[name] = [
                await _related_view(item, registry, visited, principal) for item in related
            ]
        elif related is None:
            view[name] = None
        else:
            view[name] = await _related_view(related, registry, visited, principal)

    for name, compute in registration.computed_fields.items():
        value = compute(record)
        if inspect.isawaitable(value):
            value = await value
        view[name] = normalize_value(value)

    if registration.uuid_field:
        view.pop(registration.uuid_field, None)
    view["id"] = registration.record_id(record)
    return view


# =============================================================================
# Write
# =============================================================================


def _check_api_data(
    record: Any,
    data: dict[str, Any],
    registration: EntityRegistration,
) -> tuple[list[str], dict[str, Any]]:
    errors: list[str] = []
    values: dict[str, Any] = {}
    for key, value in data.items():
        if not registration.policy.is_writable(key):
            errors.append(f"Field '{key}' is not writable via API")
            continue
        spec = registration.schema.attribute(key)
        if not is_valid_value(spec, value):
            errors.append(f"Invalid value for field '{key}'")
            continue
        values[key] = coerce_value(spec, value)

    if registration.validator is not None:
        errors.extend(registration.validator(record, values))
    return errors, values


def validate_api_data(
    record: Any,
    data: dict[str, Any],
    registration: EntityRegistration,
) -> list[str]:
    """
    Validate a write payload without touching the record.

    Returns a fresh list of messages; empty means valid.
    """
    errors, _ = _check_api_data(record, data, registration)
    return errors


def ensure_external_id(record: Any, registration: EntityRegistration) -> None:
    """Give the record an external identifier if its type uses one and it has none."""
    if registration.uuid_field and not getattr(record, registration.uuid_field, None):
        setattr(record, registration.uuid_field, str(uuid6.uuid7()))


async def apply_update(
    db: AsyncSession,
    record: Any,
    data: dict[str, Any],
    registration: EntityRegistration,
) -> tuple[bool, list[str]]:
    """
    Validate, assign and flush a write payload.

    Returns:
        ``(True, [])`` on success. ``(False, errors)`` when validation fails, in
        which case the record is left untouched. ``(False, [])`` when the
        database rejects the write; the session is rolled back.
    """
    errors, values = _check_api_data(record, data, registration)
    if errors:
        return False, errors

    for key, value in values.items():
        setattr(record, key, value)
    ensure_external_id(record, registration)

    db.add(record)
    try:
        await db.flush()
        await db.refresh(record)
    except SQLAlchemyError:
        logger.exception("Failed to save %s record", registration.name)
        await db.rollback()
        return False, []
    return True, []
