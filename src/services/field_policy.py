"""
Per-entity field visibility and writability.

An EntitySchema describes what a record type declares (attributes and
relations). An ApiConfig says what the API should expose. FieldAccessPolicy
combines the two once, at registration time, into the readable and writable
field sets used by the serializer.
"""
from collections.abc import Iterable
from dataclasses import dataclass
from enum import StrEnum

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Enum,
    Float,
    Integer,
    Numeric,
    String,
    Text,
    inspect,
)
from sqlalchemy.types import TypeEngine


class FieldType(StrEnum):
    """Declared attribute types the serializer knows how to validate and coerce."""

    BOOLEAN = "boolean"
    INTEGER = "integer"
    FLOAT = "float"
    DECIMAL = "decimal"
    VARCHAR = "varchar"
    TEXT = "text"
    DATE = "date"
    DATETIME = "datetime"
    ENUM = "enum"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class FieldSpec:
    """A declared scalar attribute."""

    name: str
    type: FieldType
    max_length: int | None = None
    choices: tuple[str, ...] = ()
    nullable: bool = True


@dataclass(frozen=True)
class RelationSpec:
    """A declared relation to another model."""

    name: str
    target: type
    many: bool = False


def field_type_for(column_type: TypeEngine) -> tuple[FieldType, int | None, tuple[str, ...]]:
    """
    Map a SQLAlchemy column type to (FieldType, max_length, choices).

    Order matters: Enum and Text subclass String, Float subclasses Numeric.
    """
    if isinstance(column_type, Boolean):
        return FieldType.BOOLEAN, None, ()
    if isinstance(column_type, Enum):
        return FieldType.ENUM, None, tuple(str(choice) for choice in column_type.enums)
    if isinstance(column_type, Integer):
        return FieldType.INTEGER, None, ()
    if isinstance(column_type, Float):
        return FieldType.FLOAT, None, ()
    if isinstance(column_type, Numeric):
        return FieldType.DECIMAL, None, ()
    if isinstance(column_type, DateTime):
        return FieldType.DATETIME, None, ()
    if isinstance(column_type, Date):
        return FieldType.DATE, None, ()
    if isinstance(column_type, Text):
        return FieldType.TEXT, None, ()
    if isinstance(column_type, String):
        if column_type.length:
            return FieldType.VARCHAR, column_type.length, ()
        return FieldType.TEXT, None, ()
    return FieldType.UNKNOWN, None, ()


@dataclass(frozen=True)
class EntitySchema:
    """
    Explicit descriptor of a record type's declared fields.

    ``attributes`` excludes the identifier, which the API synthesizes as ``id``.
    """

    identifier: str
    attributes: tuple[FieldSpec, ...]
    relations: tuple[RelationSpec, ...] = ()
    created_field: str = "created_at"
    updated_field: str = "updated_at"

    @classmethod
    def from_model(cls, model: type) -> "EntitySchema":
        """
        Describe a mapped SQLAlchemy model.

        Called once when the model is registered, never per request.
        """
        mapper = inspect(model)
        primary_keys = [column.key for column in mapper.primary_key]
        if len(primary_keys) != 1:
            raise ValueError(f"{model.__name__} must have exactly one primary key column")
        identifier = mapper.get_property_by_column(mapper.primary_key[0]).key

        attributes = []
        for prop in mapper.column_attrs:
            if prop.key == identifier:
                continue
            column = prop.columns[0]
            field_type, max_length, choices = field_type_for(column.type)
            attributes.append(
                FieldSpec(
                    name=prop.key,
                    type=field_type,
                    max_length=max_length,
                    choices=choices,
                    nullable=bool(column.nullable),
                ),
            )

        relations = tuple(
            RelationSpec(name=rel.key, target=rel.mapper.class_, many=bool(rel.uselist))
            for rel in mapper.relationships
        )
        return cls(identifier=identifier, attributes=tuple(attributes), relations=relations)

    def attribute(self, name: str) -> FieldSpec | None:
        """Look up a declared attribute by name."""
        for spec in self.attributes:
            if spec.name == name:
                return spec
        return None

    def relation(self, name: str) -> RelationSpec | None:
        """Look up a declared relation by name."""
        for spec in self.relations:
            if spec.name == name:
                return spec
        return None

    @property
    def attribute_names(self) -> tuple[str, ...]:
        return tuple(spec.name for spec in self.attributes)


@dataclass(frozen=True)
class ApiConfig:
    """
    API exposure settings for one entity type.

    Empty ``fields`` / ``writable_fields`` mean "derive from the schema".
    ``uuid_field`` selects the external identifier strategy; when None the
    numeric identifier is used for addressing and for the ``id`` key.
    """

    fields: tuple[str, ...] = ()
    exclude_fields: tuple[str, ...] = ()
    writable_fields: tuple[str, ...] = ()
    exclude_writable_fields: tuple[str, ...] = ()
    include_single_relations: bool = True
    include_plural_relations: bool = False
    uuid_field: str | None = None


class FieldAccessPolicy:
    """
    Resolved readable and writable field sets for one entity type.

    Exclusions always win over inclusions. Writable fields are always a subset
    of the declared attributes and never contain the identifier, creation or
    modification timestamps, or the external identifier field.
    """

    def __init__(self, schema: EntitySchema, config: ApiConfig) -> None:
        self.schema = schema
        self.config = config

        known = set(schema.attribute_names) | {rel.name for rel in schema.relations}
        unknown = [name for name in config.fields if name not in known]
        if unknown:
            raise ValueError(f"Unknown readable fields: {', '.join(unknown)}")
        unknown = [name for name in config.writable_fields if schema.attribute(name) is None]
        if unknown:
            raise ValueError(f"Writable fields must be declared attributes: {', '.join(unknown)}")
        if config.uuid_field is not None and schema.attribute(config.uuid_field) is None:
            raise ValueError(f"External identifier field is not declared: {config.uuid_field}")

        self.readable_fields: tuple[str, ...] = self._resolve_readable()
        self.writable_fields: tuple[str, ...] = self._resolve_writable()
        self._readable_set = frozenset(self.readable_fields)
        self._writable_set = frozenset(self.writable_fields)

    @property
    def always_excluded_writable(self) -> frozenset[str]:
        """Fields that are never writable regardless of configuration."""
        excluded = {
            self.schema.identifier,
            self.schema.created_field,
            self.schema.updated_field,
        }
        if self.config.uuid_field:
            excluded.add(self.config.uuid_field)
        return frozenset(excluded)

    def _resolve_readable(self) -> tuple[str, ...]:
        exclude = set(self.config.exclude_fields)
        if self.config.fields:
            candidates = list(self.config.fields)
        else:
            candidates = list(self.schema.attribute_names)
            for rel in self.schema.relations:
                if rel.many and self.config.include_plural_relations:
                    candidates.append(rel.name)
                elif not rel.many and self.config.include_single_relations:
                    candidates.append(rel.name)
        return _ordered_unique(name for name in candidates if name not in exclude)

    def _resolve_writable(self) -> tuple[str, ...]:
        exclude = set(self.config.exclude_writable_fields) | self.always_excluded_writable
        candidates = self.config.writable_fields or self.schema.attribute_names
        return _ordered_unique(name for name in candidates if name not in exclude)

    def is_readable(self, name: str) -> bool:
        return name in self._readable_set

    def is_writable(self, name: str) -> bool:
        return name in self._writable_set


def _ordered_unique(names: Iterable[str]) -> tuple[str, ...]:
    seen: dict[str, None] = {}
    for name in names:
        seen.setdefault(name, None)
    return tuple(seen)
