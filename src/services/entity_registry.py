"""
Explicit registry of entity types exposed through the CRUD API.

URL segments are only ever looked up here by exact name; a type that was not
registered cannot be reached. Everything about a type (schema, resolved field
policy, capabilities, hooks) is fixed at registration.
"""
import re
from collections.abc import Awaitable, Callable, Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any

from models.member import Member
from services.capability_gate import Capabilities
from services.field_policy import ApiConfig, EntitySchema, FieldAccessPolicy


SAFE_NAME_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

ComputedField = Callable[[Any], Any | Awaitable[Any]]
# Receives the record and the coerced values about to be written.
Validator = Callable[[Any, dict[str, Any]], list[str]]
BeforeCreate = Callable[[Any, Member | None], None]


@dataclass(frozen=True, eq=False)
class EntityRegistration:
    """Immutable binding of an API type name to its model and behaviour."""

    name: str
    model: type
    schema: EntitySchema
    config: ApiConfig
    policy: FieldAccessPolicy
    capabilities: Capabilities
    computed_fields: Mapping[str, ComputedField] = field(default_factory=dict)
    validator: Validator | None = None
    before_create: BeforeCreate | None = None
    readable: bool = True
    writable: bool = True

    @property
    def uuid_field(self) -> str | None:
        return self.config.uuid_field

    def primary_key(self, record: Any) -> Any:
        return getattr(record, self.schema.identifier)

    def record_id(self, record: Any) -> Any:
        """The identifier clients see: the external identifier when configured."""
        if self.uuid_field:
            return getattr(record, self.uuid_field)
        return self.primary_key(record)


class EntityRegistry:
    """Name → EntityRegistration lookup. Populated at startup, read-only afterwards."""

    def __init__(self) -> None:
        self._by_name: dict[str, EntityRegistration] = {}
        self._by_model: dict[type, EntityRegistration] = {}

    def register(
        self,
        name: str,
        model: type,
        *,
        config: ApiConfig | None = None,
        capabilities: Capabilities,
        schema: EntitySchema | None = None,
        computed_fields: Mapping[str, ComputedField] | None = None,
        validator: Validator | None = None,
        before_create: BeforeCreate | None = None,
        readable: bool = True,
        writable: bool = True,
    ) -> EntityRegistration:
        """
        Register an entity type.

        Raises:
            ValueError: If the name is unsafe or taken, the model is already
                registered, or the config names fields the schema lacks.
        """
        if not SAFE_NAME_PATTERN.fullmatch(name):
            raise ValueError(f"Invalid entity type name: {name!r}")
        if name in self._by_name:
            raise ValueError(f"Entity type already registered: {name}")
        if model in self._by_model:
            raise ValueError(f"Model already registered: {model.__name__}")

        config = config or ApiConfig()
        schema = schema or EntitySchema.from_model(model)
        registration = EntityRegistration(
            name=name,
            model=model,
            schema=schema,
            config=config,
            policy=FieldAccessPolicy(schema, config),
            capabilities=capabilities,
            computed_fields=dict(computed_fields or {}),
            validator=validator,
            before_create=before_create,
            readable=readable,
            writable=writable,
        )
        self._by_name[name] = registration
        self._by_model[model] = registration
        return registration

    def get(self, name: str) -> EntityRegistration | None:
        """Exact-name lookup."""
        return self._by_name.get(name)

    def for_model(self, model: type) -> EntityRegistration | None:
        return self._by_model.get(model)

    def names(self) -> list[str]:
        return list(self._by_name)

    def __iter__(self) -> Iterator[EntityRegistration]:
        return iter(self._by_name.values())

    def __len__(self) -> int:
        return len(self._by_name)
