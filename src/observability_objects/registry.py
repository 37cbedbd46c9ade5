"""Type registry: maps an object type to its payload contract."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from pydantic import BaseModel, ValidationError

from observability_objects.errors import MalformedDocumentError
from observability_objects.types import (
    Notebook,
    ObjectType,
    OperationalPanel,
    SavedQuery,
    SavedVisualization,
)


@dataclass(frozen=True)
class PayloadContract:
    """Parse/serialize/validate contract and field classification for one type."""

    object_type: ObjectType
    model: type[BaseModel]
    text_fields: frozenset[str] = field(default_factory=frozenset)
    keyword_fields: frozenset[str] = field(default_factory=frozenset)

    @property
    def tag(self) -> str:
        return self.object_type.tag

    def parse(self, raw: Any) -> BaseModel:
        if not isinstance(raw, dict):
            raise MalformedDocumentError(
                f"Payload for '{self.tag}' must be an object, got {type(raw).__name__}"
            )
        try:
            return self.model.model_validate(raw)
        except ValidationError as e:
            raise MalformedDocumentError(f"Invalid '{self.tag}' payload: {e}") from e

    def serialize(self, payload: BaseModel) -> dict[str, Any]:
        return payload.model_dump(by_alias=True, exclude_none=True, mode="json")

    def validate(self, payload: Any) -> bool:
        return isinstance(payload, self.model)


class TypeRegistry:
    """Immutable mapping from ObjectType to PayloadContract.

    Built once and passed to the envelope, query builder and gateway.
    Registering a contract is the only change needed to add an object type.
    """

    def __init__(self, contracts: Iterable[PayloadContract]) -> None:
        by_type: dict[ObjectType, PayloadContract] = {}
        for contract in contracts:
            if contract.object_type is ObjectType.NONE:
                raise ValueError("ObjectType.NONE cannot be registered")
            if contract.object_type in by_type:
                raise ValueError(f"Duplicate registration for '{contract.tag}'")
            by_type[contract.object_type] = contract
        self._contracts: Mapping[ObjectType, PayloadContract] = MappingProxyType(by_type)

    @property
    def contracts(self) -> Mapping[ObjectType, PayloadContract]:
        return self._contracts

    def types(self) -> list[ObjectType]:
        return list(self._contracts)

    def tags(self) -> list[str]:
        return [t.tag for t in self._contracts]

    def resolve(self, tag: str | None) -> ObjectType:
        """Resolve a tag to a registered type; unknown tags give NONE."""
        object_type = ObjectType.from_tag_or_default(tag)
        if object_type not in self._contracts:
            return ObjectType.NONE
        return object_type

    def contract_for(self, object_type: ObjectType) -> PayloadContract:
        try:
            return self._contracts[object_type]
        except KeyError:
            raise MalformedDocumentError(
                f"No payload contract for type '{object_type.tag}'"
            ) from None

    def parser_for(self, object_type: ObjectType) -> Callable[[Any], BaseModel]:
        return self.contract_for(object_type).parse

    def serializer_for(self, object_type: ObjectType) -> Callable[[BaseModel], dict[str, Any]]:
        return self.contract_for(object_type).serialize

    def validate(self, object_type: ObjectType, payload: Any) -> bool:
        """True when the payload's variant matches the type; NONE accepts anything."""
        if object_type is ObjectType.NONE:
            return True
        contract = self._contracts.get(object_type)
        return contract is not None and contract.validate(payload)

    # --- Field classification ---

    def text_fields(self, object_types: Iterable[ObjectType] | None = None) -> set[str]:
        return {f for c in self._selected(object_types) for f in c.text_fields}

    def keyword_fields(self, object_types: Iterable[ObjectType] | None = None) -> set[str]:
        return {f for c in self._selected(object_types) for f in c.keyword_fields}

    def types_with_field(
        self, field_name: str, object_types: Iterable[ObjectType] | None = None
    ) -> list[PayloadContract]:
        return [
            c
            for c in self._selected(object_types)
            if field_name in c.text_fields or field_name in c.keyword_fields
        ]

    def _selected(self, object_types: Iterable[ObjectType] | None) -> list[PayloadContract]:
        if not object_types:
            return list(self._contracts.values())
        return [self._contracts[t] for t in object_types if t in self._contracts]


def build_default_registry() -> TypeRegistry:
    """Registry with the four built-in object types."""
    return TypeRegistry(
        [
            PayloadContract(
                ObjectType.NOTEBOOK,
                Notebook,
                text_fields=frozenset({"name"}),
                keyword_fields=frozenset({"backend"}),
            ),
            PayloadContract(
                ObjectType.SAVED_QUERY,
                SavedQuery,
                text_fields=frozenset({"name", "description"}),
            ),
            PayloadContract(
                ObjectType.SAVED_VISUALIZATION,
                SavedVisualization,
                text_fields=frozenset({"name", "description"}),
            ),
            PayloadContract(
                ObjectType.OPERATIONAL_PANEL,
                OperationalPanel,
                text_fields=frozenset({"name"}),
                keyword_fields=frozenset({"applicationId"}),
            ),
        ]
    )
