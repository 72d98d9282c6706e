from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from types import MappingProxyType
from typing import cast

from .errors import UnsupportedTypeError, ValidationError
from .validation import validate_field_name


class AttributeType(StrEnum):
    STRING = "S"
    NUMBER = "N"
    BOOLEAN = "BOOL"

    @classmethod
    def parse(cls, tag: object) -> AttributeType:
        if isinstance(tag, AttributeType):
            return tag
        if not isinstance(tag, str):
            raise UnsupportedTypeError(tag)

        normalized = tag.strip().upper()
        resolved = _TYPE_ALIASES.get(normalized)
        if resolved is None:
            raise UnsupportedTypeError(tag)
        return resolved


_TYPE_ALIASES: dict[str, AttributeType] = {
    "S": AttributeType.STRING,
    "STRING": AttributeType.STRING,
    "N": AttributeType.NUMBER,
    "NUMBER": AttributeType.NUMBER,
    "BOOL": AttributeType.BOOLEAN,
    "BOOLEAN": AttributeType.BOOLEAN,
}

ID = "id"
IS_ACTIVE = "isActive"
CREATED = "created"
CREATED_BY = "createdBy"
MODIFIED = "modified"
MODIFIED_BY = "modifiedBy"

METADATA_FIELDS: Mapping[str, AttributeType] = MappingProxyType(
    {
        ID: AttributeType.STRING,
        IS_ACTIVE: AttributeType.BOOLEAN,
        CREATED: AttributeType.NUMBER,
        CREATED_BY: AttributeType.STRING,
        MODIFIED: AttributeType.NUMBER,
        MODIFIED_BY: AttributeType.STRING,
    }
)

IMMUTABLE_FIELDS = frozenset({ID, CREATED, CREATED_BY})
STAMPED_FIELDS = frozenset({MODIFIED, MODIFIED_BY})


@dataclass(frozen=True, eq=False)
class DocumentSchema(Mapping[str, AttributeType]):
    """Field name to attribute type for one table shape.

    The metadata fields (``id``, ``isActive``, ``created``, ``createdBy``,
    ``modified``, ``modifiedBy``) are always present. A declaration may override
    the type of ``id`` but not of the other metadata fields.
    """

    fields: Mapping[str, AttributeType] = field(default_factory=dict)

    def __post_init__(self) -> None:
        resolved: dict[str, AttributeType] = dict(METADATA_FIELDS)
        for name, tag in self.fields.items():
            validate_field_name(name)
            attr_type = AttributeType.parse(tag)
            if name in METADATA_FIELDS and name != ID and attr_type != METADATA_FIELDS[name]:
                raise ValidationError(f"metadata field {name} must be {METADATA_FIELDS[name]}, got {attr_type}")
            resolved[name] = attr_type

        if resolved[ID] == AttributeType.BOOLEAN:
            raise ValidationError(f"{ID} must be a string or number attribute")

        object.__setattr__(self, "fields", MappingProxyType(resolved))

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, object]) -> DocumentSchema:
        return cls(fields=cast(Mapping[str, AttributeType], dict(mapping)))

    @property
    def id_type(self) -> AttributeType:
        return self.fields[ID]

    @property
    def user_fields(self) -> tuple[str, ...]:
        return tuple(name for name in self.fields if name not in METADATA_FIELDS)

    def restrict(self, document: Mapping[str, object]) -> dict[str, object]:
        return {k: v for k, v in document.items() if k in self.fields}

    def __getitem__(self, key: str) -> AttributeType:
        return self.fields[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self.fields)

    def __len__(self) -> int:
        return len(self.fields)
