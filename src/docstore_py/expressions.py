from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .codec import encode_value
from .errors import ValidationError
from .model import IS_ACTIVE, AttributeType, DocumentSchema

# Upper bound appended to a prefix so BETWEEN covers every string starting with it.
PREFIX_UPPER_MARKER = "\uf8ff"


@dataclass(frozen=True)
class Predicate:
    field: str
    op: str
    values: tuple[Any, ...] = ()

    @staticmethod
    def eq(field: str, value: Any) -> Predicate:
        return Predicate(field=field, op="=", values=(value,))

    @staticmethod
    def between(field: str, low: Any, high: Any) -> Predicate:
        return Predicate(field=field, op="between", values=(low, high))

    @staticmethod
    def from_mapping(props: Mapping[str, Any]) -> tuple[Predicate, ...]:
        return tuple(Predicate.eq(name, value) for name, value in props.items())


class Visibility(Enum):
    """Soft-delete policy applied to a read: active documents only, or all."""

    ACTIVE_ONLY = "active_only"
    ALL = "all"

    @classmethod
    def of(cls, include_inactive: bool) -> Visibility:
        return cls.ALL if include_inactive else cls.ACTIVE_ONLY


@dataclass(frozen=True)
class CompiledExpression:
    expression: str = ""
    names: Mapping[str, str] = field(default_factory=dict)
    values: Mapping[str, Any] = field(default_factory=dict)

    @property
    def empty(self) -> bool:
        return not self.expression


class _Placeholders:
    def __init__(self, schema: DocumentSchema, prefix: str) -> None:
        self._schema = schema
        self._prefix = prefix
        self._counter = 0
        self.names: dict[str, str] = {}
        self.values: dict[str, Any] = {}

    def attr_type(self, field_name: str) -> AttributeType:
        attr_type = self._schema.get(field_name)
        if attr_type is None:
            raise ValidationError(f"unknown field: {field_name}")
        return attr_type

    def name_ref(self, field_name: str) -> str:
        self.attr_type(field_name)
        ref = f"#{self._prefix}_{field_name}"
        self.names[ref] = field_name
        return ref

    def value_ref(self, field_name: str, value: Any) -> str:
        self._counter += 1
        ref = f":{self._prefix}{self._counter}"
        self.values[ref] = encode_value(value, self.attr_type(field_name))
        return ref

    def compile(self, expression: str) -> CompiledExpression:
        if not expression:
            return CompiledExpression()
        return CompiledExpression(expression=expression, names=dict(self.names), values=dict(self.values))


def _term(ph: _Placeholders, predicate: Predicate) -> str:
    name = ph.name_ref(predicate.field)
    op = predicate.op.strip().upper()
    vals = predicate.values

    if op in {"=", "EQ"}:
        if len(vals) != 1:
            raise ValidationError(f"{predicate.op} requires one value")
        return f"{name} = {ph.value_ref(predicate.field, vals[0])}"

    if op == "BETWEEN":
        if len(vals) != 2:
            raise ValidationError("BETWEEN requires two values")
        low = ph.value_ref(predicate.field, vals[0])
        high = ph.value_ref(predicate.field, vals[1])
        return f"{name} BETWEEN {low} AND {high}"

    raise ValidationError(f"unsupported predicate operator: {predicate.op}")


def build_filter(
    predicates: Iterable[Predicate],
    visibility: Visibility,
    schema: DocumentSchema,
) -> CompiledExpression:
    """AND together one clause per predicate, plus the active-only clause.

    With no predicates the result is the active-only clause alone, or an empty
    expression when inactive documents are visible.
    """
    ph = _Placeholders(schema, "f")
    parts = [_term(ph, p) for p in predicates]

    if visibility is Visibility.ACTIVE_ONLY:
        name = ph.name_ref(IS_ACTIVE)
        ph.values[":active"] = {"BOOL": True}
        parts.append(f"{name} = :active")

    return ph.compile(" AND ".join(parts))


def build_key_condition(
    partition: Predicate | None,
    schema: DocumentSchema,
    *,
    sort: Predicate | None = None,
) -> CompiledExpression:
    ph = _Placeholders(schema, "k")
    parts: list[str] = []
    if partition is not None:
        if partition.op != "=":
            raise ValidationError("partition key condition must be an equality")
        parts.append(_term(ph, partition))
    if sort is not None:
        parts.append(_term(ph, sort))
    return ph.compile(" AND ".join(parts))


def prefix_bounds(text: str) -> tuple[str, str]:
    low = text.lower()
    return low, low + PREFIX_UPPER_MARKER


def build_prefix_range(
    field_name: str,
    text: str,
    schema: DocumentSchema,
    *,
    partition: Predicate | None = None,
) -> CompiledExpression:
    """Key condition matching every value of ``field_name`` that starts with ``text``.

    The range is ``[text.lower(), text.lower() + U+F8FF]``, so it only behaves as
    a prefix match on an index sorted by ``field_name``.
    """
    if not isinstance(text, str):
        raise ValidationError("prefix query text must be a string")
    if schema.get(field_name) not in {None, AttributeType.STRING}:
        raise ValidationError(f"prefix query requires a string attribute: {field_name}")

    low, high = prefix_bounds(text)
    return build_key_condition(partition, schema, sort=Predicate.between(field_name, low, high))


def build_update(updates: Mapping[str, Any], schema: DocumentSchema) -> CompiledExpression:
    names: dict[str, str] = {}
    values: dict[str, Any] = {}
    set_parts: list[str] = []
    remove_parts: list[str] = []

    for field_name, value in updates.items():
        attr_type = schema.get(field_name)
        if attr_type is None:
            continue
        name_ref = f"#d_{field_name}"
        names[name_ref] = field_name

        if value is None:
            remove_parts.append(name_ref)
            continue

        value_ref = f":d_{field_name}"
        values[value_ref] = encode_value(value, attr_type)
        set_parts.append(f"{name_ref} = {value_ref}")

    expr_parts: list[str] = []
    if set_parts:
        expr_parts.append("SET " + ", ".join(set_parts))
    if remove_parts:
        expr_parts.append("REMOVE " + ", ".join(remove_parts))
    if not expr_parts:
        return CompiledExpression()
    return CompiledExpression(expression=" ".join(expr_parts), names=names, values=values)


def merge(parts: Sequence[CompiledExpression]) -> tuple[dict[str, str], dict[str, Any]]:
    names: dict[str, str] = {}
    values: dict[str, Any] = {}
    for part in parts:
        for k, v in part.names.items():
            if k in names and names[k] != v:
                raise ValidationError(f"expression attribute name collision: {k}")
            names[k] = v
        for k, v in part.values.items():
            if k in values:
                raise ValidationError(f"expression attribute value collision: {k}")
            values[k] = v
    return names, values
