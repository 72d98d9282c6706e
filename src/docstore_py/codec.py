from __future__ import annotations

import math
from collections.abc import Mapping
from decimal import Decimal
from typing import Any

from boto3.dynamodb.types import TypeDeserializer

from .errors import UnsupportedTypeError, ValidationError
from .model import AttributeType, DocumentSchema

_deserializer = TypeDeserializer()
_MAX_EXACT_FLOAT = 2**53


def _number_string(value: Any) -> str:
    if isinstance(value, bool):
        raise ValidationError("boolean value for a number attribute")
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if not math.isfinite(value):
            raise ValidationError("number attribute must be finite")
        # Past 2**53 the exact expansion can exceed DynamoDB's 38 significant digits.
        if value.is_integer() and abs(value) < _MAX_EXACT_FLOAT:
            return str(int(value))
        return repr(value)
    raise ValidationError(f"not a number: {value!r}")


def encode_value(value: Any, attr_type: AttributeType | str) -> dict[str, Any]:
    if attr_type == AttributeType.STRING:
        return {"S": value}
    if attr_type == AttributeType.NUMBER:
        return {"N": _number_string(value)}
    if attr_type == AttributeType.BOOLEAN:
        return {"BOOL": value}
    raise UnsupportedTypeError(attr_type)


def encode(document: Mapping[str, Any], schema: DocumentSchema) -> dict[str, Any]:
    """Wrap each schema field of ``document`` with its attribute type tag.

    Fields the schema does not declare are dropped; ``None`` values are skipped.
    """
    item: dict[str, Any] = {}
    for name, value in document.items():
        attr_type = schema.get(name)
        if attr_type is None or value is None:
            continue
        item[name] = encode_value(value, attr_type)
    return item


def _plain(value: Any) -> Any:
    # Plain digit strings are ints; a fraction or exponent means a float was written.
    if isinstance(value, Decimal):
        if value.as_tuple().exponent == 0:
            return int(value)
        return float(value)
    return value


def decode(item: Mapping[str, Any]) -> dict[str, Any]:
    return {name: _plain(_deserializer.deserialize(av)) for name, av in item.items()}
