from __future__ import annotations

import re

from .errors import ValidationError

MaxFieldNameLength = 255
MaxNameLength = 255
MinNameLength = 3

_FIELD_NAME = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")
_RESOURCE_NAME = re.compile(r"^[a-zA-Z0-9_.-]+$")


def validate_field_name(field: str) -> None:
    if not field:
        raise ValidationError("field name cannot be empty")
    if len(field) > MaxFieldNameLength:
        raise ValidationError("field name exceeds maximum length")
    # Field names are embedded in expression placeholders (#f_<field>).
    if _FIELD_NAME.match(field) is None:
        raise ValidationError(
            f"field name must start with letter or underscore and contain only "
            f"alphanumeric characters and underscores: {field!r}"
        )


def validate_table_name(name: str) -> None:
    _validate_resource_name(name, kind="table")


def validate_index_name(name: str | None) -> None:
    if name is None:
        return
    _validate_resource_name(name, kind="index")


def validate_limit(limit: int) -> None:
    if isinstance(limit, bool) or not isinstance(limit, int) or limit <= 0:
        raise ValidationError("limit must be > 0")


def _validate_resource_name(name: str, *, kind: str) -> None:
    if not isinstance(name, str) or len(name) < MinNameLength or len(name) > MaxNameLength:
        raise ValidationError(f"{kind} name length invalid: {name!r}")

    if _RESOURCE_NAME.match(name) is None:
        raise ValidationError(f"{kind} name contains invalid characters: {name!r}")
