from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

from botocore.exceptions import ClientError

from .aws_errors import error_code
from .aws_errors import map_client_error as _map_client_error
from .errors import BackendError, ValidationError
from .model import CREATED, ID, AttributeType, DocumentSchema
from .store import RECENT_INDEX
from .validation import validate_index_name, validate_table_name

logger = logging.getLogger(__name__)

BillingMode = str  # "PAY_PER_REQUEST" | "PROVISIONED"


@dataclass(frozen=True)
class IndexSpec:
    name: str
    partition: str
    sort: str | None = None
    projection: str = "ALL"


def created_index(partition: str, *, name: str = RECENT_INDEX) -> IndexSpec:
    """Index read by ``DocumentStore.get_recent_documents``: ``partition`` hashed, sorted by ``created``."""
    return IndexSpec(name=name, partition=partition, sort=CREATED)


def build_create_table_request(
    table_name: str,
    schema: DocumentSchema,
    *,
    indexes: Sequence[IndexSpec] = (),
    billing_mode: BillingMode = "PAY_PER_REQUEST",
    provisioned_throughput: dict[str, int] | None = None,
) -> dict[str, Any]:
    validate_table_name(table_name)

    billing_mode = (billing_mode or "PAY_PER_REQUEST").strip() or "PAY_PER_REQUEST"
    if billing_mode not in {"PAY_PER_REQUEST", "PROVISIONED"}:
        raise ValidationError(f"unsupported billing_mode: {billing_mode}")
    if billing_mode == "PROVISIONED" and provisioned_throughput is None:
        raise ValidationError("provisioned_throughput is required when billing_mode=PROVISIONED")

    attr_types: dict[str, str] = {ID: _key_type(schema, ID)}
    gsis: list[dict[str, Any]] = []
    seen: set[str] = set()

    for idx in indexes:
        validate_index_name(idx.name)
        if idx.name in seen:
            raise ValidationError(f"duplicate index name: {idx.name}")
        seen.add(idx.name)

        attr_types[idx.partition] = _key_type(schema, idx.partition)
        key_schema = [{"AttributeName": idx.partition, "KeyType": "HASH"}]
        if idx.sort is not None:
            attr_types[idx.sort] = _key_type(schema, idx.sort)
            key_schema.append({"AttributeName": idx.sort, "KeyType": "RANGE"})

        gsi: dict[str, Any] = {
            "IndexName": idx.name,
            "KeySchema": key_schema,
            "Projection": {"ProjectionType": idx.projection},
        }
        if billing_mode == "PROVISIONED" and provisioned_throughput is not None:
            gsi["ProvisionedThroughput"] = dict(provisioned_throughput)
        gsis.append(gsi)

    req: dict[str, Any] = {
        "TableName": table_name,
        "BillingMode": billing_mode,
        "KeySchema": [{"AttributeName": ID, "KeyType": "HASH"}],
        "AttributeDefinitions": [
            {"AttributeName": name, "AttributeType": attr_types[name]} for name in sorted(attr_types)
        ],
    }
    if billing_mode == "PROVISIONED" and provisioned_throughput is not None:
        req["ProvisionedThroughput"] = dict(provisioned_throughput)
    if gsis:
        req["GlobalSecondaryIndexes"] = gsis
    return req


def ensure_table(
    table_name: str,
    schema: DocumentSchema,
    *,
    client: Any,
    indexes: Sequence[IndexSpec] = (),
    billing_mode: BillingMode = "PAY_PER_REQUEST",
    provisioned_throughput: dict[str, int] | None = None,
    wait_timeout_seconds: float = 300.0,
    poll_interval_seconds: float = 0.25,
    sleep: Callable[[float], None] = time.sleep,
) -> None:
    req = build_create_table_request(
        table_name,
        schema,
        indexes=indexes,
        billing_mode=billing_mode,
        provisioned_throughput=provisioned_throughput,
    )

    try:
        client.describe_table(TableName=table_name)
    except ClientError as err:
        if error_code(err) != "ResourceNotFoundException":
            raise _map_client_error(err) from err

        logger.info("creating document table %s", table_name)
        try:
            client.create_table(**req)
        except ClientError as create_err:
            if error_code(create_err) != "ResourceInUseException":
                raise _map_client_error(create_err) from create_err

    _wait_for_table_active(
        client,
        table_name,
        timeout_seconds=wait_timeout_seconds,
        poll_interval_seconds=poll_interval_seconds,
        sleep=sleep,
    )


def delete_table(
    table_name: str,
    *,
    client: Any,
    ignore_missing: bool = False,
) -> None:
    validate_table_name(table_name)
    try:
        client.delete_table(TableName=table_name)
    except ClientError as err:
        if ignore_missing and error_code(err) == "ResourceNotFoundException":
            return
        raise _map_client_error(err) from err
    logger.info("deleted document table %s", table_name)


def _wait_for_table_active(
    client: Any,
    table_name: str,
    *,
    timeout_seconds: float,
    poll_interval_seconds: float,
    sleep: Callable[[float], None],
) -> None:
    deadline = time.monotonic() + timeout_seconds
    while time.monotonic() < deadline:
        try:
            resp = client.describe_table(TableName=table_name)
        except ClientError as err:
            if error_code(err) != "ResourceNotFoundException":
                raise _map_client_error(err) from err
            resp = {}

        status = str(resp.get("Table", {}).get("TableStatus", ""))
        if status == "ACTIVE":
            return
        sleep(poll_interval_seconds)

    raise BackendError(code="Timeout", message=f"timed out waiting for table ACTIVE: {table_name}")


def _key_type(schema: DocumentSchema, field_name: str) -> str:
    attr_type = schema.get(field_name)
    if attr_type is None:
        raise ValidationError(f"unknown field: {field_name}")
    if attr_type == AttributeType.BOOLEAN:
        raise ValidationError(f"key attribute must be S or N: {field_name}")
    return str(attr_type)
