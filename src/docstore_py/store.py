from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable, Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from typing import Any

from botocore.exceptions import ClientError

from .aws_errors import map_client_error as _map_client_error
from .codec import decode, encode, encode_value
from .errors import BackendError, ConditionFailedError, NotFoundError, ValidationError
from .expressions import (
    CompiledExpression,
    Predicate,
    Visibility,
    build_filter,
    build_key_condition,
    build_prefix_range,
    build_update,
    merge,
)
from .model import (
    CREATED,
    CREATED_BY,
    ID,
    IMMUTABLE_FIELDS,
    IS_ACTIVE,
    MODIFIED,
    MODIFIED_BY,
    STAMPED_FIELDS,
    DocumentSchema,
)
from .runtime import StoreConfig, create_dynamodb_client
from .validation import validate_index_name, validate_limit, validate_table_name

logger = logging.getLogger(__name__)

type Document = dict[str, Any]

RECENT_INDEX = "created-index"
MAX_WHERE_IN_WORKERS = 8


def _now_millis() -> int:
    return time.time_ns() // 1_000_000


def _is_active(item: Mapping[str, Any]) -> bool:
    return item.get(IS_ACTIVE) == {"BOOL": True}


class DocumentStore:
    """Schema-driven document access over one DynamoDB table shape.

    The table name is passed on every call; the schema is fixed per instance.
    Reads hide inactive (archived) documents unless ``include_inactive`` is set.
    """

    def __init__(
        self,
        schema: DocumentSchema | Mapping[str, object],
        *,
        client: Any | None = None,
        config: StoreConfig | None = None,
        clock: Callable[[], int] | None = None,
        default_limit: int | None = None,
    ) -> None:
        if not isinstance(schema, DocumentSchema):
            schema = DocumentSchema.from_mapping(schema)

        self._schema = schema
        self._config = config or StoreConfig()
        self._client: Any = client or create_dynamodb_client(self._config)
        self._clock = clock or _now_millis
        self._default_limit = default_limit if default_limit is not None else self._config.default_limit
        validate_limit(self._default_limit)

    @property
    def schema(self) -> DocumentSchema:
        return self._schema

    def create_document(
        self,
        table_name: str,
        data: Mapping[str, Any],
        user_id: str | None,
        *,
        no_meta_data: bool = False,
    ) -> Document:
        validate_table_name(table_name)
        if data.get(ID) is None:
            raise ValidationError("missing id")

        item = encode(data, self._schema)
        if not no_meta_data:
            now = self._clock()
            stamps = {CREATED: now, CREATED_BY: user_id, MODIFIED: now, MODIFIED_BY: user_id}
            item.update(encode(stamps, self._schema))
        item[IS_ACTIVE] = {"BOOL": True}

        self._call("put_item", TableName=table_name, Item=item)
        return {ID: data[ID], **data}

    def get_document_by_id(
        self,
        table_name: str,
        document_id: Any,
        *,
        include_inactive: bool = False,
    ) -> Document:
        validate_table_name(table_name)
        resp = self._call("get_item", TableName=table_name, Key=self._key(document_id))

        item = resp.get("Item")
        if not item or (not _is_active(item) and not include_inactive):
            raise NotFoundError(f"{table_name}:{document_id} not found")
        return decode(item)

    def get_documents_by_prop(
        self,
        table_name: str,
        prop_name: str,
        prop_value: Any,
        *,
        limit: int | None = None,
        index_name: str | None = None,
        include_inactive: bool = False,
    ) -> list[Document]:
        return self.get_documents_by_props(
            table_name,
            {prop_name: prop_value},
            limit=limit,
            index_name=index_name,
            include_inactive=include_inactive,
        )

    def get_documents_by_props(
        self,
        table_name: str,
        props: Mapping[str, Any],
        *,
        limit: int | None = None,
        index_name: str | None = None,
        include_inactive: bool = False,
    ) -> list[Document]:
        filter = build_filter(Predicate.from_mapping(props), Visibility.of(include_inactive), self._schema)
        return self._scan(table_name, filter=filter, index_name=index_name, limit=limit)

    def query_documents_by_prop(
        self,
        table_name: str,
        prop_name: str,
        query_text: str,
        *,
        limit: int | None = None,
        index_name: str | None = None,
        partition_key: tuple[str, Any] | None = None,
        scan_forward: bool = True,
        include_inactive: bool = False,
    ) -> list[Document]:
        """Prefix query on an index sorted by ``prop_name``.

        ``index_name`` defaults to ``prop_name``. DynamoDB needs an equality on the
        index partition key; pass it as ``partition_key=(field, value)``. Inactive
        documents are removed with a filter expression.
        """
        partition = Predicate.eq(*partition_key) if partition_key is not None else None
        key_condition = build_prefix_range(prop_name, query_text, self._schema, partition=partition)
        filter = build_filter((), Visibility.of(include_inactive), self._schema)
        return self._query(
            table_name,
            key_condition=key_condition,
            filter=filter,
            index_name=index_name or prop_name,
            limit=limit,
            scan_forward=scan_forward,
        )

    def get_documents_where_in_prop(
        self,
        table_name: str,
        prop_name: str,
        values: Iterable[Any],
        *,
        limit: int | None = None,
        index_name: str | None = None,
        include_inactive: bool = False,
        max_workers: int | None = None,
    ) -> list[Document]:
        """Documents whose ``prop_name`` equals any of ``values``.

        DynamoDB has no IN over a scan key, so this issues one filtered scan per
        distinct value (in parallel), concatenates the results in the order the
        values were given and truncates to ``limit``. Cost grows linearly with
        the number of values. If any scan fails the whole call fails.
        """
        limit = self._resolve_limit(limit)
        validate_table_name(table_name)
        validate_index_name(index_name)

        # Candidates are keyed by their encoded form: 1 and 1.0 are one number,
        # while True and 1 stay distinct.
        visibility = Visibility.of(include_inactive)
        by_wire_value: dict[tuple[str, type, Any], CompiledExpression] = {}
        for value in values:
            f = build_filter((Predicate.eq(prop_name, value),), visibility, self._schema)
            ((tag, wire),) = f.values[":f1"].items()
            by_wire_value.setdefault((tag, type(wire), wire), f)

        filters = list(by_wire_value.values())
        if not filters:
            return []

        if max_workers is None:
            max_workers = min(len(filters), MAX_WHERE_IN_WORKERS)
        if max_workers <= 0:
            raise ValidationError("max_workers must be > 0")

        with ThreadPoolExecutor(max_workers=max_workers) as ex:
            futures = [
                ex.submit(self._scan, table_name, filter=f, index_name=index_name, limit=limit)
                for f in filters
            ]
            results = [fut.result() for fut in futures]

        out: list[Document] = []
        for docs in results:
            out.extend(docs)
        return out[:limit]

    def get_all_documents(
        self,
        table_name: str,
        *,
        limit: int | None = None,
        index_name: str | None = None,
    ) -> list[Document]:
        filter = build_filter((), Visibility.ALL, self._schema)
        return self._scan(table_name, filter=filter, index_name=index_name, limit=limit)

    def get_active_documents(
        self,
        table_name: str,
        *,
        limit: int | None = None,
        index_name: str | None = None,
    ) -> list[Document]:
        filter = build_filter((), Visibility.ACTIVE_ONLY, self._schema)
        return self._scan(table_name, filter=filter, index_name=index_name, limit=limit)

    def get_recent_documents(
        self,
        table_name: str,
        *,
        limit: int | None = None,
        index_name: str = RECENT_INDEX,
        partition_key: tuple[str, Any] | None = None,
        include_inactive: bool = False,
    ) -> list[Document]:
        """Newest first, read from an index sorted by ``created``."""
        partition = Predicate.eq(*partition_key) if partition_key is not None else None
        key_condition = build_key_condition(partition, self._schema)
        filter = build_filter((), Visibility.of(include_inactive), self._schema)
        return self._query(
            table_name,
            key_condition=key_condition,
            filter=filter,
            index_name=index_name,
            limit=limit,
            scan_forward=False,
        )

    def get_my_documents(
        self,
        table_name: str,
        user_id: str,
        *,
        limit: int | None = None,
        index_name: str | None = None,
    ) -> list[Document]:
        filter = build_filter((Predicate.eq(CREATED_BY, user_id),), Visibility.ACTIVE_ONLY, self._schema)
        return self._scan(table_name, filter=filter, index_name=index_name, limit=limit)

    def get_user_documents(
        self,
        table_name: str,
        user_id: str,
        *,
        limit: int | None = None,
        index_name: str | None = None,
    ) -> list[Document]:
        filter = build_filter((Predicate.eq(CREATED_BY, user_id),), Visibility.ALL, self._schema)
        return self._scan(table_name, filter=filter, index_name=index_name, limit=limit)

    def update_document(
        self,
        table_name: str,
        document_id: Any,
        data: Mapping[str, Any],
        user_id: str | None = None,
        *,
        no_meta_data: bool = False,
    ) -> Document:
        validate_table_name(table_name)
        key = self._key(document_id)

        updates: dict[str, Any] = {}
        for field_name, value in data.items():
            if field_name == ID:
                if value != document_id:
                    raise ValidationError(f"cannot update key field: {ID}")
                continue
            if field_name in IMMUTABLE_FIELDS:
                raise ValidationError(f"cannot update immutable field: {field_name}")
            if field_name in STAMPED_FIELDS:
                raise ValidationError(f"{field_name} is set by the store")
            updates[field_name] = value

        if not no_meta_data and user_id:
            updates[MODIFIED] = self._clock()
            updates[MODIFIED_BY] = user_id

        update = build_update(updates, self._schema)
        if update.empty:
            raise ValidationError("no updates provided")

        condition = CompiledExpression(expression="attribute_exists(#c_id)", names={"#c_id": ID})
        names, values = merge([update, condition])

        req: dict[str, Any] = {
            "TableName": table_name,
            "Key": key,
            "UpdateExpression": update.expression,
            "ConditionExpression": condition.expression,
            "ExpressionAttributeNames": names,
            "ReturnValues": "ALL_NEW",
        }
        if values:
            req["ExpressionAttributeValues"] = values

        try:
            resp = self._call("update_item", **req)
        except ConditionFailedError as err:
            raise NotFoundError(f"{table_name}:{document_id} not found") from err

        attrs = resp.get("Attributes")
        if not attrs:
            raise BackendError(code="MissingAttributes", message="update did not return Attributes")
        return {ID: document_id, **decode(attrs)}

    def archive_document(
        self,
        table_name: str,
        document_id: Any,
        user_id: str | None = None,
        *,
        no_meta_data: bool = False,
    ) -> Document:
        return self.update_document(
            table_name, document_id, {IS_ACTIVE: False}, user_id, no_meta_data=no_meta_data
        )

    def dearchive_document(
        self,
        table_name: str,
        document_id: Any,
        user_id: str | None = None,
        *,
        no_meta_data: bool = False,
    ) -> Document:
        return self.update_document(
            table_name, document_id, {IS_ACTIVE: True}, user_id, no_meta_data=no_meta_data
        )

    def delete_document(self, table_name: str, document_id: Any) -> Document:
        """Physically remove a document. This is the only hard-delete path."""
        validate_table_name(table_name)
        key = self._key(document_id)

        resp = self._call("get_item", TableName=table_name, Key=key)
        if not resp.get("Item"):
            raise NotFoundError(f"{table_name}:{document_id} not found")

        self._call("delete_item", TableName=table_name, Key=key)
        return {ID: document_id}

    def _key(self, document_id: Any) -> dict[str, Any]:
        if document_id is None:
            raise ValidationError("id is required")
        return {ID: encode_value(document_id, self._schema.id_type)}

    def _resolve_limit(self, limit: int | None) -> int:
        if limit is None:
            return self._default_limit
        validate_limit(limit)
        return limit

    def _scan(
        self,
        table_name: str,
        *,
        filter: CompiledExpression,
        index_name: str | None,
        limit: int | None,
    ) -> list[Document]:
        validate_table_name(table_name)
        validate_index_name(index_name)

        req: dict[str, Any] = {"TableName": table_name}
        if index_name is not None:
            req["IndexName"] = index_name
        _apply_expressions(req, filter=filter)
        return self._collect("scan", req, self._resolve_limit(limit))

    def _query(
        self,
        table_name: str,
        *,
        key_condition: CompiledExpression,
        filter: CompiledExpression,
        index_name: str,
        limit: int | None,
        scan_forward: bool,
    ) -> list[Document]:
        validate_table_name(table_name)
        validate_index_name(index_name)

        req: dict[str, Any] = {
            "TableName": table_name,
            "IndexName": index_name,
            "ScanIndexForward": scan_forward,
        }
        _apply_expressions(req, key_condition=key_condition, filter=filter)
        return self._collect("query", req, self._resolve_limit(limit))

    def _collect(self, operation: str, req: dict[str, Any], limit: int) -> list[Document]:
        # Limit bounds items evaluated per request, before the filter, so keep
        # paging until enough documents matched or the table is exhausted.
        out: list[Document] = []
        req = dict(req, Limit=limit)

        while True:
            resp = self._call(operation, **req)
            out.extend(decode(item) for item in resp.get("Items", []))
            last = resp.get("LastEvaluatedKey")
            if not last or len(out) >= limit:
                break
            req["ExclusiveStartKey"] = last

        return out[:limit]

    def _call(self, operation: str, **req: Any) -> Mapping[str, Any]:
        logger.debug(
            "dynamodb %s table=%s index=%s",
            operation,
            req.get("TableName"),
            req.get("IndexName"),
        )
        try:
            return getattr(self._client, operation)(**req)
        except ClientError as err:
            raise _map_client_error(err) from err


def _apply_expressions(
    req: dict[str, Any],
    *,
    key_condition: CompiledExpression | None = None,
    filter: CompiledExpression | None = None,
) -> None:
    parts: Sequence[CompiledExpression] = [p for p in (key_condition, filter) if p is not None and not p.empty]
    if not parts:
        return

    if key_condition is not None and not key_condition.empty:
        req["KeyConditionExpression"] = key_condition.expression
    if filter is not None and not filter.empty:
        req["FilterExpression"] = filter.expression

    names, values = merge(parts)
    if names:
        req["ExpressionAttributeNames"] = names
    if values:
        req["ExpressionAttributeValues"] = values
