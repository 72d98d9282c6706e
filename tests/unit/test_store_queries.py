from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import pytest

from docstore_py import BackendError, DocumentSchema, DocumentStore, ValidationError
from docstore_py.codec import encode
from docstore_py.testkit import FakeDynamoDBClient, client_error, fixed_clock

SCHEMA = DocumentSchema.from_mapping({"title": "S", "genre": "S", "pages": "N"})


def _store(client: FakeDynamoDBClient, **kwargs: Any) -> DocumentStore:
    return DocumentStore(SCHEMA, client=client, clock=fixed_clock(0), **kwargs)


def _item(doc_id: str, **fields: Any) -> dict[str, Any]:
    return encode({"id": doc_id, "isActive": True, **fields}, SCHEMA)


def test_get_documents_by_prop_scans_with_filter_and_active_clause() -> None:
    client = FakeDynamoDBClient()
    client.expect(
        "scan",
        {
            "TableName": "Books",
            "FilterExpression": "#f_genre = :f1 AND #f_isActive = :active",
            "ExpressionAttributeNames": {"#f_genre": "genre", "#f_isActive": "isActive"},
            "ExpressionAttributeValues": {":f1": {"S": "scifi"}, ":active": {"BOOL": True}},
            "Limit": 50,
        },
        response={"Items": [_item("b1", genre="scifi")]},
    )

    out = _store(client).get_documents_by_prop("Books", "genre", "scifi")

    assert out == [{"id": "b1", "isActive": True, "genre": "scifi"}]
    assert "IndexName" not in client.calls[0][1]
    client.assert_no_pending()


def test_get_documents_by_props_includes_inactive_and_index() -> None:
    client = FakeDynamoDBClient()
    client.expect(
        "scan",
        {
            "IndexName": "genre-index",
            "FilterExpression": "#f_genre = :f1 AND #f_pages = :f2",
            "ExpressionAttributeValues": {":f1": {"S": "scifi"}, ":f2": {"N": "412"}},
            "Limit": 5,
        },
        response={"Items": []},
    )

    out = _store(client).get_documents_by_props(
        "Books",
        {"genre": "scifi", "pages": 412},
        limit=5,
        index_name="genre-index",
        include_inactive=True,
    )

    assert out == []
    assert "#f_isActive" not in client.calls[0][1]["ExpressionAttributeNames"]


def test_get_documents_by_props_rejects_unknown_field_and_bad_limit() -> None:
    store = _store(FakeDynamoDBClient())

    with pytest.raises(ValidationError, match="unknown field: colour"):
        store.get_documents_by_props("Books", {"colour": "red"})
    with pytest.raises(ValidationError, match="limit must be > 0"):
        store.get_documents_by_prop("Books", "genre", "scifi", limit=0)


def test_scan_pages_until_limit_is_reached() -> None:
    client = FakeDynamoDBClient()
    client.expect(
        "scan",
        {"Limit": 3},
        response={"Items": [_item("b1")], "LastEvaluatedKey": {"id": {"S": "b1"}}},
    )
    client.expect(
        "scan",
        {"Limit": 3, "ExclusiveStartKey": {"id": {"S": "b1"}}},
        response={"Items": [_item("b2"), _item("b3"), _item("b4")], "LastEvaluatedKey": {"id": {"S": "b4"}}},
    )

    out = _store(client).get_active_documents("Books", limit=3)

    assert [d["id"] for d in out] == ["b1", "b2", "b3"]
    client.assert_no_pending()


def test_scan_stops_when_table_is_exhausted() -> None:
    client = FakeDynamoDBClient()
    client.expect("scan", response={"Items": []})

    assert _store(client).get_all_documents("Empty") == []
    req = client.calls[0][1]
    assert "FilterExpression" not in req
    assert "ExpressionAttributeNames" not in req


def test_default_limit_comes_from_store() -> None:
    client = FakeDynamoDBClient()
    client.expect("scan", {"Limit": 7}, response={})

    _store(client, default_limit=7).get_all_documents("Books")
    client.assert_no_pending()


def test_query_documents_by_prop_uses_prefix_range_on_named_index() -> None:
    client = FakeDynamoDBClient()
    client.expect(
        "query",
        {
            "TableName": "Books",
            "IndexName": "title",
            "ScanIndexForward": True,
            "KeyConditionExpression": "#k_title BETWEEN :k1 AND :k2",
            "FilterExpression": "#f_isActive = :active",
            "ExpressionAttributeNames": {"#k_title": "title", "#f_isActive": "isActive"},
            "ExpressionAttributeValues": {
                ":k1": {"S": "du"},
                ":k2": {"S": "du\uf8ff"},
                ":active": {"BOOL": True},
            },
        },
        response={"Items": [_item("b1", title="dune")]},
    )

    out = _store(client).query_documents_by_prop("Books", "title", "Du")

    assert out[0]["title"] == "dune"
    client.assert_no_pending()


def test_query_documents_by_prop_with_partition_and_descending_order() -> None:
    client = FakeDynamoDBClient()
    client.expect(
        "query",
        {
            "IndexName": "genre-title-index",
            "ScanIndexForward": False,
            "KeyConditionExpression": "#k_genre = :k1 AND #k_title BETWEEN :k2 AND :k3",
            "ExpressionAttributeValues": {
                ":k1": {"S": "scifi"},
                ":k2": {"S": "d"},
                ":k3": {"S": "d\uf8ff"},
            },
        },
        response={"Items": []},
    )

    _store(client).query_documents_by_prop(
        "Books",
        "title",
        "d",
        index_name="genre-title-index",
        partition_key=("genre", "scifi"),
        scan_forward=False,
        include_inactive=True,
    )

    assert "FilterExpression" not in client.calls[0][1]


def test_query_documents_by_prop_requires_string_attribute() -> None:
    with pytest.raises(ValidationError, match="string attribute: pages"):
        _store(FakeDynamoDBClient()).query_documents_by_prop("Books", "pages", "4")


def test_get_recent_documents_reads_created_index_newest_first() -> None:
    client = FakeDynamoDBClient()
    client.expect(
        "query",
        {
            "IndexName": "created-index",
            "ScanIndexForward": False,
            "KeyConditionExpression": "#k_genre = :k1",
            "FilterExpression": "#f_isActive = :active",
            "Limit": 2,
        },
        response={"Items": [_item("b2", created=2), _item("b1", created=1)]},
    )

    out = _store(client).get_recent_documents("Books", limit=2, partition_key=("genre", "scifi"))

    assert [d["created"] for d in out] == [2, 1]


def test_get_my_documents_and_get_user_documents_differ_on_visibility() -> None:
    client = FakeDynamoDBClient()
    client.expect(
        "scan",
        {"FilterExpression": "#f_createdBy = :f1 AND #f_isActive = :active"},
        response={"Items": [_item("b1", createdBy="u1")]},
    )
    client.expect(
        "scan",
        {"FilterExpression": "#f_createdBy = :f1", "ExpressionAttributeValues": {":f1": {"S": "u1"}}},
        response={"Items": [_item("b1", createdBy="u1"), encode({"id": "b2", "isActive": False, "createdBy": "u1"}, SCHEMA)]},
    )
    store = _store(client)

    assert [d["id"] for d in store.get_my_documents("Books", "u1")] == ["b1"]
    assert [d["id"] for d in store.get_user_documents("Books", "u1")] == ["b1", "b2"]
    client.assert_no_pending()


def _answer_by_genre(items: Mapping[str, list[dict[str, Any]]]):
    def respond(req: Mapping[str, Any]) -> Mapping[str, Any]:
        genre = req["ExpressionAttributeValues"][":f1"]["S"]
        return {"Items": items.get(genre, [])}

    return respond


def test_get_documents_where_in_prop_concatenates_in_value_order() -> None:
    items = {
        "a": [_item("a1", genre="a")],
        "b": [_item("b1", genre="b"), _item("b2", genre="b")],
        "c": [],
    }
    client = FakeDynamoDBClient()
    for _ in range(3):
        client.expect("scan", response=_answer_by_genre(items))

    out = _store(client).get_documents_where_in_prop("Books", "genre", ["a", "b", "c", "a"], limit=10)

    assert [d["id"] for d in out] == ["a1", "b1", "b2"]
    assert len(client.calls_for("scan")) == 3
    client.assert_no_pending()


def test_get_documents_where_in_prop_truncates_to_limit() -> None:
    client = FakeDynamoDBClient()
    client.expect("scan", {"Limit": 2}, response={"Items": [_item("x1"), _item("x2")]})
    client.expect("scan", {"Limit": 2}, response={"Items": [_item("y1")]})

    out = _store(client).get_documents_where_in_prop("Books", "genre", ["x", "y"], limit=2, max_workers=1)

    assert [d["id"] for d in out] == ["x1", "x2"]


def test_get_documents_where_in_prop_dedupes_on_encoded_value() -> None:
    client = FakeDynamoDBClient()
    client.expect("scan", {"ExpressionAttributeValues": {":f1": {"N": "1"}}}, response={})
    client.expect("scan", {"ExpressionAttributeValues": {":f1": {"N": "2"}}}, response={})

    _store(client).get_documents_where_in_prop("Books", "pages", [1, 1.0, 2], max_workers=1)

    client.assert_no_pending()


def test_get_documents_where_in_prop_keeps_bool_and_number_candidates_apart() -> None:
    client = FakeDynamoDBClient()
    client.expect("scan", {"ExpressionAttributeValues": {":f1": {"S": True}}}, response={})
    client.expect("scan", {"ExpressionAttributeValues": {":f1": {"S": 1}}}, response={})

    _store(client).get_documents_where_in_prop("Books", "genre", [True, 1], max_workers=1)

    client.assert_no_pending()


def test_get_documents_where_in_prop_empty_values_makes_no_calls() -> None:
    client = FakeDynamoDBClient()

    assert _store(client).get_documents_where_in_prop("Books", "genre", []) == []
    assert client.calls == []


def test_get_documents_where_in_prop_respects_include_inactive() -> None:
    client = FakeDynamoDBClient()
    client.expect("scan", {"FilterExpression": "#f_genre = :f1 AND #f_isActive = :active"}, response={})
    client.expect("scan", {"FilterExpression": "#f_genre = :f1"}, response={})
    store = _store(client)

    store.get_documents_where_in_prop("Books", "genre", ["a"])
    store.get_documents_where_in_prop("Books", "genre", ["a"], include_inactive=True)
    client.assert_no_pending()


def test_get_documents_where_in_prop_fails_whole_call_on_any_error() -> None:
    client = FakeDynamoDBClient()
    client.expect("scan", response={"Items": [_item("a1")]})
    client.expect("scan", error=client_error("InternalServerError", "boom"))

    with pytest.raises(BackendError) as excinfo:
        _store(client).get_documents_where_in_prop("Books", "genre", ["a", "b"], max_workers=1)
    assert excinfo.value.code == "InternalServerError"


def test_get_documents_where_in_prop_rejects_bad_worker_count() -> None:
    with pytest.raises(ValidationError, match="max_workers"):
        _store(FakeDynamoDBClient()).get_documents_where_in_prop("Books", "genre", ["a"], max_workers=0)


def test_missing_table_is_a_backend_error() -> None:
    client = FakeDynamoDBClient()
    client.expect("scan", error=client_error("ResourceNotFoundException", "Requested resource not found"))

    with pytest.raises(BackendError) as excinfo:
        _store(client).get_active_documents("Missing")
    assert excinfo.value.code == "ResourceNotFoundException"
