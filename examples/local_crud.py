from __future__ import annotations

import asyncio
import logging
import os
import uuid

from docstore_py import AsyncDocumentStore, DocumentSchema, DocumentStore, StoreConfig, create_dynamodb_client
from docstore_py.schema import IndexSpec, created_index, delete_table, ensure_table

SCHEMA = DocumentSchema.from_mapping({"title": "S", "genre": "S", "pages": "N"})


def main() -> None:
    logging.basicConfig(level=os.environ.get("LOG_LEVEL", "INFO"))

    os.environ.setdefault("AWS_ACCESS_KEY_ID", "dummy")
    os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "dummy")
    os.environ.setdefault("DYNAMODB_ENDPOINT", "http://localhost:8000")
    os.environ.setdefault("AWS_REGION", "us-east-1")

    config = StoreConfig.from_env()
    client = create_dynamodb_client(config)
    table_name = f"docstore_py_example_{uuid.uuid4().hex[:12]}"

    ensure_table(
        table_name,
        SCHEMA,
        client=client,
        indexes=[IndexSpec(name="title", partition="genre", sort="title"), created_index("genre")],
    )

    try:
        store = DocumentStore(SCHEMA, client=client, config=config)

        store.create_document(table_name, {"id": "b1", "title": "dune", "genre": "scifi", "pages": 412}, "alice")
        store.create_document(table_name, {"id": "b2", "title": "dune messiah", "genre": "scifi"}, "alice")
        store.create_document(table_name, {"id": "b3", "title": "emma", "genre": "classic"}, "bob")

        print("get:", store.get_document_by_id(table_name, "b1"))
        print("prefix 'dune':", store.query_documents_by_prop(table_name, "title", "dune", partition_key=("genre", "scifi")))

        store.archive_document(table_name, "b2", "alice")
        print("active:", store.get_active_documents(table_name))
        print("alice (all):", store.get_user_documents(table_name, "alice"))

        async def recent() -> list[dict]:
            return await AsyncDocumentStore(store).get_recent_documents(
                table_name, partition_key=("genre", "scifi"), include_inactive=True
            )

        print("recent scifi:", asyncio.run(recent()))
    finally:
        delete_table(table_name, client=client)


if __name__ == "__main__":
    main()
