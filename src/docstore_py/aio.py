from __future__ import annotations

import asyncio
import functools
from collections.abc import Callable, Coroutine
from typing import Any

from .store import DocumentStore

OPERATIONS = frozenset(
    {
        "create_document",
        "get_document_by_id",
        "get_documents_by_prop",
        "get_documents_by_props",
        "query_documents_by_prop",
        "get_documents_where_in_prop",
        "get_all_documents",
        "get_active_documents",
        "get_recent_documents",
        "get_my_documents",
        "get_user_documents",
        "update_document",
        "archive_document",
        "dearchive_document",
        "delete_document",
    }
)


class AsyncDocumentStore:
    """Awaitable facade over :class:`DocumentStore`.

    Each operation runs the blocking boto3 call in a worker thread. Cancelling
    the awaiting task does not interrupt a request already sent; every write is
    a single-item request, so it either lands whole or not at all.
    """

    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    @property
    def store(self) -> DocumentStore:
        return self._store

    def __getattr__(self, name: str) -> Callable[..., Coroutine[Any, Any, Any]]:
        if name not in OPERATIONS:
            raise AttributeError(name)

        op = getattr(self._store, name)

        @functools.wraps(op)
        async def wrapped(*args: Any, **kwargs: Any) -> Any:
            return await asyncio.to_thread(op, *args, **kwargs)

        return wrapped
