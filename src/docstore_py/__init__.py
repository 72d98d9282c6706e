from __future__ import annotations

import json
import re
from importlib.resources import files
from typing import TYPE_CHECKING, Any

from .errors import (
    BackendError,
    ConditionFailedError,
    DocstoreError,
    NotFoundError,
    UnsupportedTypeError,
    ValidationError,
)
from .expressions import CompiledExpression, Predicate, Visibility
from .model import AttributeType, DocumentSchema

if TYPE_CHECKING:
    from .aio import AsyncDocumentStore
    from .runtime import StoreConfig, create_boto3_config, create_dynamodb_client
    from .schema import IndexSpec, build_create_table_request, created_index, delete_table, ensure_table
    from .store import Document, DocumentStore


def _read_repo_version() -> str:
    try:
        data = json.loads(files(__package__).joinpath("version.json").read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return "0.0.0"

    version = data.get("version")
    return version if isinstance(version, str) and version else "0.0.0"


def _normalize_repo_version(repo_version: str) -> str:
    match = re.match(r"^(\d+\.\d+\.\d+)-rc\.?([0-9]+)$", repo_version)
    if match:
        return f"{match.group(1)}rc{match.group(2)}"
    return repo_version


__repo_version__ = _read_repo_version()
__version__ = _normalize_repo_version(__repo_version__)


def __getattr__(name: str) -> Any:
    if name in {"Document", "DocumentStore"}:
        from . import store

        return getattr(store, name)
    if name == "AsyncDocumentStore":
        from .aio import AsyncDocumentStore

        return AsyncDocumentStore
    if name in {"StoreConfig", "create_boto3_config", "create_dynamodb_client"}:
        from . import runtime

        return getattr(runtime, name)
    if name in {"IndexSpec", "build_create_table_request", "created_index", "delete_table", "ensure_table"}:
        from . import schema

        return getattr(schema, name)
    raise AttributeError(name)


__all__ = [
    "AsyncDocumentStore",
    "AttributeType",
    "BackendError",
    "build_create_table_request",
    "CompiledExpression",
    "ConditionFailedError",
    "create_boto3_config",
    "create_dynamodb_client",
    "created_index",
    "delete_table",
    "DocstoreError",
    "Document",
    "DocumentSchema",
    "DocumentStore",
    "ensure_table",
    "IndexSpec",
    "NotFoundError",
    "Predicate",
    "StoreConfig",
    "UnsupportedTypeError",
    "ValidationError",
    "Visibility",
    "__repo_version__",
    "__version__",
]
