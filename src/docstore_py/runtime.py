from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, cast

import boto3
from botocore.config import Config

from .errors import ValidationError

DEFAULT_LIMIT = 50


def _env_float(environ: Mapping[str, str], name: str, default: float) -> float:
    raw = (environ.get(name) or "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError as err:
        raise ValidationError(f"{name} must be a number") from err


def _env_int(environ: Mapping[str, str], name: str, default: int) -> int:
    raw = (environ.get(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as err:
        raise ValidationError(f"{name} must be an integer") from err


@dataclass(frozen=True)
class StoreConfig:
    region: str | None = None
    endpoint_url: str | None = None
    connect_timeout: float = 1.0
    read_timeout: float = 3.0
    max_attempts: int = 3
    default_limit: int = DEFAULT_LIMIT

    @classmethod
    def from_env(cls, environ: Mapping[str, str] = os.environ) -> StoreConfig:
        region = (environ.get("AWS_REGION") or environ.get("AWS_DEFAULT_REGION") or "").strip()
        endpoint_url = (environ.get("DYNAMODB_ENDPOINT") or "").strip()
        return cls(
            region=region or None,
            endpoint_url=endpoint_url or None,
            connect_timeout=_env_float(environ, "DOCSTORE_CONNECT_TIMEOUT", 1.0),
            read_timeout=_env_float(environ, "DOCSTORE_READ_TIMEOUT", 3.0),
            max_attempts=_env_int(environ, "DOCSTORE_MAX_ATTEMPTS", 3),
            default_limit=_env_int(environ, "DOCSTORE_DEFAULT_LIMIT", DEFAULT_LIMIT),
        )


def create_boto3_config(config: StoreConfig) -> Config:
    return Config(
        connect_timeout=config.connect_timeout,
        read_timeout=config.read_timeout,
        retries={"max_attempts": config.max_attempts, "mode": "standard"},
    )


def create_dynamodb_client(config: StoreConfig | None = None, *, session: Any | None = None) -> Any:
    config = config or StoreConfig()
    sess = session or boto3.session.Session(region_name=config.region)

    kwargs: dict[str, Any] = {"region_name": config.region, "config": create_boto3_config(config)}
    if config.endpoint_url:
        kwargs["endpoint_url"] = config.endpoint_url
    return cast(Any, sess).client("dynamodb", **kwargs)
