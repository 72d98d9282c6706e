from __future__ import annotations

import pytest

from docstore_py.errors import ValidationError
from docstore_py.runtime import DEFAULT_LIMIT, StoreConfig, create_boto3_config, create_dynamodb_client


def test_store_config_from_env_defaults() -> None:
    cfg = StoreConfig.from_env({})
    assert cfg == StoreConfig()
    assert cfg.default_limit == DEFAULT_LIMIT
    assert cfg.region is None
    assert cfg.endpoint_url is None


def test_store_config_from_env_reads_overrides() -> None:
    cfg = StoreConfig.from_env(
        {
            "AWS_DEFAULT_REGION": "eu-west-1",
            "DYNAMODB_ENDPOINT": " http://localhost:8000 ",
            "DOCSTORE_CONNECT_TIMEOUT": "2.5",
            "DOCSTORE_READ_TIMEOUT": "9",
            "DOCSTORE_MAX_ATTEMPTS": "5",
            "DOCSTORE_DEFAULT_LIMIT": "20",
        }
    )
    assert cfg.region == "eu-west-1"
    assert cfg.endpoint_url == "http://localhost:8000"
    assert cfg.connect_timeout == 2.5
    assert cfg.read_timeout == 9.0
    assert cfg.max_attempts == 5
    assert cfg.default_limit == 20


def test_store_config_prefers_aws_region() -> None:
    cfg = StoreConfig.from_env({"AWS_REGION": "us-west-2", "AWS_DEFAULT_REGION": "eu-west-1"})
    assert cfg.region == "us-west-2"


@pytest.mark.parametrize(
    ("name", "value", "match"),
    [
        ("DOCSTORE_READ_TIMEOUT", "soon", "must be a number"),
        ("DOCSTORE_MAX_ATTEMPTS", "1.5", "must be an integer"),
        ("DOCSTORE_DEFAULT_LIMIT", "lots", "must be an integer"),
    ],
)
def test_store_config_rejects_malformed_values(name: str, value: str, match: str) -> None:
    with pytest.raises(ValidationError, match=match):
        StoreConfig.from_env({name: value})


def test_create_boto3_config() -> None:
    cfg = create_boto3_config(StoreConfig(connect_timeout=2.0, read_timeout=4.0, max_attempts=3))
    assert cfg.connect_timeout == 2.0
    assert cfg.read_timeout == 4.0
    assert cfg.retries["max_attempts"] == 3
    assert cfg.retries["mode"] == "standard"


class FakeSession:
    def __init__(self) -> None:
        self.calls: list[tuple[str, dict[str, object]]] = []

    def client(self, service_name: str, **kwargs: object) -> object:
        self.calls.append((service_name, kwargs))
        return object()


def test_create_dynamodb_client_passes_region_and_endpoint() -> None:
    sess = FakeSession()
    create_dynamodb_client(StoreConfig(region="us-east-1", endpoint_url="http://localhost:8000"), session=sess)

    service, kwargs = sess.calls[0]
    assert service == "dynamodb"
    assert kwargs["region_name"] == "us-east-1"
    assert kwargs["endpoint_url"] == "http://localhost:8000"


def test_create_dynamodb_client_omits_endpoint_by_default() -> None:
    sess = FakeSession()
    create_dynamodb_client(session=sess)

    _, kwargs = sess.calls[0]
    assert "endpoint_url" not in kwargs
