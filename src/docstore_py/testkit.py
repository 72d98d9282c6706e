from __future__ import annotations

from collections.abc import Callable

from botocore.exceptions import ClientError

from .mocks import ANY, FakeDynamoDBClient


def client_error(code: str, message: str = "", *, operation: str = "DynamoDB") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": message}}, operation)


def fixed_clock(millis: int) -> Callable[[], int]:
    if millis < 0:
        raise ValueError("millis must be >= 0")

    def clock() -> int:
        return millis

    return clock


def no_sleep(_: float) -> None:
    return None


__all__ = [
    "ANY",
    "FakeDynamoDBClient",
    "client_error",
    "fixed_clock",
    "no_sleep",
]
