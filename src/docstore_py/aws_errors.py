from __future__ import annotations

from botocore.exceptions import ClientError

from .errors import BackendError, ConditionFailedError


def map_client_error(err: ClientError) -> Exception:
    code = str(err.response.get("Error", {}).get("Code", ""))
    message = str(err.response.get("Error", {}).get("Message", ""))

    # A missing table or a request the store rejects is a backend failure, not a
    # missing document.
    if code == "ConditionalCheckFailedException":
        return ConditionFailedError(message)

    return BackendError(code=code or "UnknownError", message=message or str(err))


def error_code(err: ClientError) -> str:
    return str(err.response.get("Error", {}).get("Code", ""))
