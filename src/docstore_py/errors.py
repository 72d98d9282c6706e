from __future__ import annotations


class DocstoreError(Exception):
    pass


class NotFoundError(DocstoreError):
    pass


class ValidationError(DocstoreError):
    pass


class UnsupportedTypeError(DocstoreError):
    def __init__(self, type_tag: object) -> None:
        super().__init__(f"unsupported attribute type: {type_tag!r}")
        self.type_tag = type_tag


class ConditionFailedError(DocstoreError):
    pass


class BackendError(DocstoreError):
    def __init__(self, *, code: str, message: str) -> None:
        super().__init__(f"{code}: {message}")
        self.code = code
        self.message = message
