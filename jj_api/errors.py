from __future__ import annotations

from typing import Any


class JournalError(Exception):
    """Base class for errors raised by the journal stores and services."""


class ValidationError(JournalError):
    def __init__(self, fields: list[dict[str, Any]]):
        super().__init__("Invalid input")
        self.fields = fields

    @classmethod
    def from_pydantic(cls, exc: Any) -> "ValidationError":
        return cls(
            [
                {"loc": list(error["loc"]), "msg": error["msg"], "type": error["type"]}
                for error in exc.errors()
            ]
        )


class NotFoundError(JournalError):
    pass


class InvalidInputError(JournalError):
    def __init__(self, message: str, filename: str | None = None):
        super().__init__(message)
        self.filename = filename


class StorageFailure(JournalError):
    pass
