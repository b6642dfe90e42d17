"""Errors as values.

Every fallible operation in the index engine returns ``Ok(value)`` or
``Err(error)`` instead of raising. Callers branch on ``result.is_ok``:

    result = store.read("project")
    if not result.is_ok:
        return result
    index = result.value
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar, Generic, TypeVar, Union

T = TypeVar("T")


class ErrorCode(str, Enum):
    NOT_FOUND = "NOT_FOUND"
    CATEGORY_NOT_FOUND = "CATEGORY_NOT_FOUND"
    MEMORY_NOT_FOUND = "MEMORY_NOT_FOUND"
    ALREADY_EXISTS = "ALREADY_EXISTS"
    IO_READ_ERROR = "IO_READ_ERROR"
    IO_WRITE_ERROR = "IO_WRITE_ERROR"
    SERIALIZATION_ERROR = "SERIALIZATION_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_PATH = "INVALID_PATH"
    ROOT_CATEGORY_REJECTED = "ROOT_CATEGORY_REJECTED"
    DUPLICATE_NAME = "DUPLICATE_NAME"
    RESOLUTION_ERROR = "RESOLUTION_ERROR"
    GLOBAL_REGISTRY_MISSING = "GLOBAL_REGISTRY_MISSING"


@dataclass(frozen=True)
class CortexError:
    """A failure reported as a value."""

    code: ErrorCode
    message: str
    path: str | None = None
    cause: Any = None

    def __str__(self) -> str:
        text = f"{self.code.value}: {self.message}"
        if self.cause is not None:
            text += f" ({self.cause})"
        return text


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T
    is_ok: ClassVar[bool] = True


@dataclass(frozen=True)
class Err:
    error: CortexError
    is_ok: ClassVar[bool] = False

    @property
    def code(self) -> ErrorCode:
        return self.error.code


Result = Union[Ok[T], Err]


def err(code: ErrorCode, message: str, *, path: str | None = None, cause: Any = None) -> Err:
    """Shorthand for ``Err(CortexError(...))``."""
    return Err(CortexError(code=code, message=message, path=path, cause=cause))
