"""Result type shared by all use cases

Use cases report expected failures (insufficient credit, unknown feature, ...)
as values instead of raising, so routes and workers branch on ``is_ok()``.
"""

from typing import Generic, Optional, TypeVar
from pydantic import BaseModel

T = TypeVar("T")


class Error(BaseModel):
    """Machine-readable error code plus human-readable context"""

    code: str
    message: str
    reason: Optional[str] = None


class Result(Generic[T]):
    """Either a value or an Error, never both"""

    __slots__ = ("value", "error")

    def __init__(self, value: Optional[T] = None, error: Optional[Error] = None):
        self.value = value
        self.error = error

    def is_ok(self) -> bool:
        return self.error is None

    def is_err(self) -> bool:
        return self.error is not None

    def __repr__(self) -> str:
        if self.is_ok():
            return f"Result.ok({self.value!r})"
        return f"Result.err({self.error!r})"


class Return:
    """Constructors for Result"""

    @staticmethod
    def ok(value: T) -> Result[T]:
        return Result(value=value)

    @staticmethod
    def err(error: Error) -> Result:
        return Result(error=error)
