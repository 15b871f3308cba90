"""
pyrag exceptions.
"""

from typing import Awaitable, TypeVar

T = TypeVar("T")


class RAGError(Exception):
    """Base exception for pyrag errors."""

    def __init__(self, message: str, code: str | None = None):
        self.message = message
        self.code = code
        super().__init__(self.message)


class NotFoundError(RAGError):
    """Raised when a requested ID is absent."""

    def __init__(self, message: str):
        super().__init__(message, code="not_found")


class AlreadyExistsError(RAGError):
    """Raised when adding a record that already exists without allow_update."""

    def __init__(self, message: str):
        super().__init__(message, code="already_exists")


class AmbiguousError(RAGError):
    """Raised when a lookup without an ID matches more than one record."""

    def __init__(self, message: str):
        super().__init__(message, code="ambiguous")


class InvalidArgumentError(RAGError, ValueError):
    """Raised for bad input: empty IDs, unknown modes, dimension mismatches."""

    def __init__(self, message: str):
        super().__init__(message, code="invalid_argument")


class UnsupportedError(RAGError, NotImplementedError):
    """Raised when an operation is not supported by a component."""

    def __init__(self, message: str):
        super().__init__(message, code="unsupported")


class DecodeError(RAGError):
    """Raised when persisted or generated JSON cannot be parsed."""

    def __init__(self, message: str):
        super().__init__(message, code="decode")


class UpstreamError(RAGError):
    """Raised when an LLM, embedding model or vector store call fails."""

    def __init__(self, source: str, cause: BaseException):
        self.source = source
        self.cause = cause
        super().__init__(f"{source} call failed: {cause}", code="upstream")


async def wrap_upstream(awaitable: Awaitable[T], source: str) -> T:
    """Await an upstream call, re-raising foreign failures as UpstreamError.

    pyrag errors pass through unchanged, and so does asyncio.CancelledError
    since it is not an Exception subclass.
    """
    try:
        return await awaitable
    except RAGError:
        raise
    except Exception as e:
        raise UpstreamError(source, e) from e


__all__ = [
    "RAGError",
    "NotFoundError",
    "AlreadyExistsError",
    "AmbiguousError",
    "InvalidArgumentError",
    "UnsupportedError",
    "DecodeError",
    "UpstreamError",
    "wrap_upstream",
]
