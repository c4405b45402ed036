"""Request and response values exchanged inside a single operation."""

from dataclasses import dataclass
from typing import Any, Generic, TypeVar, Union

T = TypeVar("T")


@dataclass(frozen=True)
class RequestSpec:
    """One KV API request, relative to the namespace URL."""

    method: str
    path_and_query: str
    body: bytes | None = None
    content_type: str | None = None


@dataclass(frozen=True)
class Success:
    """A 2xx response."""

    status_code: int
    body: bytes


@dataclass(frozen=True)
class NotFound:
    """A 404 on a value read. Not an error."""

    status_code: int = 404


@dataclass(frozen=True)
class TransportFailure:
    """No HTTP status was obtained."""

    message: str


@dataclass(frozen=True)
class ApiFailure:
    """A response outside the 2xx range."""

    status_code: int
    message: str


ResponseOutcome = Union[Success, NotFound, TransportFailure, ApiFailure]


@dataclass(frozen=True)
class OperationResult(Generic[T]):
    """Explicit per-call result of a public operation.

    ``error`` is empty unless the call failed; ``status_code`` is None when
    the transport failed before a response arrived.
    """

    value: T
    ok: bool
    error: str = ""
    status_code: int | None = None

    @classmethod
    def from_outcome(cls, outcome: ResponseOutcome, value: Any) -> "OperationResult[Any]":
        """Build a result carrying the diagnostics of an outcome."""
        if isinstance(outcome, TransportFailure):
            return cls(value=value, ok=False, error=outcome.message)
        if isinstance(outcome, ApiFailure):
            return cls(
                value=value,
                ok=False,
                error=outcome.message,
                status_code=outcome.status_code,
            )
        return cls(value=value, ok=True, status_code=outcome.status_code)
