"""ErrorSink protocol for user-facing error notices."""

from typing import Protocol, runtime_checkable


@runtime_checkable
class ErrorSink(Protocol):
    """Protocol for diagnostic sinks (log, console notice, UI)."""

    def emit(self, message: str) -> None:
        """Display or record an error notice."""
        ...
