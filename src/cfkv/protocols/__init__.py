"""Protocol interfaces for the client's external collaborators."""

from cfkv.protocols.sink import ErrorSink
from cfkv.protocols.transport import Transport, TransportResponse

__all__ = [
    "ErrorSink",
    "Transport",
    "TransportResponse",
]
