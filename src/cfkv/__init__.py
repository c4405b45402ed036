"""cfkv - A minimal client for the Cloudflare Workers KV API."""

from cfkv.client import KVClient
from cfkv.config import KVConfig
from cfkv.exceptions import CFKVError, ConfigError, TransportError
from cfkv.observability import (
    LogLevel,
    OperationContext,
    StructuredLogger,
    Timer,
    configure_logging,
    emit_counter,
    emit_metric,
    emit_timer,
    get_logger,
    register_metric_callback,
    unregister_metric_callback,
)
from cfkv.outcomes import OperationResult
from cfkv.sinks import LoggingSink, NoticeSink
from cfkv.transport import HttpxTransport

__version__ = "0.1.0"
__all__ = [
    # Core
    "KVClient",
    "KVConfig",
    "OperationResult",
    # Collaborators
    "HttpxTransport",
    "LoggingSink",
    "NoticeSink",
    # Errors
    "CFKVError",
    "ConfigError",
    "TransportError",
    # Observability
    "LogLevel",
    "OperationContext",
    "StructuredLogger",
    "Timer",
    "configure_logging",
    "emit_counter",
    "emit_metric",
    "emit_timer",
    "get_logger",
    "register_metric_callback",
    "unregister_metric_callback",
]
