"""Diagnostic sinks for user-facing error notices."""

import html
import sys
from typing import TextIO

from cfkv.observability import get_logger

logger = get_logger(__name__)

NOTICE_TEMPLATE = (
    '<div class="notice notice-error is-dismissible" style="padding:1em;margin:1em 0;">'
    "<p><strong>Cloudflare KV Error:</strong> {message}</p></div>"
)


def escape_for_display(message: str) -> str:
    """Escape a message for safe embedding in HTML."""
    return html.escape(message, quote=True)


class LoggingSink:
    """Sends error notices to the cfkv logger at ERROR level."""

    def emit(self, message: str) -> None:
        logger.error(f"Cloudflare KV Error: {message}")


class NoticeSink:
    """Writes error notices as dismissible HTML notices to a stream."""

    def __init__(self, stream: TextIO | None = None) -> None:
        """Initialize notice sink.

        Args:
            stream: Output stream (defaults to stdout at emit time)
        """
        self.stream = stream

    def emit(self, message: str) -> None:
        stream = self.stream or sys.stdout
        stream.write(NOTICE_TEMPLATE.format(message=escape_for_display(message)))
        stream.write("\n")
