"""cfkv exceptions."""


class CFKVError(Exception):
    """Base exception for cfkv."""

    pass


class ConfigError(CFKVError):
    """Configuration error."""

    pass


class TransportError(CFKVError):
    """The HTTP exchange failed before a status code was obtained.

    Raised by transports for DNS, connect, TLS and timeout failures. The
    client catches it and records the message as a diagnostic.
    """

    pass
