"""Core flow implementation and ambient services."""

from authflow.core.logging import (
    HTTPExchange,
    LoggingTransport,
    LogLevel,
    ProtocolLogger,
    configure_logging,
    get_protocol_logger,
    redact_header,
    redact_sensitive,
    set_protocol_logger,
)

__all__ = [
    "HTTPExchange",
    "LoggingTransport",
    "LogLevel",
    "ProtocolLogger",
    "configure_logging",
    "get_protocol_logger",
    "redact_header",
    "redact_sensitive",
    "set_protocol_logger",
]
