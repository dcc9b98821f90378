"""Protocol logging for OAuth2 flows.

Records every HTTP exchange with the identity provider, with configurable
log levels and redaction of credentials.

Log levels:
- ERROR: Only log errors
- INFO: Log one line per exchange (method, URL, status, timing)
- DEBUG: Add request/response headers
- TRACE: Add request/response bodies, unredacted only when explicitly enabled
"""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import IntEnum
from typing import Any

import httpx

# Custom log level for TRACE (below DEBUG)
TRACE = 5
logging.addLevelName(TRACE, "TRACE")

logger = logging.getLogger("authflow.protocol")


class LogLevel(IntEnum):
    """Protocol logging levels."""

    ERROR = logging.ERROR  # 40
    INFO = logging.INFO  # 20
    DEBUG = logging.DEBUG  # 10
    TRACE = TRACE  # 5


SENSITIVE_PATTERNS = [
    # Form and query fields
    (re.compile(r"(client_secret=)[^&\s]+", re.IGNORECASE), r"\1[REDACTED]"),
    (re.compile(r"(?<![a-z_])(code=)[^&\s]+", re.IGNORECASE), r"\1[REDACTED]"),
    (re.compile(r"(access_token=)[^&\s]+", re.IGNORECASE), r"\1[REDACTED]"),
    (re.compile(r"(refresh_token=)[^&\s]+", re.IGNORECASE), r"\1[REDACTED]"),
    (re.compile(r"(id_token=)[^&\s]+", re.IGNORECASE), r"\1[REDACTED]"),
    (re.compile(r"(?<![a-z_])(token=)[^&\s]+", re.IGNORECASE), r"\1[REDACTED]"),
    # Authorization header values, with or without the header name
    (re.compile(r"(Authorization:\s*Bearer\s+)[^\s]+", re.IGNORECASE), r"\1[REDACTED]"),
    (re.compile(r"(Authorization:\s*Basic\s+)[^\s]+", re.IGNORECASE), r"\1[REDACTED]"),
    (re.compile(r"^(Bearer\s+)[^\s]+", re.IGNORECASE), r"\1[REDACTED]"),
    (re.compile(r"^(Basic\s+)[^\s]+", re.IGNORECASE), r"\1[REDACTED]"),
    # Cookies
    (re.compile(r"(Cookie:\s*)[^\r\n]+", re.IGNORECASE), r"\1[REDACTED]"),
    (re.compile(r"(Set-Cookie:\s*)[^\r\n]+", re.IGNORECASE), r"\1[REDACTED]"),
    # JSON fields
    (re.compile(r'"(client_secret)"\s*:\s*"[^"]+"', re.IGNORECASE), r'"\1": "[REDACTED]"'),
    (re.compile(r'"(access_token)"\s*:\s*"[^"]+"', re.IGNORECASE), r'"\1": "[REDACTED]"'),
    (re.compile(r'"(refresh_token)"\s*:\s*"[^"]+"', re.IGNORECASE), r'"\1": "[REDACTED]"'),
    (re.compile(r'"(id_token)"\s*:\s*"[^"]+"', re.IGNORECASE), r'"\1": "[REDACTED]"'),
    (re.compile(r'"(code)"\s*:\s*"[^"]+"', re.IGNORECASE), r'"\1": "[REDACTED]"'),
]


def redact_sensitive(text: str) -> str:
    """Redact tokens, codes and secrets from text.

    Args:
        text: Text that may contain sensitive data.

    Returns:
        Text with sensitive data redacted.
    """
    result = text
    for pattern, replacement in SENSITIVE_PATTERNS:
        result = pattern.sub(replacement, result)
    return result


def redact_header(name: str, value: str) -> str:
    """Redact a header value, matching patterns against the whole header line."""
    prefix = f"{name}: "
    return redact_sensitive(prefix + value)[len(prefix) :]


@dataclass
class HTTPExchange:
    """A single HTTP request/response exchange with the provider."""

    id: str
    timestamp: datetime
    method: str
    url: str
    request_headers: dict[str, str]
    request_body: str | None = None
    response_status: int | None = None
    response_headers: dict[str, str] = field(default_factory=dict)
    response_body: str | None = None
    duration_ms: float | None = None
    error: str | None = None
    pinned_address: str | None = None

    def to_dict(self, include_sensitive: bool = False) -> dict[str, Any]:
        """Convert to dictionary for serialization.

        Args:
            include_sensitive: If True, include raw sensitive data.
                               If False, redact sensitive information.
        """
        def process(value: str | None) -> str | None:
            if value is None:
                return None
            return value if include_sensitive else redact_sensitive(value)

        def process_headers(headers: dict[str, str]) -> dict[str, str]:
            if include_sensitive:
                return dict(headers)
            return {k: redact_header(k, v) for k, v in headers.items()}

        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "method": self.method,
            "url": process(self.url),
            "request_headers": process_headers(self.request_headers),
            "request_body": process(self.request_body),
            "response_status": self.response_status,
            "response_headers": process_headers(self.response_headers),
            "response_body": process(self.response_body),
            "duration_ms": self.duration_ms,
            "error": self.error,
            "pinned_address": self.pinned_address,
        }

    def format_log(self, level: LogLevel, include_sensitive: bool = False) -> str:
        """Format the exchange for logging.

        Args:
            level: Log level determines how much detail to include.
            include_sensitive: If True, include raw sensitive data.
        """
        lines = []
        url = self.url if include_sensitive else redact_sensitive(self.url)

        status = self.response_status or "ERROR"
        lines.append(f"HTTP {self.method} {url} -> {status}")
        if self.pinned_address:
            lines.append(f"  Pinned: {self.pinned_address}")
        if self.duration_ms is not None:
            lines.append(f"  Duration: {self.duration_ms:.1f}ms")
        if self.error:
            lines.append(f"  Error: {self.error}")

        if level <= LogLevel.DEBUG:
            lines.append("  Request Headers:")
            for name, value in self.request_headers.items():
                display_value = value if include_sensitive else redact_header(name, value)
                lines.append(f"    {name}: {display_value}")

            if self.response_headers:
                lines.append("  Response Headers:")
                for name, value in self.response_headers.items():
                    display_value = value if include_sensitive else redact_header(name, value)
                    lines.append(f"    {name}: {display_value}")

        if level <= LogLevel.TRACE:
            if self.request_body:
                body = self.request_body if include_sensitive else redact_sensitive(self.request_body)
                lines.append("  Request Body:")
                lines.append(f"    {body[:2000]}{'...' if len(body) > 2000 else ''}")

            if self.response_body:
                body = self.response_body if include_sensitive else redact_sensitive(self.response_body)
                lines.append("  Response Body:")
                lines.append(f"    {body[:2000]}{'...' if len(body) > 2000 else ''}")

        return "\n".join(lines)


class ProtocolLogger:
    """Configurable protocol logger for OAuth2 flows.

    Manages log level settings and keeps the exchanges of the current
    session so they can be inspected after a flow step.
    """

    def __init__(
        self,
        level: LogLevel = LogLevel.INFO,
        trace_enabled: bool = False,
        history_size: int = 50,
    ) -> None:
        """Initialize the protocol logger.

        Args:
            level: Minimum log level.
            trace_enabled: Whether TRACE level is enabled (for sensitive data).
            history_size: Number of recent exchanges to keep.
        """
        self._level = level
        self._trace_enabled = trace_enabled
        self._history_size = history_size
        self._exchanges: list[HTTPExchange] = []

    @property
    def level(self) -> LogLevel:
        """Get current log level."""
        return self._level

    @level.setter
    def level(self, value: LogLevel) -> None:
        """Set log level."""
        self._level = value

    @property
    def trace_enabled(self) -> bool:
        """Whether TRACE level is enabled."""
        return self._trace_enabled

    @trace_enabled.setter
    def trace_enabled(self, value: bool) -> None:
        """Enable or disable TRACE level."""
        self._trace_enabled = value

    @property
    def effective_level(self) -> LogLevel:
        """Get effective log level (TRACE only if explicitly enabled)."""
        if self._level == LogLevel.TRACE and not self._trace_enabled:
            return LogLevel.DEBUG
        return self._level

    @property
    def exchanges(self) -> list[HTTPExchange]:
        """Recent exchanges, oldest first."""
        return list(self._exchanges)

    def clear(self) -> None:
        """Forget recorded exchanges."""
        self._exchanges.clear()

    def log_exchange(self, exchange: HTTPExchange) -> None:
        """Log an HTTP exchange.

        Args:
            exchange: The HTTP exchange to log.
        """
        self._exchanges.append(exchange)
        if len(self._exchanges) > self._history_size:
            del self._exchanges[: len(self._exchanges) - self._history_size]

        effective = self.effective_level
        include_sensitive = self._trace_enabled and self._level <= LogLevel.TRACE

        if effective <= LogLevel.DEBUG:
            logger.debug(exchange.format_log(effective, include_sensitive))
        elif effective <= LogLevel.INFO:
            logger.info(exchange.format_log(effective, include_sensitive))

        if exchange.error:
            logger.error(f"HTTP error: {exchange.method} {redact_sensitive(exchange.url)}: {exchange.error}")

    def create_transport(self, transport: httpx.BaseTransport | None = None) -> LoggingTransport:
        """Create an httpx transport that logs requests/responses.

        Args:
            transport: Transport to wrap. Defaults to ``httpx.HTTPTransport()``.
        """
        return LoggingTransport(self, transport)


class LoggingTransport(httpx.BaseTransport):
    """HTTPX transport that logs every exchange it forwards."""

    def __init__(
        self,
        protocol_logger: ProtocolLogger,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the logging transport.

        Args:
            protocol_logger: ProtocolLogger to use for logging.
            transport: Transport that performs the actual request.
        """
        self._logger = protocol_logger
        self._transport = transport or httpx.HTTPTransport()
        self._exchange_counter = 0

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        """Forward a request and log the exchange."""
        self._exchange_counter += 1
        exchange_id = f"http_{self._exchange_counter:04d}"
        start_time = time.perf_counter()

        request_body = None
        if request.content:
            try:
                request_body = request.content.decode("utf-8")
            except UnicodeDecodeError:
                request_body = "<binary content>"

        # Captured before the inner transport may rewrite the URL
        exchange = HTTPExchange(
            id=exchange_id,
            timestamp=datetime.now(UTC),
            method=request.method,
            url=str(request.url),
            request_headers=dict(request.headers),
            request_body=request_body,
        )

        try:
            response = self._transport.handle_request(request)
        except Exception as e:
            exchange.duration_ms = (time.perf_counter() - start_time) * 1000
            exchange.error = str(e)
            self._logger.log_exchange(exchange)
            raise

        exchange.duration_ms = (time.perf_counter() - start_time) * 1000
        exchange.response_status = response.status_code
        exchange.response_headers = dict(response.headers)
        if str(request.url) != exchange.url:
            exchange.pinned_address = request.url.host

        try:
            response.read()
            exchange.response_body = response.text
        except (httpx.HTTPError, UnicodeDecodeError):
            exchange.response_body = "<error reading body>"

        self._logger.log_exchange(exchange)
        return response

    def close(self) -> None:
        """Close the underlying transport."""
        self._transport.close()


_global_logger: ProtocolLogger | None = None


def get_protocol_logger() -> ProtocolLogger:
    """Get the global protocol logger instance."""
    global _global_logger
    if _global_logger is None:
        _global_logger = ProtocolLogger()
    return _global_logger


def set_protocol_logger(logger_instance: ProtocolLogger) -> None:
    """Set the global protocol logger instance.

    Args:
        logger_instance: ProtocolLogger to use globally.
    """
    global _global_logger
    _global_logger = logger_instance


def configure_logging(
    level: LogLevel | str = LogLevel.INFO,
    trace_enabled: bool = False,
    log_file: str | None = None,
) -> ProtocolLogger:
    """Configure protocol and client logging.

    Args:
        level: Log level (ERROR, INFO, DEBUG, TRACE) or string name.
        trace_enabled: Whether to enable TRACE level (includes sensitive data).
        log_file: Optional file path to write logs to.

    Returns:
        Configured ProtocolLogger, also installed as the global one.
    """
    if isinstance(level, str):
        level_map = {
            "ERROR": LogLevel.ERROR,
            "INFO": LogLevel.INFO,
            "DEBUG": LogLevel.DEBUG,
            "TRACE": LogLevel.TRACE,
        }
        level = level_map.get(level.upper(), LogLevel.INFO)

    # Both authflow.protocol and authflow.client propagate here
    package_logger = logging.getLogger("authflow")
    package_logger.setLevel(level)
    package_logger.handlers.clear()

    formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    package_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        package_logger.addHandler(file_handler)

    protocol_logger = ProtocolLogger(level=level, trace_enabled=trace_enabled)
    set_protocol_logger(protocol_logger)

    if trace_enabled:
        logger.warning("TRACE logging enabled - tokens and secrets will be logged!")

    return protocol_logger
