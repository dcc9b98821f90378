"""Tests for protocol logging module."""

import logging
from datetime import UTC, datetime

import httpx
import pytest

from authflow.core.logging import (
    HTTPExchange,
    LogLevel,
    ProtocolLogger,
    configure_logging,
    get_protocol_logger,
    redact_header,
    redact_sensitive,
    set_protocol_logger,
)


def _exchange(**overrides):
    values = {
        "id": "http_0001",
        "timestamp": datetime(2024, 1, 1, 12, 0, 0, tzinfo=UTC),
        "method": "POST",
        "url": "https://accounts.google.com/o/oauth2/token",
        "request_headers": {"Content-Type": "application/x-www-form-urlencoded"},
        "response_status": 200,
        "duration_ms": 50.0,
    }
    values.update(overrides)
    return HTTPExchange(**values)


class TestRedactSensitive:
    """Tests for sensitive data redaction."""

    def test_redact_token_request(self):
        """Test redacting a token request body."""
        text = "client_id=my-app&client_secret=super-secret&code=4%2Fabc&grant_type=authorization_code"
        result = redact_sensitive(text)
        assert "super-secret" not in result
        assert "4%2Fabc" not in result
        assert "client_id=my-app" in result
        assert "grant_type=authorization_code" in result

    def test_redact_refresh_and_revoke(self):
        """Test redacting refresh tokens and revocation bodies."""
        assert redact_sensitive("refresh_token=1%2F%2Fabc") == "refresh_token=[REDACTED]"
        assert redact_sensitive("token=ya29.abc") == "token=[REDACTED]"
        assert redact_sensitive("?access_token=ya29.abc") == "?access_token=[REDACTED]"

    def test_response_type_code_is_kept(self):
        """Test that the literal response_type=code is not mistaken for a code."""
        text = "response_type=code&client_id=my-app"
        assert redact_sensitive(text) == text

    def test_redact_authorization_header(self):
        """Test redacting Authorization header values."""
        assert "my-token" not in redact_sensitive("Authorization: Bearer my-token")
        assert redact_sensitive("Bearer my-token") == "Bearer [REDACTED]"

    def test_redact_json_fields(self):
        """Test redacting sensitive JSON fields."""
        text = '{"access_token": "ya29.abc", "id_token": "eyJ", "token_type": "Bearer", "code": "4/abc"}'
        result = redact_sensitive(text)
        assert "ya29.abc" not in result
        assert "eyJ" not in result
        assert "4/abc" not in result
        assert '"token_type": "Bearer"' in result

    def test_redact_cookies(self):
        """Test redacting Cookie and Set-Cookie header lines."""
        assert redact_sensitive("Cookie: session=abc; lang=en") == "Cookie: [REDACTED]"
        result = redact_sensitive("Set-Cookie: sid=xyz; HttpOnly\r\nContent-Type: text/html")
        assert "sid=xyz" not in result
        assert "Content-Type: text/html" in result

    def test_redact_header(self):
        """Test that header values are matched as whole header lines."""
        assert redact_header("set-cookie", "sid=xyz; Secure") == "[REDACTED]"
        assert redact_header("Authorization", "Bearer ya29.abc") == "Bearer [REDACTED]"
        assert redact_header("Content-Type", "application/json") == "application/json"

    def test_no_redact_normal_text(self):
        """Test that normal text is not modified."""
        text = "This is a normal log message without sensitive data."
        assert redact_sensitive(text) == text


class TestHTTPExchange:
    """Tests for HTTPExchange dataclass."""

    def test_to_dict_without_sensitive(self):
        """Test serialization with sensitive data redacted."""
        exchange = _exchange(
            url="https://www.googleapis.com/oauth2/v2/tokeninfo?access_token=ya29.abc",
            request_headers={"Authorization": "Bearer ya29.abc"},
            request_body="code=4%2Fabc&grant_type=authorization_code",
            response_body='{"access_token": "ya29.abc", "token_type": "Bearer"}',
            pinned_address="216.58.205.74",
        )

        result = exchange.to_dict(include_sensitive=False)

        assert result["id"] == "http_0001"
        assert result["timestamp"] == "2024-01-01T12:00:00+00:00"
        assert result["pinned_address"] == "216.58.205.74"
        for value in (
            result["url"],
            result["request_headers"]["Authorization"],
            result["request_body"],
            result["response_body"],
        ):
            assert "ya29.abc" not in value and "4%2Fabc" not in value
            assert "[REDACTED]" in value

    def test_to_dict_with_sensitive(self):
        """Test serialization with sensitive data included."""
        exchange = _exchange(request_body="code=4%2Fabc", request_headers={"Authorization": "Bearer ya29.abc"})
        result = exchange.to_dict(include_sensitive=True)
        assert result["request_body"] == "code=4%2Fabc"
        assert result["request_headers"]["Authorization"] == "Bearer ya29.abc"

    def test_cookie_headers_are_redacted(self):
        """Test that cookies in either direction are redacted."""
        exchange = _exchange(
            request_headers={"cookie": "session=abc"},
            response_headers={"set-cookie": "sid=xyz; HttpOnly"},
        )

        result = exchange.to_dict(include_sensitive=False)
        assert result["request_headers"]["cookie"] == "[REDACTED]"
        assert result["response_headers"]["set-cookie"] == "[REDACTED]"

        log = exchange.format_log(LogLevel.DEBUG)
        assert "session=abc" not in log
        assert "sid=xyz" not in log

    def test_format_log_info_level(self):
        """Test log formatting at INFO level."""
        log = _exchange(pinned_address="216.58.198.13").format_log(LogLevel.INFO)
        assert "HTTP POST https://accounts.google.com/o/oauth2/token -> 200" in log
        assert "Pinned: 216.58.198.13" in log
        assert "50.0ms" in log
        assert "Request Headers" not in log

    def test_format_log_debug_level(self):
        """Test log formatting at DEBUG level."""
        exchange = _exchange(
            request_headers={"Authorization": "Bearer ya29.abc"},
            response_headers={"Content-Type": "application/json"},
            request_body="code=4%2Fabc",
        )
        log = exchange.format_log(LogLevel.DEBUG)
        assert "Request Headers" in log
        assert "Response Headers" in log
        assert "ya29.abc" not in log
        assert "Request Body" not in log

    def test_format_log_trace_level(self):
        """Test that bodies appear at TRACE level and stay redacted by default."""
        exchange = _exchange(request_body="code=4%2Fabc", response_body='{"id_token": "eyJ"}')
        log = exchange.format_log(LogLevel.TRACE)
        assert "Request Body" in log
        assert "Response Body" in log
        assert "4%2Fabc" not in log
        assert "4%2Fabc" in exchange.format_log(LogLevel.TRACE, include_sensitive=True)

    def test_format_log_error(self):
        """Test formatting a failed exchange."""
        log = _exchange(response_status=None, error="connection refused").format_log(LogLevel.INFO)
        assert "-> ERROR" in log
        assert "Error: connection refused" in log


class TestProtocolLogger:
    """Tests for ProtocolLogger class."""

    def test_default_log_level(self):
        """Test default log level is INFO."""
        assert ProtocolLogger().level == LogLevel.INFO

    def test_set_log_level(self):
        """Test setting log level."""
        protocol_logger = ProtocolLogger(level=LogLevel.DEBUG)
        assert protocol_logger.level == LogLevel.DEBUG

        protocol_logger.level = LogLevel.ERROR
        assert protocol_logger.level == LogLevel.ERROR

    def test_trace_requires_explicit_enable(self):
        """Test that TRACE level requires explicit enable."""
        protocol_logger = ProtocolLogger(level=LogLevel.TRACE, trace_enabled=False)
        assert protocol_logger.effective_level == LogLevel.DEBUG

        protocol_logger.trace_enabled = True
        assert protocol_logger.effective_level == LogLevel.TRACE

    def test_history_is_bounded(self):
        """Test that only the most recent exchanges are kept."""
        protocol_logger = ProtocolLogger(level=LogLevel.ERROR, history_size=2)
        for n in range(3):
            protocol_logger.log_exchange(_exchange(id=f"http_{n}"))

        assert [e.id for e in protocol_logger.exchanges] == ["http_1", "http_2"]
        protocol_logger.clear()
        assert protocol_logger.exchanges == []

    def test_log_exchange_at_info(self, caplog):
        """Test that an exchange is emitted on the protocol logger."""
        caplog.set_level(logging.INFO, logger="authflow.protocol")
        ProtocolLogger(level=LogLevel.INFO).log_exchange(_exchange())
        assert "HTTP POST https://accounts.google.com/o/oauth2/token -> 200" in caplog.text

    def test_log_exchange_error(self, caplog):
        """Test that failed exchanges are logged as errors at any level."""
        caplog.set_level(logging.INFO, logger="authflow.protocol")
        ProtocolLogger(level=LogLevel.ERROR).log_exchange(_exchange(response_status=None, error="timed out"))
        errors = [r for r in caplog.records if r.levelno == logging.ERROR]
        assert len(errors) == 1
        assert "timed out" in errors[0].getMessage()

    def test_create_transport(self):
        """Test that the logging transport records exchanges."""
        protocol_logger = ProtocolLogger(level=LogLevel.ERROR)
        inner = httpx.MockTransport(lambda request: httpx.Response(200, text="ok"))

        with httpx.Client(transport=protocol_logger.create_transport(inner)) as client:
            client.post("https://idp.example.com/revoke", content="token=ya29.abc")

        (exchange,) = protocol_logger.exchanges
        assert exchange.id == "http_0001"
        assert exchange.request_body == "token=ya29.abc"
        assert exchange.response_body == "ok"
        assert exchange.duration_ms is not None

    def test_transport_error_is_recorded_and_raised(self):
        """Test that a transport failure is logged and propagated."""
        protocol_logger = ProtocolLogger(level=LogLevel.ERROR)

        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        with httpx.Client(transport=protocol_logger.create_transport(httpx.MockTransport(refuse))) as client:
            with pytest.raises(httpx.ConnectError):
                client.get("https://idp.example.com/userinfo")

        assert protocol_logger.exchanges[0].error == "connection refused"


@pytest.mark.usefixtures("restore_logging")
class TestConfigureLogging:
    """Tests for configure_logging function."""

    def test_configure_with_defaults(self):
        """Test configuring with default settings."""
        protocol_logger = configure_logging()
        assert protocol_logger.level == LogLevel.INFO
        assert not protocol_logger.trace_enabled
        assert get_protocol_logger() is protocol_logger

    def test_configure_with_string_level(self):
        """Test configuring with string log level."""
        assert configure_logging(level="debug").level == LogLevel.DEBUG
        assert configure_logging(level="bogus").level == LogLevel.INFO

    def test_configure_log_file(self, tmp_path):
        """Test that a log file handler is added."""
        log_file = tmp_path / "authflow.log"
        configure_logging(level="INFO", log_file=str(log_file))

        logging.getLogger("authflow.client").info("exchange_code() succeeded")
        for handler in logging.getLogger("authflow").handlers:
            handler.flush()

        assert "exchange_code() succeeded" in log_file.read_text()

    def test_configure_trace_warning(self):
        """Test that enabling TRACE keeps the flag."""
        assert configure_logging(level=LogLevel.TRACE, trace_enabled=True).trace_enabled


@pytest.mark.usefixtures("restore_logging")
class TestGlobalLogger:
    """Tests for global logger management."""

    def test_get_protocol_logger(self):
        """Test getting the global protocol logger."""
        assert get_protocol_logger() is get_protocol_logger()

    def test_set_protocol_logger(self):
        """Test setting the global protocol logger."""
        custom_logger = ProtocolLogger(level=LogLevel.DEBUG)
        set_protocol_logger(custom_logger)
        assert get_protocol_logger() is custom_logger
