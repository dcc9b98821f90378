"""HTTP transport for provider requests.

Provides a transport that connects to a configured IP address for pinned
hosts (so requests do not depend on DNS) while keeping the original host
name for the ``Host`` header and TLS SNI/certificate checks, and a factory
for the ``httpx.Client`` used by the OAuth client.
"""

from __future__ import annotations

import ssl
from collections.abc import Mapping
from typing import TYPE_CHECKING

import httpx

from authflow.core.errors import ConfigurationError
from authflow.core.logging import LoggingTransport, ProtocolLogger, get_protocol_logger

if TYPE_CHECKING:
    from authflow.core.oidc.provider import ProviderConfig


class PinnedHostTransport(httpx.BaseTransport):
    """Transport that resolves pinned hosts to fixed addresses."""

    def __init__(
        self,
        host_pins: Mapping[str, str],
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the pinned transport.

        Args:
            host_pins: Mapping of host name to IP address.
            transport: Transport that performs the actual request.
        """
        self._pins = {host.lower(): address for host, address in host_pins.items()}
        self._transport = transport or httpx.HTTPTransport()

    @property
    def host_pins(self) -> dict[str, str]:
        """Configured pins."""
        return dict(self._pins)

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        """Rewrite the request to the pinned address and forward it."""
        host = request.url.host
        address = self._pins.get(host.lower())
        if address:
            # Host header was fixed when the request was built
            request.url = request.url.copy_with(host=address)
            request.extensions = {**request.extensions, "sni_hostname": host}
        return self._transport.handle_request(request)

    def close(self) -> None:
        """Close the underlying transport."""
        self._transport.close()


def create_ssl_context(cert_path: str | None) -> ssl.SSLContext | bool:
    """Build the TLS verification setting for a CA bundle path.

    Returns:
        An SSL context trusting ``cert_path``, or True for the default store.

    Raises:
        ConfigurationError: If the CA bundle cannot be read or holds no certificates.
    """
    if not cert_path:
        return True
    try:
        return ssl.create_default_context(cafile=cert_path)
    except (OSError, ssl.SSLError) as e:
        raise ConfigurationError(f"Unusable CA bundle {cert_path}: {e}") from e


def build_http_client(
    config: ProviderConfig,
    protocol_logger: ProtocolLogger | None = None,
    transport: httpx.BaseTransport | None = None,
    verify: ssl.SSLContext | bool | None = None,
) -> httpx.Client:
    """Create the HTTP client used for provider requests.

    Requests pass through protocol logging, then host pinning, then the
    network transport (or ``transport`` when given, e.g. in tests).

    Args:
        config: Provider configuration (host pins, CA bundle, timeout).
        protocol_logger: Logger for HTTP exchanges. Defaults to the global one.
        transport: Innermost transport override.
        verify: TLS verification setting; built from ``config.cert_path`` if omitted.

    Raises:
        ConfigurationError: If the configured CA bundle is unusable.
    """
    if transport is None:
        if verify is None:
            verify = create_ssl_context(str(config.cert_path) if config.cert_path else None)
        transport = httpx.HTTPTransport(verify=verify)

    pinned = PinnedHostTransport(config.host_pins, transport)
    logging_transport = LoggingTransport(protocol_logger or get_protocol_logger(), pinned)

    return httpx.Client(
        transport=logging_transport,
        timeout=config.timeout,
        follow_redirects=False,
        headers={"Accept": "application/json"},
    )
