"""Pytest configuration and fixtures."""

from __future__ import annotations

import logging
import os
from collections.abc import Callable, Generator
from typing import Any

import httpx
import pytest

from authflow.core.logging import LogLevel, ProtocolLogger, get_protocol_logger, set_protocol_logger
from authflow.core.oidc import OAuthClient, ProviderConfig

IDP = "https://idp.example.com"


class FakeProvider:
    """Identity provider double served through httpx.MockTransport.

    Responses are registered per (method, path); every request is recorded.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self._routes: dict[tuple[str, str], Callable[[httpx.Request], httpx.Response]] = {}

    def respond(
        self,
        method: str,
        path: str,
        status_code: int = 200,
        json: Any = None,
        text: str | None = None,
    ) -> None:
        """Register a canned response."""
        def handler(request: httpx.Request) -> httpx.Response:
            if text is not None:
                return httpx.Response(status_code, text=text)
            return httpx.Response(status_code, json=json if json is not None else {})

        self._routes[(method, path)] = handler

    def fail(self, method: str, path: str) -> None:
        """Make a route raise a connection error."""
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        self._routes[(method, path)] = handler

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        handler = self._routes.get((request.method, request.url.path))
        if handler is None:
            return httpx.Response(404, json={"error": "not_found"})
        return handler(request)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    @property
    def last_request(self) -> httpx.Request:
        return self.requests[-1]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep AUTHFLOW_* variables from the developer's shell out of tests."""
    for name in list(os.environ):
        if name.startswith("AUTHFLOW_"):
            monkeypatch.delenv(name)


@pytest.fixture
def provider_config() -> ProviderConfig:
    """Provider configuration pointing at the fake provider."""
    return ProviderConfig(
        client_id="my-client",
        client_secret="my-secret",
        redirect_uri="https://app.example.com/callback",
        authorization_endpoint=f"{IDP}/auth",
        token_endpoint=f"{IDP}/token",
        verify_endpoint=f"{IDP}/tokeninfo",
        userinfo_endpoint=f"{IDP}/userinfo",
        revocation_endpoint=f"{IDP}/revoke",
    )


@pytest.fixture
def provider() -> FakeProvider:
    """Fake identity provider."""
    return FakeProvider()


@pytest.fixture
def client(provider_config: ProviderConfig, provider: FakeProvider) -> Generator[OAuthClient, None, None]:
    """OAuth client wired to the fake provider."""
    oauth_client = OAuthClient(
        provider_config,
        protocol_logger=ProtocolLogger(level=LogLevel.ERROR),
        transport=provider.transport,
    )
    yield oauth_client
    oauth_client.close()


@pytest.fixture
def restore_logging() -> Generator[None, None, None]:
    """Undo global logging changes made by configure_logging."""
    previous = get_protocol_logger()
    package_logger = logging.getLogger("authflow")
    handlers, level = list(package_logger.handlers), package_logger.level
    yield
    set_protocol_logger(previous)
    for handler in package_logger.handlers:
        if handler not in handlers:
            handler.close()
    package_logger.handlers[:] = handlers
    package_logger.setLevel(level)

