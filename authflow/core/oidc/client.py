"""OAuth2 / OpenID-Connect authorization code flow client.

Drives the exchange with an identity provider: builds the authorization
URL, exchanges the authorization code for tokens, verifies the access
token, fetches the user profile, cross-validates the two identity
assertions, refreshes and revokes tokens.

The client does not enforce the order of the steps. Each operation is
independently callable, which lets a web application call them from
different requests after replaying the stored ``AuthResult`` into a fresh
client. Operations report failure through their return value and
``last_error``; they do not raise.
"""

from __future__ import annotations

import json
import logging
import ssl
import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any
from urllib.parse import urlsplit

import httpx

from authflow.core.logging import ProtocolLogger, get_protocol_logger, redact_sensitive
from authflow.core.oidc.fields import render_fields
from authflow.core.oidc.provider import FlowState, ProviderConfig, template_values
from authflow.core.oidc.querystring import parse_query
from authflow.core.oidc.validation import (
    CrossValidationResult,
    IdentityClaims,
    cross_validate,
)
from authflow.core.transport import build_http_client, create_ssl_context

logger = logging.getLogger("authflow.client")


def _to_int(value: Any) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


@dataclass
class AuthResult:
    """Tokens returned by the token endpoint.

    This is the durable session artifact: store ``to_dict()`` per user and
    restore it with ``from_dict()`` on the next request.
    """

    access_token: str | None = None
    expires_in: int | None = None
    id_token: str | None = None
    refresh_token: str | None = None
    token_type: str | None = None
    scope: str | None = None

    # Epoch seconds when the response was received
    obtained_at: float | None = None

    raw_response: dict[str, Any] = field(default_factory=dict)

    @property
    def is_expired(self) -> bool:
        """Check whether the access token lifetime has elapsed."""
        if self.expires_in is None or self.obtained_at is None:
            return False
        return time.time() >= self.obtained_at + self.expires_in

    @classmethod
    def from_response(cls, data: Mapping[str, Any], obtained_at: float | None = None) -> AuthResult:
        """Build from a token endpoint response body."""
        return cls(
            access_token=data.get("access_token"),
            expires_in=_to_int(data.get("expires_in")),
            id_token=data.get("id_token"),
            refresh_token=data.get("refresh_token"),
            token_type=data.get("token_type"),
            scope=data.get("scope"),
            obtained_at=obtained_at,
            raw_response=dict(data),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for session storage."""
        return {
            "access_token": self.access_token,
            "expires_in": self.expires_in,
            "id_token": self.id_token,
            "refresh_token": self.refresh_token,
            "token_type": self.token_type,
            "scope": self.scope,
            "obtained_at": self.obtained_at,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> AuthResult:
        """Reconstruct from dictionary."""
        return cls(
            access_token=data.get("access_token"),
            expires_in=_to_int(data.get("expires_in")),
            id_token=data.get("id_token"),
            refresh_token=data.get("refresh_token"),
            token_type=data.get("token_type"),
            scope=data.get("scope"),
            obtained_at=data.get("obtained_at"),
        )


@dataclass
class VerifyResult:
    """Token verification (introspection) response."""

    issued_to: str | list[str] | None = None
    audience: str | list[str] | None = None
    user_id: str | None = None
    scope: str | None = None
    expires_in: int | None = None
    email: str | None = None
    verified_email: bool | None = None
    access_type: str | None = None

    raw_response: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_response(cls, data: Mapping[str, Any]) -> VerifyResult:
        """Build from a verification response (``sub``/``aud`` accepted)."""
        claims = IdentityClaims.from_mapping(data)
        audience = data.get("audience")
        if audience is None:
            audience = data.get("aud")
        return cls(
            issued_to=claims.issued_to,
            audience=audience,
            user_id=claims.user_id,
            scope=data.get("scope"),
            expires_in=_to_int(data.get("expires_in")),
            email=claims.email,
            verified_email=claims.email_verified,
            access_type=data.get("access_type"),
            raw_response=dict(data),
        )

    def claims(self) -> IdentityClaims:
        """Identity claims asserted by the verification."""
        return IdentityClaims(
            user_id=self.user_id,
            email=self.email,
            issued_to=self.issued_to,
            email_verified=self.verified_email,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "issued_to": self.issued_to,
            "audience": self.audience,
            "user_id": self.user_id,
            "scope": self.scope,
            "expires_in": self.expires_in,
            "email": self.email,
            "verified_email": self.verified_email,
            "access_type": self.access_type,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> VerifyResult:
        """Reconstruct from dictionary."""
        return cls.from_response(data)


@dataclass
class UserProfile:
    """User-info endpoint response."""

    id: str | None = None
    email: str | None = None
    email_verified: bool | None = None
    name: str | None = None
    given_name: str | None = None
    family_name: str | None = None
    picture: str | None = None
    locale: str | None = None

    raw_response: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_response(cls, data: Mapping[str, Any]) -> UserProfile:
        """Build from a user-info response (OpenID ``sub`` accepted as ``id``)."""
        user_id = data.get("id")
        if user_id is None:
            user_id = data.get("sub")
        email_verified = data.get("email_verified")
        if email_verified is None:
            email_verified = data.get("verified_email")
        return cls(
            id=str(user_id) if user_id is not None else None,
            email=data.get("email"),
            email_verified=email_verified,
            name=data.get("name"),
            given_name=data.get("given_name"),
            family_name=data.get("family_name"),
            picture=data.get("picture"),
            locale=data.get("locale"),
            raw_response=dict(data),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "email": self.email,
            "email_verified": self.email_verified,
            "name": self.name,
            "given_name": self.given_name,
            "family_name": self.family_name,
            "picture": self.picture,
            "locale": self.locale,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> UserProfile:
        """Reconstruct from dictionary."""
        return cls.from_response(data)


class FlowStatus(StrEnum):
    """Where the client stands in the authorization sequence."""

    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"
    VERIFIED = "verified"
    VALIDATED = "validated"


class FlowErrorKind(StrEnum):
    """Category of a flow failure."""

    MISSING_ARGUMENT = "missing_argument"
    TRANSPORT_FAILURE = "transport_failure"
    MALFORMED_RESPONSE = "malformed_response"
    VALIDATION_MISMATCH = "validation_mismatch"


@dataclass
class FlowError:
    """Details of the last failed (or degraded) operation."""

    kind: FlowErrorKind
    operation: str
    message: str
    status_code: int | None = None
    error: str | None = None  # provider error code, e.g. invalid_grant
    details: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "kind": self.kind.value,
            "operation": self.operation,
            "message": self.message,
            "status_code": self.status_code,
            "error": self.error,
            "details": list(self.details),
        }


def _as_text(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return value if isinstance(value, str) else json.dumps(value, default=str)


def _provider_error(response: httpx.Response) -> tuple[str | None, str | None]:
    """Extract the provider's error code and description from a response.

    Both are returned as text whatever JSON types the provider used.
    """
    try:
        data = response.json()
    except ValueError:
        return None, None
    if not isinstance(data, dict):
        return None, None

    error = data.get("error")
    if isinstance(error, dict):
        # Google API style: {"error": {"code": 401, "message": "..."}}
        code = error.get("status") or error.get("code")
        return _as_text(code), _as_text(error.get("message"))
    return _as_text(error), _as_text(data.get("error_description"))


class OAuthClient:
    """Client for the OAuth2 / OIDC authorization code flow.

    One instance serves one in-flight authorization sequence. It holds the
    three response artifacts (``auth_result``, ``verify_result``,
    ``user_profile``); callers persist ``auth_result`` between requests.
    """

    def __init__(
        self,
        config: ProviderConfig,
        flow_state: FlowState | None = None,
        protocol_logger: ProtocolLogger | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the OAuth client.

        Args:
            config: Provider configuration with endpoints and credentials.
            flow_state: Transient flow values, e.g. restored from a session.
            protocol_logger: Optional protocol logger for HTTP traffic capture.
            transport: Optional innermost httpx transport (used by tests).

        Raises:
            ConfigurationError: If the configured CA bundle is unusable.
        """
        self._config = config
        self._flow_state = flow_state or FlowState()
        self._protocol_logger = protocol_logger or get_protocol_logger()
        self._transport = transport
        self._tls_verify: ssl.SSLContext | bool | None = None
        if transport is None:
            self._tls_verify = create_ssl_context(str(config.cert_path) if config.cert_path else None)
        self._http_client: httpx.Client | None = None

        self._auth: AuthResult | None = None
        self._verify: VerifyResult | None = None
        self._user: UserProfile | None = None
        self._status = FlowStatus.UNAUTHENTICATED
        self._last_error: FlowError | None = None
        self._last_validation: CrossValidationResult | None = None

    def __enter__(self) -> OAuthClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def http_client(self) -> httpx.Client:
        """Get or create the HTTP client with pinning and logging."""
        if self._http_client is None:
            self._http_client = build_http_client(
                self._config,
                protocol_logger=self._protocol_logger,
                transport=self._transport,
                verify=self._tls_verify,
            )
        return self._http_client

    def close(self) -> None:
        """Close the HTTP client."""
        if self._http_client is not None:
            self._http_client.close()
            self._http_client = None

    @property
    def config(self) -> ProviderConfig:
        """Provider configuration."""
        return self._config

    @property
    def flow_state(self) -> FlowState:
        """Transient values written by the flow steps."""
        return self._flow_state

    @property
    def protocol_logger(self) -> ProtocolLogger:
        """Get the protocol logger."""
        return self._protocol_logger

    @property
    def status(self) -> FlowStatus:
        """Current position in the authorization sequence."""
        return self._status

    @property
    def last_error(self) -> FlowError | None:
        """Error recorded by the most recent operation, if any."""
        return self._last_error

    @property
    def last_validation(self) -> CrossValidationResult | None:
        """Detailed result of the most recent ``validate`` call."""
        return self._last_validation

    @property
    def auth_result(self) -> AuthResult | None:
        """Tokens from the last successful exchange or refresh."""
        return self._auth

    @auth_result.setter
    def auth_result(self, value: AuthResult | None) -> None:
        self._auth = value
        if value is None:
            self._status = FlowStatus.UNAUTHENTICATED
        elif self._status == FlowStatus.UNAUTHENTICATED:
            self._status = FlowStatus.AUTHENTICATED

    @property
    def verify_result(self) -> VerifyResult | None:
        """Result of the last successful verification."""
        return self._verify

    @verify_result.setter
    def verify_result(self, value: VerifyResult | None) -> None:
        self._verify = value

    @property
    def user_profile(self) -> UserProfile | None:
        """Profile from the last successful user-info call."""
        return self._user

    @user_profile.setter
    def user_profile(self, value: UserProfile | None) -> None:
        self._user = value

    def to_session(self) -> dict[str, Any]:
        """Snapshot of the artifacts and flow state for session storage."""
        return {
            "auth": self._auth.to_dict() if self._auth else None,
            "verify": self._verify.to_dict() if self._verify else None,
            "user": self._user.to_dict() if self._user else None,
            "flow_state": self._flow_state.to_dict(),
        }

    def restore_session(self, data: Mapping[str, Any]) -> None:
        """Replay a snapshot produced by ``to_session``."""
        if data.get("flow_state"):
            self._flow_state = FlowState.from_dict(data["flow_state"])
        self.verify_result = VerifyResult.from_dict(data["verify"]) if data.get("verify") else None
        self.user_profile = UserProfile.from_dict(data["user"]) if data.get("user") else None
        self.auth_result = AuthResult.from_dict(data["auth"]) if data.get("auth") else None

    # -- flow operations -------------------------------------------------

    def build_authorization_url(self, index: int | None = None, state: str | None = None) -> str:
        """Create the link that sends the user to the provider's consent page.

        Args:
            index: Authorization field variant; defaults to the configured one.
            state: Optional anti-forgery value to include in the request.

        Raises:
            ConfigurationError: If the variant index is not configured.
        """
        template = self._config.authorization_template(index)
        if state is not None:
            self._flow_state.state = state
        fields = render_fields(template, template_values(self._config, self._flow_state))
        return f"{self._config.authorization_endpoint}?{fields}"

    def code_from_redirect(self, redirect_url: str | None) -> str | None:
        """Read the authorization code from the provider's redirect URL.

        The code is taken from the query parameter named by
        ``config.response_key``. No network call is made.

        Returns:
            The code, or None if the redirect carries none (for example when
            the user denied consent; the provider's ``error`` is recorded).
        """
        operation = "code_from_redirect"
        if not redirect_url:
            return self._missing(operation, "redirect_url")

        query = parse_query(urlsplit(redirect_url).query) or {}
        code = query.get(self._config.response_key)
        if not code:
            self._fail(
                operation,
                FlowErrorKind.MISSING_ARGUMENT,
                f"{self._config.response_key!r} missing from redirect URL",
                error=query.get("error"),
            )
            return None
        return code

    def exchange_code(self, code: str | None) -> AuthResult | None:
        """Exchange an authorization code for tokens.

        Args:
            code: Authorization code from the provider's callback.

        Returns:
            The new AuthResult, or None on failure (``auth_result`` unchanged).
        """
        operation = "exchange_code"
        if not code:
            return self._missing(operation, "code")

        self._flow_state.code = code
        body = render_fields(self._config.token_fields, template_values(self._config, self._flow_state))
        response = self._send(operation, "POST", self._config.token_endpoint, content=body, form=True)
        if response is None:
            return None

        data, malformed = self._parse_body(response)
        result = AuthResult.from_response(data, obtained_at=time.time())
        self._auth = result
        self._status = FlowStatus.AUTHENTICATED
        self._succeeded(operation, malformed, result.to_dict())
        return result

    def verify(self, access_token: str | None) -> VerifyResult | None:
        """Verify an access token at the provider's introspection endpoint.

        Args:
            access_token: Access token from ``auth_result``.

        Returns:
            The new VerifyResult, or None on failure.
        """
        operation = "verify"
        if not access_token:
            return self._missing(operation, "access_token")

        response = self._send(
            operation, "GET", self._config.verify_endpoint, params={"access_token": access_token}
        )
        if response is None:
            return None

        data, malformed = self._parse_body(response)
        result = VerifyResult.from_response(data)
        self._verify = result
        self._status = FlowStatus.VERIFIED
        self._succeeded(operation, malformed, result.to_dict())
        return result

    def validate(
        self,
        verify_result: VerifyResult | IdentityClaims | Mapping[str, Any] | None,
        user_profile: UserProfile | Mapping[str, Any] | None,
    ) -> bool:
        """Cross-validate verification claims against the user profile.

        Checks that the verified user ID and email match the profile and that
        the token was issued to this client. No network call is made.

        Args:
            verify_result: VerifyResult, decoded ID token claims or a raw mapping.
            user_profile: UserProfile or a raw user-info mapping.

        Returns:
            True if every check passed. Details are in ``last_validation``.
        """
        operation = "validate"
        if isinstance(verify_result, VerifyResult):
            claims: IdentityClaims | Mapping[str, Any] | None = verify_result.claims()
        else:
            claims = verify_result
        profile = user_profile.to_dict() if isinstance(user_profile, UserProfile) else user_profile

        result = cross_validate(claims, profile, self._config.client_id)
        self._last_validation = result

        if not result.is_valid:
            self._fail(
                operation,
                FlowErrorKind.VALIDATION_MISMATCH,
                "; ".join(result.errors),
                details=list(result.errors),
            )
            return False

        self._status = FlowStatus.VALIDATED
        self._succeeded(operation, False, {"checks": [c.name for c in result.checks]})
        return True

    def refresh(self, refresh_token: str | None) -> AuthResult | None:
        """Obtain a new access token with a refresh token.

        Args:
            refresh_token: Refresh token from an earlier ``auth_result``.

        Returns:
            The new AuthResult, or None on failure (``auth_result`` unchanged).
        """
        operation = "refresh"
        if not refresh_token:
            return self._missing(operation, "refresh_token")

        self._flow_state.refresh_token = refresh_token
        body = render_fields(self._config.refresh_fields, template_values(self._config, self._flow_state))
        response = self._send(
            operation, "POST", self._config.effective_refresh_endpoint, content=body, form=True
        )
        if response is None:
            return None

        data, malformed = self._parse_body(response)
        result = AuthResult.from_response(data, obtained_at=time.time())
        self._auth = result
        self._status = FlowStatus.AUTHENTICATED
        self._succeeded(operation, malformed, result.to_dict())
        return result

    def revoke_token(self, access_token: str | None) -> bool:
        """Revoke a token, unregistering the application from the user's account.

        This does not log the user out of the provider.

        Args:
            access_token: Access (or refresh) token to revoke.

        Returns:
            True on success, after which all held artifacts are cleared.
        """
        operation = "revoke_token"
        if not access_token:
            self._missing(operation, "access_token")
            return False

        values = template_values(self._config, self._flow_state)
        values["token"] = access_token
        body = render_fields(self._config.revocation_fields, values)
        response = self._send(operation, "POST", self._config.revocation_endpoint, content=body, form=True)
        if response is None:
            return False

        self._auth = None
        self._verify = None
        self._user = None
        self._last_validation = None
        self._status = FlowStatus.UNAUTHENTICATED
        self._succeeded(operation, False, {"cleared": ["auth", "verify", "user"]})
        return True

    def fetch_user_info(self, access_token: str | None) -> UserProfile | None:
        """Fetch the authenticated user's profile.

        Args:
            access_token: Bearer token for authorization.

        Returns:
            The new UserProfile, or None on failure.
        """
        operation = "fetch_user_info"
        if not access_token:
            return self._missing(operation, "access_token")

        response = self._send(
            operation,
            "GET",
            self._config.userinfo_endpoint,
            headers={"Authorization": f"Bearer {access_token}"},
        )
        if response is None:
            return None

        data, malformed = self._parse_body(response)
        result = UserProfile.from_response(data)
        self._user = result
        self._succeeded(operation, malformed, result.to_dict())
        return result

    def authenticate(self, code: str | None) -> bool:
        """Run exchange, verification, user-info and validation in sequence.

        Stops at the first failing step; artifacts produced by earlier steps
        are kept.

        Args:
            code: Authorization code from the provider's callback.

        Returns:
            True if every step succeeded.
        """
        auth = self.exchange_code(code)
        if auth is None:
            return False
        verify = self.verify(auth.access_token)
        if verify is None:
            return False
        user = self.fetch_user_info(auth.access_token)
        if user is None:
            return False
        return self.validate(verify, user)

    # -- helpers ---------------------------------------------------------

    def _send(
        self,
        operation: str,
        method: str,
        url: str,
        content: str | None = None,
        form: bool = False,
        params: dict[str, str] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response | None:
        """Issue one request; return the response only for HTTP 200."""
        if not url:
            self._fail(operation, FlowErrorKind.TRANSPORT_FAILURE, f"{operation} endpoint not configured")
            return None

        request_headers = dict(headers or {})
        if form:
            request_headers["Content-Type"] = "application/x-www-form-urlencoded"

        try:
            response = self.http_client.request(
                method, url, content=content, params=params, headers=request_headers
            )
        except httpx.HTTPError as e:
            self._fail(operation, FlowErrorKind.TRANSPORT_FAILURE, f"HTTP error during {operation}: {e}")
            return None

        if response.status_code != 200:
            error, description = _provider_error(response)
            message = description or f"{operation} failed with status {response.status_code}"
            self._fail(
                operation,
                FlowErrorKind.TRANSPORT_FAILURE,
                message,
                status_code=response.status_code,
                error=error,
                details=[redact_sensitive(response.text[:500])] if response.text else [],
            )
            return None

        return response

    def _parse_body(self, response: httpx.Response) -> tuple[dict[str, Any], bool]:
        """Decode a JSON object body; an unusable body yields an empty mapping."""
        try:
            data = response.json()
        except ValueError:
            return {}, True
        if not isinstance(data, dict):
            return {}, True
        return data, False

    def _missing(self, operation: str, argument: str) -> None:
        self._fail(operation, FlowErrorKind.MISSING_ARGUMENT, f"{operation}() error: {argument} is empty")
        return None

    def _fail(
        self,
        operation: str,
        kind: FlowErrorKind,
        message: str,
        status_code: int | None = None,
        error: str | None = None,
        details: list[str] | None = None,
    ) -> None:
        self._last_error = FlowError(
            kind=kind,
            operation=operation,
            message=message,
            status_code=status_code,
            error=error,
            details=details or [],
        )
        logger.warning(f"{operation}() failed [{kind.value}]: {redact_sensitive(message)}")

    def _succeeded(self, operation: str, malformed: bool, snapshot: dict[str, Any]) -> None:
        self._last_error = None
        if malformed:
            self._last_error = FlowError(
                kind=FlowErrorKind.MALFORMED_RESPONSE,
                operation=operation,
                message=f"{operation} response body is not a JSON object",
            )
            logger.warning(f"{operation}() response body is not a JSON object; fields left empty")
        logger.info(f"{operation}() succeeded: {redact_sensitive(json.dumps(snapshot, default=str))}")
