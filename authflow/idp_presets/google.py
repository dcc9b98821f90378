"""Google OAuth 2.0 / OpenID Connect preset.

Endpoints and request templates for Google's web server flow. Credentials
come from the Google Cloud Console (APIs & Services > Credentials).

Authorization field variants:
- 0: no defaults, every field is filled from the configuration
- 1: ``access_type=online`` gives an access token only
- 2: ``access_type=offline`` with ``approval_prompt=force`` also gives a
  refresh token
"""

from __future__ import annotations

from dataclasses import dataclass, field

from authflow.core.oidc.provider import (
    DEFAULT_AUTHORIZATION_FIELDS,
    DEFAULT_REFRESH_FIELDS,
    DEFAULT_REVOCATION_FIELDS,
    DEFAULT_TOKEN_FIELDS,
    AuthorizationVariant,
    ProviderConfig,
)

DEFAULT_REDIRECT_URI = "http://localhost/auth/google/login"

# Addresses the Google hosts are pinned to, bypassing DNS
GOOGLE_HOST_PINS = {
    "accounts.google.com": "216.58.198.13",
    "www.googleapis.com": "216.58.205.74",
}


@dataclass
class GoogleConfig:
    """Google-specific endpoints."""

    host_pins: dict[str, str] = field(default_factory=lambda: dict(GOOGLE_HOST_PINS))

    @property
    def authorization_endpoint(self) -> str:
        """Get the consent page URL."""
        return "https://accounts.google.com/o/oauth2/auth"

    @property
    def token_endpoint(self) -> str:
        """Get the token endpoint (exchange and refresh)."""
        return "https://accounts.google.com/o/oauth2/token"

    @property
    def verify_endpoint(self) -> str:
        """Get the token info endpoint."""
        return "https://www.googleapis.com/oauth2/v2/tokeninfo"

    @property
    def userinfo_endpoint(self) -> str:
        """Get the user-info endpoint."""
        return "https://www.googleapis.com/userinfo/v2/me"

    @property
    def revocation_endpoint(self) -> str:
        """Get the token revocation endpoint."""
        return "https://accounts.google.com/o/oauth2/revoke"


def get_oidc_preset(
    client_id: str = "",
    client_secret: str = "",
    redirect_uri: str = DEFAULT_REDIRECT_URI,
    variant: int = AuthorizationVariant.OFFLINE_CONSENT,
    pin_hosts: bool = True,
) -> ProviderConfig:
    """Get a ProviderConfig for Google.

    Args:
        client_id: OAuth client ID from the Cloud Console.
        client_secret: OAuth client secret.
        redirect_uri: Authorized redirect URI.
        variant: Authorization field variant index.
        pin_hosts: Whether to pin Google hosts to fixed addresses.

    Returns:
        ProviderConfig with Google endpoints and templates.
    """
    google = GoogleConfig()
    return ProviderConfig(
        client_id=client_id,
        client_secret=client_secret,
        redirect_uri=redirect_uri,
        authorization_endpoint=google.authorization_endpoint,
        token_endpoint=google.token_endpoint,
        refresh_endpoint=google.token_endpoint,
        verify_endpoint=google.verify_endpoint,
        userinfo_endpoint=google.userinfo_endpoint,
        revocation_endpoint=google.revocation_endpoint,
        authorization_fields=DEFAULT_AUTHORIZATION_FIELDS,
        authorization_fields_index=int(variant),
        token_fields=DEFAULT_TOKEN_FIELDS,
        refresh_fields=DEFAULT_REFRESH_FIELDS,
        revocation_fields=DEFAULT_REVOCATION_FIELDS,
        host_pins=google.host_pins if pin_hosts else {},
    )
