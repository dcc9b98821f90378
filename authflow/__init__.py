"""authflow - OAuth2 / OpenID Connect authorization code flow client."""

__version__ = "0.1.0"
