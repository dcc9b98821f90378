"""OAuth2 / OIDC authorization code flow."""

from authflow.core.oidc.client import (
    AuthResult,
    FlowError,
    FlowErrorKind,
    FlowStatus,
    OAuthClient,
    UserProfile,
    VerifyResult,
)
from authflow.core.oidc.fields import render_fields
from authflow.core.oidc.provider import (
    AuthorizationVariant,
    ConfigurationError,
    FlowState,
    ProviderConfig,
    parse_host_pins,
    template_values,
)
from authflow.core.oidc.querystring import parse_query, serialize_query
from authflow.core.oidc.validation import (
    CrossValidationResult,
    IdentityClaims,
    ValidationCheck,
    ValidationStatus,
    cross_validate,
    decode_id_token,
)

__all__ = [
    # Client
    "AuthResult",
    "FlowError",
    "FlowErrorKind",
    "FlowStatus",
    "OAuthClient",
    "UserProfile",
    "VerifyResult",
    # Templates and codec
    "parse_query",
    "render_fields",
    "serialize_query",
    # Provider
    "AuthorizationVariant",
    "ConfigurationError",
    "FlowState",
    "ProviderConfig",
    "parse_host_pins",
    "template_values",
    # Validation
    "CrossValidationResult",
    "IdentityClaims",
    "ValidationCheck",
    "ValidationStatus",
    "cross_validate",
    "decode_id_token",
]
