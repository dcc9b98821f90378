"""Identity Provider preset configurations.

Available presets:
- google: Google OAuth 2.0 / OpenID Connect
- generic: default templates only; endpoints come from the config file
"""

from __future__ import annotations

from authflow.core.oidc.provider import ConfigurationError, ProviderConfig
from authflow.idp_presets.google import (
    GOOGLE_HOST_PINS,
    GoogleConfig,
)
from authflow.idp_presets.google import (
    get_oidc_preset as get_google_oidc_preset,
)

__all__ = [
    "GOOGLE_HOST_PINS",
    "GoogleConfig",
    "get_google_oidc_preset",
    "PRESETS",
    "get_preset",
    "get_preset_info",
    "list_presets",
]


# Registry of available presets
PRESETS = {
    "google": {
        "name": "Google",
        "description": "Google OAuth 2.0 / OpenID Connect",
        "module": "authflow.idp_presets.google",
    },
    "generic": {
        "name": "Generic",
        "description": "Default request templates; endpoints must be configured",
        "module": None,
    },
}


def get_preset_info(preset_name: str) -> dict | None:
    """Get information about a preset.

    Args:
        preset_name: Name of the preset (e.g., 'google').

    Returns:
        Preset information dict or None if not found.
    """
    return PRESETS.get(preset_name.lower())


def list_presets() -> list[dict]:
    """List all available presets."""
    return [{"id": k, **v} for k, v in PRESETS.items()]


def get_preset(preset_name: str) -> ProviderConfig:
    """Get the base ProviderConfig for a preset.

    Raises:
        ConfigurationError: If the preset is unknown.
    """
    name = preset_name.lower()
    if name == "google":
        return get_google_oidc_preset()
    if name == "generic":
        return ProviderConfig()
    raise ConfigurationError(f"Unknown provider preset: {preset_name}")
