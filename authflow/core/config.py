"""Provider configuration loading.

Builds a ``ProviderConfig`` from a preset, a config.yaml file and
environment variables. Later sources override earlier ones:

1. Preset defaults (``google`` unless the file names another)
2. ``provider`` section of config.yaml (if it exists)
3. ``AUTHFLOW_*`` environment variables
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import yaml

from authflow.core.oidc.provider import ProviderConfig
from authflow.idp_presets import get_preset

logger = logging.getLogger("authflow.config")

# Default config locations
DEFAULT_CONFIG_DIR = Path.home() / ".authflow"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.yaml"

# Environment variable prefix
ENV_PREFIX = "AUTHFLOW_"

# Environment variable suffix -> ProviderConfig field
ENV_FIELDS = {
    "CLIENT_ID": "client_id",
    "CLIENT_SECRET": "client_secret",
    "REDIRECT_URI": "redirect_uri",
    "SCOPE": "scope",
    "AUTHORIZATION_ENDPOINT": "authorization_endpoint",
    "TOKEN_ENDPOINT": "token_endpoint",
    "REFRESH_ENDPOINT": "refresh_endpoint",
    "VERIFY_ENDPOINT": "verify_endpoint",
    "USERINFO_ENDPOINT": "userinfo_endpoint",
    "REVOCATION_ENDPOINT": "revocation_endpoint",
    "AUTH_FIELDS_INDEX": "authorization_fields_index",
    "HOST_PINS": "host_pins",
    "CERT_PATH": "cert_path",
    "TIMEOUT": "timeout",
}


def _read_config_file(file_path: Path) -> dict[str, Any]:
    """Read config.yaml, returning an empty mapping if missing or invalid."""
    if not file_path.exists():
        return {}
    try:
        with open(file_path) as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        # If config file is invalid, use defaults
        logger.warning(f"Ignoring unreadable config file {file_path}: {e}")
        return {}
    if not isinstance(data, dict):
        logger.warning(f"Ignoring config file {file_path}: top level is not a mapping")
        return {}
    return data


def _env_overrides() -> dict[str, str]:
    """Collect provider settings from environment variables."""
    overrides: dict[str, str] = {}
    for suffix, name in ENV_FIELDS.items():
        value = os.environ.get(f"{ENV_PREFIX}{suffix}")
        if value:
            overrides[name] = value
    return overrides


def load_provider_config(
    config_path: Path | None = None,
    preset: str | None = None,
) -> ProviderConfig:
    """Load the provider configuration.

    Args:
        config_path: Path to config file. Uses default if not specified.
        preset: Preset name; overrides ``preset`` from the file.

    Returns:
        ProviderConfig with merged settings.

    Raises:
        ConfigurationError: If the preset is unknown or a value is invalid.
    """
    file_data = _read_config_file(config_path or DEFAULT_CONFIG_FILE)

    preset_name = preset or os.environ.get(f"{ENV_PREFIX}PRESET") or file_data.get("preset") or "google"
    data = get_preset(preset_name).to_dict()

    provider_data = file_data.get("provider") or {}
    if isinstance(provider_data, dict):
        data.update({k: v for k, v in provider_data.items() if v is not None})

    data.update(_env_overrides())
    return ProviderConfig.from_dict(data)


def save_provider_config(config: ProviderConfig, path: Path | None = None, preset: str = "generic") -> Path:
    """Save a configuration to a YAML file.

    Args:
        config: Configuration to save.
        path: Path to save to. Uses the default if not specified.
        preset: Preset recorded in the file.

    Returns:
        The path written.
    """
    save_path = path or DEFAULT_CONFIG_FILE
    save_path.parent.mkdir(parents=True, exist_ok=True)

    with open(save_path, "w") as f:
        yaml.safe_dump({"preset": preset, "provider": config.to_dict()}, f, default_flow_style=False)
    return save_path


def get_default_config_yaml() -> str:
    """Get the default config.yaml content as a string.

    Useful for generating example configuration files.
    """
    return """\
# authflow configuration file
# Environment variables override these settings (prefix: AUTHFLOW_)

# Provider preset supplying endpoints and request templates (google, generic)
preset: google

provider:
  # Credentials from the provider's developer console
  client_id: ""
  client_secret: ""
  redirect_uri: "http://localhost/auth/google/login"

  # Authorization request variant:
  #   0 - no defaults, all fields filled from this file
  #   1 - online access (access token only)
  #   2 - offline access with forced consent (access and refresh token)
  authorization_fields_index: 2

  # Pin hosts to IP addresses ("host=address" or "host:port:address")
  # host_pins:
  #   - "accounts.google.com:443:216.58.198.13"
  #   - "www.googleapis.com:443:216.58.205.74"

  # CA bundle used to verify the provider's TLS certificate
  # cert_path: ~/.authflow/cacert.pem

  # Request timeout in seconds
  timeout: 30
"""
