"""Provider configuration and per-flow state.

``ProviderConfig`` holds the static, immutable provider settings (endpoints,
client credentials, field templates, host pins). ``FlowState`` holds the
transient values written while a flow progresses (the latest authorization
code, refresh token and state). ``template_values`` merges both into the
key-value view the field templater reads.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import IntEnum
from pathlib import Path
from typing import Any

from authflow.core.errors import ConfigurationError


class AuthorizationVariant(IntEnum):
    """Index of the authorization request field variants."""

    NO_DEFAULTS = 0
    ONLINE = 1  # access token only
    OFFLINE_CONSENT = 2  # access and refresh token, forces the consent prompt


DEFAULT_AUTHORIZATION_FIELDS: tuple[str, ...] = (
    "scope=&redirect_uri=&response_type=code&client_id=&state=&access_type=&approval_prompt=",
    "scope=openid profile email&redirect_uri=&response_type=code&client_id=&state="
    "&access_type=online&approval_prompt=auto",
    "scope=openid profile email&redirect_uri=&response_type=code&client_id=&state="
    "&access_type=offline&approval_prompt=force",
)
DEFAULT_TOKEN_FIELDS = "client_id=&client_secret=&redirect_uri=&code=&grant_type=authorization_code"
DEFAULT_REFRESH_FIELDS = "client_id=&client_secret=&refresh_token=&grant_type=refresh_token"
DEFAULT_REVOCATION_FIELDS = "token="
DEFAULT_SCOPE = "openid profile email"
DEFAULT_TIMEOUT = 30.0


def parse_host_pins(value: Mapping[str, str] | Iterable[str] | str | None) -> dict[str, str]:
    """Normalize host pins into a ``{host: address}`` mapping.

    Accepts a mapping, a comma-separated string or an iterable of entries.
    Entries are either ``host=address`` or curl resolve style
    ``host:port:address``.

    Raises:
        ConfigurationError: If an entry cannot be parsed.
    """
    if value is None:
        return {}
    if isinstance(value, Mapping):
        return {str(host).lower(): str(address) for host, address in value.items()}
    if isinstance(value, str):
        value = [entry for entry in value.split(",") if entry.strip()]

    pins: dict[str, str] = {}
    for entry in value:
        entry = entry.strip()
        if "=" in entry:
            host, _, address = entry.partition("=")
        else:
            parts = entry.split(":", 2)
            if len(parts) != 3:
                raise ConfigurationError(f"Invalid host pin: {entry!r}")
            host, _, address = parts
        host, address = host.strip(), address.strip()
        if not host or not address:
            raise ConfigurationError(f"Invalid host pin: {entry!r}")
        pins[host.lower()] = address
    return pins


@dataclass(frozen=True)
class ProviderConfig:
    """Static identity provider configuration."""

    client_id: str = ""
    client_secret: str = ""
    redirect_uri: str = ""
    scope: str = DEFAULT_SCOPE
    access_type: str | None = None
    approval_prompt: str | None = None

    # Endpoints
    authorization_endpoint: str = ""
    token_endpoint: str = ""
    refresh_endpoint: str = ""  # falls back to token_endpoint
    verify_endpoint: str = ""
    userinfo_endpoint: str = ""
    revocation_endpoint: str = ""

    # Request field templates
    authorization_fields: tuple[str, ...] = DEFAULT_AUTHORIZATION_FIELDS
    authorization_fields_index: int = int(AuthorizationVariant.OFFLINE_CONSENT)
    token_fields: str = DEFAULT_TOKEN_FIELDS
    refresh_fields: str = DEFAULT_REFRESH_FIELDS
    revocation_fields: str = DEFAULT_REVOCATION_FIELDS

    # Transport
    host_pins: Mapping[str, str] = field(default_factory=dict)
    cert_path: Path | None = None
    timeout: float = DEFAULT_TIMEOUT

    # Name of the callback query parameter carrying the authorization code
    response_key: str = "code"

    @property
    def effective_refresh_endpoint(self) -> str:
        """Endpoint used for refresh requests."""
        return self.refresh_endpoint or self.token_endpoint

    def authorization_template(self, index: int | None = None) -> str:
        """Get the authorization field template for a variant.

        Args:
            index: Variant index; defaults to ``authorization_fields_index``.

        Raises:
            ConfigurationError: If the index does not select a template.
        """
        ndx = self.authorization_fields_index if index is None else index
        if not 0 <= ndx < len(self.authorization_fields):
            raise ConfigurationError(
                f"Authorization field variant {ndx} not configured "
                f"({len(self.authorization_fields)} available)"
            )
        return self.authorization_fields[ndx]

    def with_overrides(self, **changes: Any) -> ProviderConfig:
        """Return a copy with the given fields replaced."""
        if "host_pins" in changes:
            changes["host_pins"] = parse_host_pins(changes["host_pins"])
        return dataclasses.replace(self, **changes)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ProviderConfig:
        """Create a ProviderConfig from a dictionary.

        Unknown keys are ignored.
        """
        known = {f.name for f in dataclasses.fields(cls)}
        values = {k: v for k, v in data.items() if k in known}

        if "authorization_fields" in values:
            fields_value = values["authorization_fields"]
            if isinstance(fields_value, str):
                fields_value = [fields_value]
            values["authorization_fields"] = tuple(fields_value)
        if "authorization_fields_index" in values:
            values["authorization_fields_index"] = int(values["authorization_fields_index"])
        if "host_pins" in values:
            values["host_pins"] = parse_host_pins(values["host_pins"])
        if values.get("cert_path"):
            values["cert_path"] = Path(values["cert_path"]).expanduser()
        else:
            values.pop("cert_path", None)
        if "timeout" in values:
            values["timeout"] = float(values["timeout"])

        return cls(**values)

    def to_dict(self, include_secret: bool = True) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        data = dataclasses.asdict(self)
        data["authorization_fields"] = list(self.authorization_fields)
        data["host_pins"] = dict(self.host_pins)
        data["cert_path"] = str(self.cert_path) if self.cert_path else None
        if not include_secret and self.client_secret:
            data["client_secret"] = "[REDACTED]"
        return data


@dataclass
class FlowState:
    """Transient values written while an authorization flow progresses."""

    code: str | None = None
    refresh_token: str | None = None
    state: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for session storage."""
        return {"code": self.code, "refresh_token": self.refresh_token, "state": self.state}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> FlowState:
        """Reconstruct from dictionary."""
        return cls(
            code=data.get("code"),
            refresh_token=data.get("refresh_token"),
            state=data.get("state"),
        )


def template_values(config: ProviderConfig, flow_state: FlowState | None = None) -> dict[str, Any]:
    """Build the key-value view that request templates are rendered against."""
    values: dict[str, Any] = {
        "client_id": config.client_id,
        "client_secret": config.client_secret,
        "redirect_uri": config.redirect_uri,
        "scope": config.scope,
        "access_type": config.access_type,
        "approval_prompt": config.approval_prompt,
    }
    if flow_state is not None:
        values.update(flow_state.to_dict())
    return values
