"""Exceptions shared across authflow."""


class ConfigurationError(ValueError):
    """Raised when the provider configuration cannot be used."""
