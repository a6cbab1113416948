"""Credential pool exceptions."""


class ConfigurationError(Exception):
    """No usable media host credentials were configured, raised once at startup."""
