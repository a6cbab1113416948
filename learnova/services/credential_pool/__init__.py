"""Pool of interchangeable media host accounts with health tracking."""

from .errors import ConfigurationError
from .models import AccountHealth, Credential, CredentialPoolStatus
from .pool import CredentialPool

__all__ = [
    "AccountHealth",
    "ConfigurationError",
    "Credential",
    "CredentialPool",
    "CredentialPoolStatus",
]
