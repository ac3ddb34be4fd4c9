"""Vault Lease Cache - lease-aware caching of HashiCorp Vault secrets."""

__version__ = "0.1.0"
__author__ = "Vault Lease Cache Contributors"

from .config import Filters, VaultConfig
from .exceptions import (
    AuthenticationError,
    RemoteError,
    TransportError,
    UnavailableError,
    VaultLeaseCacheError,
)
from .manager import SecretManager, create_secret_manager
from .types import RefreshOutcome, SecretRecord

__all__ = [
    "Filters",
    "VaultConfig",
    "AuthenticationError",
    "RemoteError",
    "TransportError",
    "UnavailableError",
    "VaultLeaseCacheError",
    "SecretManager",
    "create_secret_manager",
    "RefreshOutcome",
    "SecretRecord",
]
