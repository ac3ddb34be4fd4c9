"""Exceptions raised by Vault Lease Cache."""

from typing import List, Optional


class VaultLeaseCacheError(Exception):
    """Base class for all Vault Lease Cache errors."""
    pass


class ConfigurationError(VaultLeaseCacheError):
    """Raised when the library is configured incorrectly."""
    pass


class FetchError(VaultLeaseCacheError):
    """Base class for failures reading a secret from Vault."""

    def __init__(self, message: str, secret: Optional[str] = None):
        super().__init__(message)
        self.secret = secret


class AuthenticationError(FetchError):
    """Raised when Vault rejects the configured token."""
    pass


class TransportError(FetchError):
    """Raised when the round-trip to Vault cannot complete."""
    pass


class RemoteError(FetchError):
    """Raised when Vault answers with a well-formed error."""

    def __init__(self, message: str, secret: Optional[str] = None, errors: Optional[List[str]] = None):
        super().__init__(message, secret=secret)
        self.errors = errors or []


class UnavailableError(VaultLeaseCacheError):
    """Raised when a secret is neither cached nor fetchable."""

    def __init__(self, secret: str):
        message = f"Secret unavailable: {secret}"
        super().__init__(message)
        self.secret = secret


class CacheStoreError(VaultLeaseCacheError):
    """Raised when the cache backend fails."""
    pass


class LockUnavailableError(VaultLeaseCacheError):
    """Raised when a refresh lock is already held."""

    def __init__(self, lock_name: str):
        message = f"Lock already held: {lock_name}"
        super().__init__(message)
        self.lock_name = lock_name


class LockNotFoundError(VaultLeaseCacheError):
    """Raised when releasing a lock that is not held."""

    def __init__(self, lock_name: str):
        message = f"Lock not found in storage: {lock_name}"
        super().__init__(message)
        self.lock_name = lock_name
