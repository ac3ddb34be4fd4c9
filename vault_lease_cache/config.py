"""Configuration for Vault Lease Cache."""

import os
from typing import Any, Callable, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator


VAULT_URL_HOOK = "vault_url"
AUTH_TOKEN_HOOK = "auth_token"


class Filters:
    """Ordered transform hooks applied to configuration values at read time.

    Callables registered for a hook run in registration order; each receives
    the output of the previous one, starting from the configured value.
    """

    def __init__(self):
        self._hooks: Dict[str, List[Callable[[Any], Any]]] = {}

    def add(self, hook: str, func: Callable[[Any], Any]) -> None:
        """Register a transform for a hook."""
        self._hooks.setdefault(hook, []).append(func)

    def remove(self, hook: str, func: Callable[[Any], Any]) -> bool:
        """Unregister a transform. Returns True if it was registered."""
        funcs = self._hooks.get(hook, [])
        if func in funcs:
            funcs.remove(func)
            return True
        return False

    def has(self, hook: str) -> bool:
        """Check if any transform is registered for a hook."""
        return bool(self._hooks.get(hook))

    def apply(self, hook: str, value: Any) -> Any:
        """Pipe a value through every transform registered for a hook."""
        for func in self._hooks.get(hook, []):
            value = func(value)
        return value


class VaultConfig(BaseModel):
    """Settings for talking to Vault and storing leased secrets."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    url: str = Field(default="", description="Base URL of the Vault server")
    token: SecretStr = Field(default=SecretStr(""), description="Vault authentication token")
    timeout: float = Field(default=30.0, description="Transport timeout in seconds")
    verify: bool = Field(default=True, description="Verify TLS certificates")

    cache_prefix: str = Field(default="vault-lease-cache-", description="Prefix for cache keys")
    cache_ttl_margin: int = Field(default=10, description="Seconds a cache entry expires before its lease")
    expire_cache_with_lease: bool = Field(default=True, description="Tie cache TTL to the lease duration")

    lock_backend: Literal["memory", "redis"] = Field(default="memory", description="Lock store backend")
    cache_backend: Literal["memory", "redis"] = Field(default="memory", description="Cache store backend")
    stale_lock_seconds: int = Field(default=300, description="Age after which a held lock is presumed abandoned")
    refresh_retry_delay: Optional[int] = Field(
        default=None,
        description="Seconds before retrying a failed scheduled refresh (disabled when unset)"
    )

    filters: Filters = Field(default_factory=Filters, exclude=True)

    @field_validator("timeout")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        """Validate the transport timeout."""
        if v <= 0 or v > 300:
            raise ValueError("Timeout must be between 0 and 300 seconds")
        return v

    @field_validator("cache_ttl_margin", "stale_lock_seconds")
    @classmethod
    def validate_non_negative(cls, v: int) -> int:
        """Validate durations are not negative."""
        if v < 0:
            raise ValueError("Durations cannot be negative")
        return v

    @field_validator("refresh_retry_delay")
    @classmethod
    def validate_retry_delay(cls, v: Optional[int]) -> Optional[int]:
        """Validate the retry delay if present."""
        if v is not None and v <= 0:
            raise ValueError("Retry delay must be positive")
        return v

    @classmethod
    def from_env(cls, **overrides: Any) -> "VaultConfig":
        """Build a configuration from ``VAULT_ADDR`` and ``VAULT_TOKEN``."""
        values: Dict[str, Any] = {
            "url": os.environ.get("VAULT_ADDR", ""),
            "token": SecretStr(os.environ.get("VAULT_TOKEN", "")),
        }
        values.update(overrides)
        return cls(**values)

    def get_vault_url(self) -> str:
        """Get the Vault URL after applying registered filters."""
        return self.filters.apply(VAULT_URL_HOOK, self.url)

    def get_auth_token(self) -> str:
        """Get the Vault token after applying registered filters."""
        return self.filters.apply(AUTH_TOKEN_HOOK, self.token.get_secret_value())

