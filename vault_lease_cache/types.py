"""Core data models for Vault Lease Cache."""

import json
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Mapping

from pydantic import BaseModel, ConfigDict, Field, field_validator


def coerce_lease_duration(value: Any) -> int:
    """Coerce a lease duration reported by Vault to a non-negative integer."""
    try:
        duration = int(float(value))
    except (TypeError, ValueError, OverflowError):
        return 0
    return max(duration, 0)


def coerce_lease_id(value: Any) -> str:
    """Coerce a lease id reported by Vault to a string."""
    if value is None:
        return ""
    return str(value)


class SecretRecord(BaseModel):
    """A secret read from Vault, together with its lease metadata.

    ``values`` holds the secret payload merged with ``lease_duration`` and
    ``lease_id``; the lease fields always win over same-named payload keys.
    Records are frozen and ``values`` is a read-only view: a newer fetch
    supersedes a record, it never mutates it.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Secret path as requested by the caller")
    values: Mapping[str, Any] = Field(
        default_factory=dict, validate_default=True, description="Payload plus lease fields"
    )
    lease_duration: int = Field(default=0, description="Seconds left on the lease at fetch time")
    lease_id: str = Field(default="", description="Vault lease identifier")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Validate the secret name."""
        if not v or not v.strip():
            raise ValueError("Secret name cannot be empty")
        return v

    @field_validator("values")
    @classmethod
    def validate_values(cls, v: Mapping[str, Any]) -> Mapping[str, Any]:
        """Freeze the secret map."""
        return MappingProxyType(dict(v))

    @field_validator("lease_duration", mode="before")
    @classmethod
    def validate_lease_duration(cls, v: Any) -> int:
        """Coerce the lease duration to a non-negative integer."""
        return coerce_lease_duration(v)

    @field_validator("lease_id", mode="before")
    @classmethod
    def validate_lease_id(cls, v: Any) -> str:
        """Coerce a missing lease id to an empty string."""
        return coerce_lease_id(v)

    @classmethod
    def from_response(cls, name: str, data: Dict[str, Any], lease_duration: Any, lease_id: Any) -> "SecretRecord":
        """Build a record from a Vault read response."""
        duration = coerce_lease_duration(lease_duration)
        lid = coerce_lease_id(lease_id)

        values = dict(data or {})
        values["lease_duration"] = duration
        values["lease_id"] = lid

        return cls(name=name, values=values, lease_duration=duration, lease_id=lid)

    def as_dict(self) -> Dict[str, Any]:
        """Return a copy of the merged secret map."""
        return dict(self.values)

    def get(self, key: str, default: Any = None) -> Any:
        """Look up a single field of the secret."""
        return self.values.get(key, default)

    def to_bytes(self) -> bytes:
        """Serialize for storage in a cache backend."""
        data = {
            "name": self.name,
            "values": dict(self.values),
            "lease_duration": self.lease_duration,
            "lease_id": self.lease_id,
        }
        return json.dumps(data, sort_keys=True, separators=(",", ":")).encode()

    @classmethod
    def from_bytes(cls, raw: bytes) -> "SecretRecord":
        """Deserialize a record written by ``to_bytes``."""
        if isinstance(raw, bytes):
            raw = raw.decode()
        return cls(**json.loads(raw))


class RefreshOutcome(str, Enum):
    """Result of a single scheduled refresh attempt."""

    REFRESHED = "refreshed"
    LOCKED = "locked"
    RECOVERED = "recovered"
    FAILED = "failed"
