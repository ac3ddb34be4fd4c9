"""Tests for core types."""

import warnings

import pytest
from pydantic import ValidationError
from pydantic.warnings import PydanticDeprecatedSince20

from vault_lease_cache.config import VaultConfig
from vault_lease_cache.types import RefreshOutcome, SecretRecord


def test_record_from_response_merges_lease_fields():
    """Test the payload is merged with both lease fields."""
    record = SecretRecord.from_response(
        "database/creds",
        {"user": "a", "pass": "b"},
        lease_duration=3600,
        lease_id="abc"
    )

    assert record.as_dict() == {"user": "a", "pass": "b", "lease_duration": 3600, "lease_id": "abc"}
    assert record.lease_duration == 3600
    assert record.lease_id == "abc"
    assert record.get("user") == "a"
    assert record.get("missing", "default") == "default"


def test_lease_fields_override_payload():
    """Test lease metadata wins over same-named payload fields."""
    record = SecretRecord.from_response(
        "database/creds",
        {"user": "a", "lease_duration": "forever", "lease_id": "payload-id"},
        lease_duration=60,
        lease_id="vault-id"
    )

    assert record.values["lease_duration"] == 60
    assert record.values["lease_id"] == "vault-id"


@pytest.mark.parametrize("raw, expected", [
    (None, 0),
    ("", 0),
    ("not-a-number", 0),
    ("120", 120),
    ("inf", 0),
    (59.9, 59),
    (-5, 0),
    (3600, 3600),
])
def test_lease_duration_coercion(raw, expected):
    """Test absent or malformed lease durations become non-negative integers."""
    record = SecretRecord.from_response("kv/app", {}, lease_duration=raw, lease_id=None)

    assert record.lease_duration == expected
    assert record.values["lease_duration"] == expected
    assert isinstance(record.lease_duration, int)
    assert record.lease_id == ""


def test_record_is_frozen():
    """Test records cannot be mutated after construction."""
    record = SecretRecord.from_response("kv/app", {"key": "value"}, lease_duration=10, lease_id="x")

    with pytest.raises((TypeError, ValidationError)):
        record.lease_duration = 20


def test_record_values_are_read_only():
    """Test the secret map cannot be changed through the record."""
    record = SecretRecord.from_response("kv/app", {"key": "value"}, lease_duration=10, lease_id="x")

    with pytest.raises(TypeError):
        record.values["key"] = "changed"

    assert record.get("key") == "value"
    assert SecretRecord(name="kv/app").as_dict() == {}


def test_record_name_required():
    """Test empty secret names are rejected."""
    with pytest.raises(ValueError, match="Secret name cannot be empty"):
        SecretRecord(name="  ")


def test_record_bytes_survive_storage():
    """Test a record read back from storage equals the original."""
    record = SecretRecord.from_response(
        "aws/creds/deploy",
        {"access_key": "AKIA", "secret_key": "shh", "security_token": None},
        lease_duration=900,
        lease_id="aws/creds/deploy/123"
    )

    restored = SecretRecord.from_bytes(record.to_bytes())

    assert restored == record
    assert restored.to_bytes() == record.to_bytes()


def test_as_dict_returns_copy():
    """Test callers cannot alter a record through as_dict."""
    record = SecretRecord.from_response("kv/app", {"key": "value"}, lease_duration=10, lease_id="x")

    data = record.as_dict()
    data["key"] = "changed"

    assert record.get("key") == "value"


def test_refresh_outcome_values():
    """Test outcome values used as metric labels."""
    assert RefreshOutcome.REFRESHED.value == "refreshed"
    assert RefreshOutcome.LOCKED.value == "locked"
    assert RefreshOutcome.RECOVERED.value == "recovered"
    assert RefreshOutcome.FAILED.value == "failed"


def test_models_use_current_pydantic_api():
    """Test building and serializing models emits no pydantic deprecation warnings."""
    with warnings.catch_warnings():
        warnings.simplefilter("error", PydanticDeprecatedSince20)
        record = SecretRecord.from_response("kv/app", {"key": "value"}, lease_duration=10, lease_id="x")
        SecretRecord.from_bytes(record.to_bytes())
        VaultConfig(url="https://vault.example.com:8200", token="s.token")
