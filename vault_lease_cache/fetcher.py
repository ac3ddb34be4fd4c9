"""Read secrets from HashiCorp Vault."""

import asyncio
import logging
import time
from typing import Any, Callable, Dict, Optional

import hvac
import hvac.exceptions
import requests

from .config import VaultConfig
from .exceptions import AuthenticationError, RemoteError, TransportError
from .metrics import record_fetch
from .types import SecretRecord

logger = logging.getLogger(__name__)


class SecretFetcher:
    """Performs one authenticated Vault read per call.

    A new ``hvac.Client`` is built for every fetch so that URL and token
    filters registered on the config are honoured immediately.
    """

    def __init__(self, config: VaultConfig, client_factory: Optional[Callable[..., Any]] = None):
        self.config = config
        self._client_factory = client_factory or hvac.Client

    async def fetch(self, name: str) -> SecretRecord:
        """Fetch a secret from Vault, bypassing any cache."""
        # hvac is blocking; keep it off the event loop
        loop = asyncio.get_event_loop()
        start = time.monotonic()
        try:
            record = await loop.run_in_executor(None, self._fetch_sync, name)
        except AuthenticationError:
            record_fetch("auth_error", time.monotonic() - start)
            raise
        except TransportError:
            record_fetch("transport_error", time.monotonic() - start)
            raise
        except RemoteError:
            record_fetch("remote_error", time.monotonic() - start)
            raise

        record_fetch("success", time.monotonic() - start)
        logger.debug("Fetched secret %s (lease %s, %ss)", name, record.lease_id or "-", record.lease_duration)
        return record

    def _fetch_sync(self, name: str) -> SecretRecord:
        """Synchronous Vault read."""
        client = self._create_client()

        try:
            if not client.is_authenticated():
                raise AuthenticationError("Unable to authenticate with Vault", secret=name)
            response = client.read(name)
        except hvac.exceptions.Unauthorized as e:
            raise AuthenticationError(f"Vault rejected the token: {e}", secret=name) from e
        except hvac.exceptions.VaultDown as e:
            raise TransportError(f"Vault is sealed or down: {e}", secret=name) from e
        except hvac.exceptions.InvalidPath as e:
            raise RemoteError(f"Secret not found: {name}", secret=name, errors=e.errors) from e
        except hvac.exceptions.Forbidden as e:
            raise RemoteError(f"Permission denied for secret: {name}", secret=name, errors=e.errors) from e
        except hvac.exceptions.VaultError as e:
            raise RemoteError(f"Vault error reading {name}: {e}", secret=name, errors=e.errors) from e
        except requests.exceptions.RequestException as e:
            raise TransportError(f"Failed to reach Vault: {e}", secret=name) from e
        finally:
            self._close_client(client)

        if not response:
            raise RemoteError(f"Secret not found: {name}", secret=name)
        if not isinstance(response, dict):
            raise RemoteError(f"Unexpected Vault response for {name}: {type(response).__name__}", secret=name)

        return self._normalize(name, response)

    def _create_client(self):
        """Build a client from the filtered URL and token."""
        url = self.config.get_vault_url()
        token = self.config.get_auth_token()

        if not url:
            raise TransportError("Vault URL is not configured")
        if not token:
            raise AuthenticationError("Vault auth token is not configured")

        return self._client_factory(
            url=url,
            token=token,
            timeout=self.config.timeout,
            verify=self.config.verify
        )

    @staticmethod
    def _close_client(client) -> None:
        """Close the client's HTTP session if it has one."""
        adapter = getattr(client, "adapter", None)
        close = getattr(adapter, "close", None)
        if callable(close):
            close()

    @staticmethod
    def _normalize(name: str, response: Dict[str, Any]) -> SecretRecord:
        """Merge the secret payload with its lease fields."""
        data = response.get("data")
        if not isinstance(data, dict):
            data = {}

        return SecretRecord.from_response(
            name,
            data,
            lease_duration=response.get("lease_duration"),
            lease_id=response.get("lease_id")
        )
