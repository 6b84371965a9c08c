"""
HashiCorp Vault client for ledger secrets.

AppRole authentication, KV v2 secrets under the 'ledger/' prefix only.
Connection URLs are required and fail fast. Compliance overrides are
optional: a missing 'ledger/compliance' secret means built-in defaults.
"""

import os
import logging
from typing import Any, Dict

import hvac
from hvac.exceptions import InvalidPath, Unauthorized, Forbidden

logger = logging.getLogger(__name__)

_SECRET_PREFIX = "ledger"

# Process-wide client and secret cache; tests reset both
_vault_client_instance: "VaultClient | None" = None
_secret_cache: Dict[str, str] = {}


def _ensure_vault_client() -> "VaultClient":
    global _vault_client_instance
    if _vault_client_instance is None:
        _vault_client_instance = VaultClient()
    return _vault_client_instance


class VaultClient:
    """AppRole-authenticated reader for the ledger's KV v2 secrets."""

    def __init__(self, vault_addr: str | None = None, vault_namespace: str | None = None):
        self.vault_addr = vault_addr or os.getenv("VAULT_ADDR")
        self.vault_namespace = vault_namespace or os.getenv("VAULT_NAMESPACE")
        role_id = os.getenv("VAULT_ROLE_ID")
        secret_id = os.getenv("VAULT_SECRET_ID")

        if not self.vault_addr:
            raise ValueError("VAULT_ADDR environment variable is required")
        if not role_id or not secret_id:
            raise ValueError(
                "VAULT_ROLE_ID and VAULT_SECRET_ID environment variables are required"
            )

        options = {"url": self.vault_addr}
        if self.vault_namespace:
            options["namespace"] = self.vault_namespace
        self.client = hvac.Client(**options)

        try:
            login = self.client.auth.approle.login(role_id=role_id, secret_id=secret_id)
        except Exception as e:
            logger.error("AppRole authentication failed: %s", e)
            raise PermissionError(f"AppRole authentication failed: {e}")
        self.client.token = login["auth"]["client_token"]

        if not self.client.is_authenticated():
            raise PermissionError("Vault authentication failed")

        logger.info("Vault client ready for %s/ at %s", _SECRET_PREFIX, self.vault_addr)

    def read_secret(self, path: str, missing_ok: bool = False) -> Dict[str, Any] | None:
        """
        All fields of the secret at ledger/<path>.

        Returns None for a missing path when missing_ok, otherwise raises
        PermissionError. Denied access always raises PermissionError.
        """
        full_path = f"{_SECRET_PREFIX}/{path}"
        try:
            response = self.client.secrets.kv.v2.read_secret_version(
                path=full_path, raise_on_deleted_version=True
            )
        except InvalidPath:
            if missing_ok:
                return None
            logger.error("Secret path not found: %s", full_path)
            raise PermissionError(f"Secret path '{full_path}' not found in Vault")
        except (Unauthorized, Forbidden) as e:
            logger.error("Access denied to secret %s: %s", full_path, e)
            raise PermissionError(f"Access denied to secret '{full_path}': {e}")

        return response["data"]["data"]

    def get_secret(self, path: str, field: str) -> str:
        """One field of ledger/<path>. KeyError names the fields that do exist."""
        secret = self.read_secret(path)
        if field not in secret:
            raise KeyError(
                f"Field '{field}' not found in secret '{_SECRET_PREFIX}/{path}'. "
                f"Available: {', '.join(secret)}"
            )
        return secret[field]


def _cached_secret(path: str, field: str) -> str:
    cache_key = f"{_SECRET_PREFIX}/{path}/{field}"
    if cache_key not in _secret_cache:
        _secret_cache[cache_key] = _ensure_vault_client().get_secret(path, field)
    return _secret_cache[cache_key]


def get_database_url() -> str:
    """PostgreSQL URL for the ledger database."""
    return _cached_secret("database", "url")


def get_valkey_url() -> str:
    """Valkey URL backing the verification rate limiter."""
    return _cached_secret("valkey", "url")


def get_compliance_overrides() -> Dict[str, Any]:
    """
    Operator overrides for ComplianceConfig fields, e.g. void_reason_min_length.

    Empty when no ledger/compliance secret exists. Not cached: read once at
    startup.
    """
    overrides = _ensure_vault_client().read_secret("compliance", missing_ok=True)
    if overrides:
        logger.info("Compliance overrides from Vault: %s", ", ".join(sorted(overrides)))
    return overrides or {}
