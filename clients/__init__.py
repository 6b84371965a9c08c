# Infrastructure clients: ledger database, rate-limit store, secrets
from clients.postgres_client import PostgresClient, Transaction
from clients.valkey_client import ValkeyClient
from clients.vault_client import (
    VaultClient,
    get_compliance_overrides,
    get_database_url,
    get_valkey_url,
)
