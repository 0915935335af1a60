"""Auth adapters."""

from osmora.adapters.auth.memory import InMemoryCredentialStore
from osmora.adapters.auth.postgres import PostgresCredentialStore

__all__ = ["PostgresCredentialStore", "InMemoryCredentialStore"]
