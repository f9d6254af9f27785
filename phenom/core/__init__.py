"""Core package exposing primary interfaces for the Phenomenal Tracker gateway."""

from .database import CredentialStore, InMemoryCredentialStore, LinkedCredential, SQLiteCredentialStore
from .errors import InvalidRequest, ProviderError, translate
from .plaid_client import PlaidClient

__all__ = [
    "CredentialStore",
    "InMemoryCredentialStore",
    "InvalidRequest",
    "LinkedCredential",
    "PlaidClient",
    "ProviderError",
    "SQLiteCredentialStore",
    "translate",
]
