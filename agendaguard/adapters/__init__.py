"""
Adapters layer - Storage, credentials and calendar provider integrations.
"""

from .credential_store import CredentialStore
from .google_calendar import GoogleCalendarClient
from .storage import JsonFileStore, MemoryStore, StateRepository
from .synthetic_calendar import SyntheticCalendarClient

__all__ = [
    "CredentialStore",
    "GoogleCalendarClient",
    "JsonFileStore",
    "MemoryStore",
    "StateRepository",
    "SyntheticCalendarClient",
]
