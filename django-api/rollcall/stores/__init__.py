from rollcall.stores.interfaces import CapacityStore, CredentialStore, EventStore, RegistrationStore
from rollcall.stores.memory_store import InMemoryStore

__all__ = [
    "CapacityStore",
    "CredentialStore",
    "EventStore",
    "RegistrationStore",
    "InMemoryStore",
]
