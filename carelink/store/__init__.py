from carelink.config import StoreConfig
from carelink.store.base import ABSENT, DocumentSnapshot, DocumentStore
from carelink.store.memory import InMemoryDocumentStore


def build_store(config: StoreConfig) -> DocumentStore:
    """Create the configured store backend."""
    if config.backend == "firestore":
        from carelink.store.firestore import FirestoreDocumentStore

        return FirestoreDocumentStore(config)
    return InMemoryDocumentStore()


__all__ = [
    "ABSENT",
    "DocumentSnapshot",
    "DocumentStore",
    "InMemoryDocumentStore",
    "build_store",
]
