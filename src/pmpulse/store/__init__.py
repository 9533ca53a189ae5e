"""Key/value store implementations."""

from pmpulse.store.json_file import JsonFileStore
from pmpulse.store.memory import InMemoryStore
from pmpulse.store.scoped import ScopedStore

__all__ = ["InMemoryStore", "JsonFileStore", "ScopedStore"]
