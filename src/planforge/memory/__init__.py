"""Process-local storage backends."""

from .store import Clock, InMemoryStore, KeyValueStore

__all__ = ["Clock", "InMemoryStore", "KeyValueStore"]
