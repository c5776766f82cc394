"""In-process key/value storage shared by the orchestrator and the enhancement cache."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Generic, Iterator, Optional, Protocol, Tuple, TypeVar

V = TypeVar("V")

LOGGER = logging.getLogger(__name__)

Clock = Callable[[], float]


class KeyValueStore(Protocol[V]):
    """Minimal store contract; swap in a shared backend for multi-process deployments."""

    def get(self, key: str) -> Optional[V]: ...

    def set(self, key: str, value: V) -> None: ...

    def delete(self, key: str) -> bool: ...

    def sweep(self, max_age: float) -> int: ...

    def clear(self) -> None: ...

    def __len__(self) -> int: ...


@dataclass(slots=True)
class _Slot(Generic[V]):
    value: V
    stored_at: float


class InMemoryStore(Generic[V]):
    """Thread-safe dictionary store that remembers when each key was written."""

    def __init__(self, *, clock: Clock = time.time, name: str = "store") -> None:
        self._clock = clock
        self._name = name
        self._slots: Dict[str, _Slot[V]] = {}
        self._lock = threading.RLock()

    def get(self, key: str) -> Optional[V]:
        with self._lock:
            slot = self._slots.get(key)
            return slot.value if slot is not None else None

    def set(self, key: str, value: V) -> None:
        with self._lock:
            self._slots[key] = _Slot(value=value, stored_at=self._clock())

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._slots.pop(key, None) is not None

    def sweep(self, max_age: float) -> int:
        """Drop entries written more than ``max_age`` seconds ago and return the count."""
        now = self._clock()
        with self._lock:
            expired = [key for key, slot in self._slots.items() if now - slot.stored_at > max_age]
            for key in expired:
                del self._slots[key]
        if expired:
            LOGGER.debug("Swept %d expired entries from %s", len(expired), self._name)
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._slots.clear()

    def items(self) -> Iterator[Tuple[str, V]]:
        """Iterate over a point-in-time copy of the stored entries."""
        with self._lock:
            snapshot = [(key, slot.value) for key, slot in self._slots.items()]
        return iter(snapshot)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._slots

    def __len__(self) -> int:
        with self._lock:
            return len(self._slots)


__all__ = ["Clock", "InMemoryStore", "KeyValueStore"]
