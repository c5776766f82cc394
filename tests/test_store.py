from __future__ import annotations

from planforge.memory import InMemoryStore


class FakeClock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


def test_basic_operations() -> None:
    store: InMemoryStore[int] = InMemoryStore()

    assert store.get("a") is None
    store.set("a", 1)
    store.set("b", 2)
    store.set("a", 3)

    assert store.get("a") == 3
    assert len(store) == 2
    assert "b" in store
    assert sorted(store.items()) == [("a", 3), ("b", 2)]
    assert store.delete("b") is True
    assert store.delete("b") is False

    store.clear()
    assert len(store) == 0


def test_sweep_uses_write_time() -> None:
    clock = FakeClock()
    store: InMemoryStore[str] = InMemoryStore(clock=clock)

    store.set("old", "x")
    clock.now += 10
    store.set("new", "y")
    clock.now += 5

    assert store.sweep(12) == 1
    assert store.get("old") is None
    assert store.get("new") == "y"

    # Rewriting refreshes the timestamp.
    store.set("new", "z")
    clock.now += 6
    assert store.sweep(10) == 0
