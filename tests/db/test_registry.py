import threading

import pytest
from tx_scope.db.registry import TransactionRegistry


@pytest.fixture
def registry():
    return TransactionRegistry()


def test_register_get_remove(registry):
    handle = object()

    registry.register("t1", handle)

    assert "t1" in registry
    assert len(registry) == 1
    assert registry.get("t1") is handle
    assert registry.remove("t1") is handle
    assert "t1" not in registry
    assert len(registry) == 0


def test_get_missing_returns_none(registry):
    assert registry.get("ghost") is None


def test_register_duplicate_id_raises(registry):
    """Test that at most one live entry can exist per id."""
    registry.register("t1", object())

    with pytest.raises(ValueError, match="already registered"):
        registry.register("t1", object())


def test_register_none_handle_raises(registry):
    with pytest.raises(ValueError):
        registry.register("t1", None)
    assert len(registry) == 0


def test_remove_missing_raises(registry):
    with pytest.raises(KeyError):
        registry.remove("ghost")


def test_id_can_be_reused_after_removal(registry):
    registry.register("t1", object())
    registry.remove("t1")

    registry.register("t1", object())

    assert registry.ids() == ["t1"]


def test_ids_and_clear(registry):
    registry.register("t1", object())
    registry.register("t2", object())

    assert sorted(registry.ids()) == ["t1", "t2"]

    registry.clear()

    assert registry.ids() == []


def test_concurrent_threads_keep_registry_consistent(registry):
    """Test that register/remove from many threads leaves no residue."""

    def worker(n: int):
        for i in range(200):
            tx_id = f"{n}-{i}"
            registry.register(tx_id, object())
            assert registry.get(tx_id) is not None
            registry.remove(tx_id)

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(registry) == 0


def test_discard_removes_present_entry(registry):
    handle = object()
    registry.register("t1", handle)

    assert registry.discard("t1") is handle
    assert "t1" not in registry


def test_discard_missing_entry_is_noop(registry):
    registry.register("t2", object())

    assert registry.discard("ghost") is None
    assert registry.ids() == ["t2"]
