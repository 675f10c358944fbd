import itertools
from typing import Any, Awaitable, Callable, List, Optional

import pytest
from tx_scope.db.registry import TransactionRegistry
from tx_scope.transactional import TransactionManager


class FakeTransactionHandle:
    """Stands in for an engine connection; identity is all the tests care about."""

    def __init__(self, number: int) -> None:
        self.number = number

    def __repr__(self) -> str:
        return f"FakeTransactionHandle({self.number})"


class RecordingEngine:
    """In-memory engine honouring the open_transaction contract and recording what happened."""

    def __init__(self, commit_error: Optional[Exception] = None) -> None:
        self.base_handle = object()
        self.opened: List[FakeTransactionHandle] = []
        self.committed: List[FakeTransactionHandle] = []
        self.rolled_back: List[FakeTransactionHandle] = []
        self.commit_error = commit_error
        self.disposed = False

    async def open_transaction(self, body: Callable[[Any], Awaitable[Any]]) -> Any:
        handle = FakeTransactionHandle(len(self.opened) + 1)
        self.opened.append(handle)
        try:
            result = await body(handle)
        except Exception:
            self.rolled_back.append(handle)
            raise
        if self.commit_error is not None:
            self.rolled_back.append(handle)
            raise self.commit_error
        self.committed.append(handle)
        return result

    async def dispose(self) -> None:
        self.disposed = True


@pytest.fixture
def engine() -> RecordingEngine:
    return RecordingEngine()


@pytest.fixture
def registry() -> TransactionRegistry:
    return TransactionRegistry()


@pytest.fixture
def manager(engine: RecordingEngine, registry: TransactionRegistry) -> TransactionManager:
    """A manager whose transaction ids are t1, t2, ... in opening order."""
    ids = (f"t{i}" for i in itertools.count(1))
    return TransactionManager(engine, registry=registry, id_factory=lambda: next(ids))
