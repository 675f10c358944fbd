import logging
import threading
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


class TransactionRegistry:
    """Maps transaction ids to the engine handles of currently open transactions.

    An entry lives exactly as long as the wrapped call that opened the transaction.
    Access is serialized with a lock so resolvers running in worker threads see a
    consistent view.
    """

    def __init__(self) -> None:
        self._handles: Dict[str, Any] = {}
        self._lock = threading.Lock()

    def register(self, transaction_id: str, handle: Any) -> None:
        """Registers the handle of a newly opened transaction.

        Raises:
            ValueError: If the handle is None or a live entry already exists for the id.
        """
        if handle is None:
            raise ValueError("Cannot register a None transaction handle")
        with self._lock:
            if transaction_id in self._handles:
                raise ValueError(f"Transaction id '{transaction_id}' is already registered")
            self._handles[transaction_id] = handle
        logger.debug(f"Registered transaction handle for '{transaction_id}'")

    def get(self, transaction_id: str) -> Optional[Any]:
        with self._lock:
            return self._handles.get(transaction_id)

    def remove(self, transaction_id: str) -> Any:
        """Removes and returns the handle registered for the id.

        Raises:
            KeyError: If no entry exists for the id.
        """
        with self._lock:
            handle = self._handles.pop(transaction_id)
        logger.debug(f"Removed transaction handle for '{transaction_id}'")
        return handle

    def discard(self, transaction_id: str) -> Optional[Any]:
        """Removes the entry for the id if present, returning its handle or None."""
        with self._lock:
            handle = self._handles.pop(transaction_id, None)
        if handle is None:
            logger.debug(f"No transaction handle left to remove for '{transaction_id}'")
        else:
            logger.debug(f"Removed transaction handle for '{transaction_id}'")
        return handle

    def ids(self) -> List[str]:
        with self._lock:
            return list(self._handles)

    def clear(self) -> None:
        with self._lock:
            self._handles.clear()

    def __contains__(self, transaction_id: object) -> bool:
        with self._lock:
            return transaction_id in self._handles

    def __len__(self) -> int:
        with self._lock:
            return len(self._handles)
