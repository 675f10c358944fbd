import logging
from dataclasses import dataclass
from typing import Any, Optional

from pydantic import BaseModel, Field, create_model

from tx_scope.core.context import get_validated_context
from tx_scope.db.registry import TransactionRegistry
from tx_scope.exceptions import DanglingTransactionReference

logger = logging.getLogger(__name__)

# Context key under which the active transaction id travels.
TRANSACTION_ID_KEY = "transaction_id"


class TransactionScope(BaseModel):
    """The part of the execution context the resolver reads."""

    transaction_id: Optional[str] = None


@dataclass(frozen=True)
class ResolvedHandle:
    """The handle to use for the current call.

    Attributes:
        handle: The base handle, or the handle of the active transaction.
        transacting: True if `handle` belongs to an open transaction.
        base_handle: The base handle, kept for identity comparisons.
        transaction_id: The id of the active transaction, if any.
    """

    handle: Any
    transacting: bool
    base_handle: Any
    transaction_id: Optional[str] = None


class DispatchResolver:
    """Selects, per call, between the base handle and the active transaction handle."""

    def __init__(self, base_handle: Any, registry: TransactionRegistry, context_key: str = TRANSACTION_ID_KEY) -> None:
        self.base_handle = base_handle
        self.registry = registry
        self.context_key = context_key
        self.shape = TransactionScope if context_key == TRANSACTION_ID_KEY else _scope_for_key(context_key)

    def resolve(self) -> ResolvedHandle:
        """Resolves the handle for the current execution context.

        Raises:
            ContextShapeMismatch: If the context holds a malformed transaction id.
            DanglingTransactionReference: If the context names a transaction that is not registered.
        """
        scope = get_validated_context(self.shape)
        if scope.transaction_id is None:
            return ResolvedHandle(handle=self.base_handle, transacting=False, base_handle=self.base_handle)

        handle = self.registry.get(scope.transaction_id)
        if handle is None:
            logger.error(f"Context references unknown transaction '{scope.transaction_id}'")
            raise DanglingTransactionReference(scope.transaction_id)

        return ResolvedHandle(
            handle=handle,
            transacting=True,
            base_handle=self.base_handle,
            transaction_id=scope.transaction_id,
        )


def _scope_for_key(context_key: str) -> type[TransactionScope]:
    """Builds a TransactionScope that reads the transaction id from `context_key`."""
    return create_model(
        "TransactionScope",
        __base__=TransactionScope,
        transaction_id=(Optional[str], Field(default=None, alias=context_key)),
    )
