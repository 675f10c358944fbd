"""Implicit, context-propagated transaction scoping for async SQLAlchemy code."""

from tx_scope.core.context import (
    context_scope,
    get_context,
    get_validated_context,
    run_with_context,
    run_with_context_async,
)
from tx_scope.db.engine import ConnectionTransactionEngine, SessionTransactionEngine, TransactionEngine
from tx_scope.db.registry import TransactionRegistry
from tx_scope.db.resolver import TRANSACTION_ID_KEY, DispatchResolver, ResolvedHandle, TransactionScope
from tx_scope.exceptions import ContextShapeMismatch, DanglingTransactionReference, TxScopeException
from tx_scope.transactional import TransactionManager, WrapRegistration, is_transactional, wrapped_by

__all__ = [
    "context_scope",
    "get_context",
    "get_validated_context",
    "run_with_context",
    "run_with_context_async",
    "ConnectionTransactionEngine",
    "SessionTransactionEngine",
    "TransactionEngine",
    "TransactionRegistry",
    "TRANSACTION_ID_KEY",
    "DispatchResolver",
    "ResolvedHandle",
    "TransactionScope",
    "ContextShapeMismatch",
    "DanglingTransactionReference",
    "TxScopeException",
    "TransactionManager",
    "WrapRegistration",
    "is_transactional",
    "wrapped_by",
]
