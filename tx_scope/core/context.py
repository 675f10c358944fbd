# Continuation-scoped execution context shared by a chain of calls.

import contextlib
import inspect
import logging
from contextvars import ContextVar
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Iterator, Mapping, Type, TypeVar

from pydantic import BaseModel, ValidationError

from tx_scope.exceptions import ContextShapeMismatch

logger = logging.getLogger(__name__)

T = TypeVar("T")
ShapeT = TypeVar("ShapeT", bound=BaseModel)

ExecutionContext = Mapping[str, Any]

_EMPTY_CONTEXT: ExecutionContext = MappingProxyType({})

# Each asyncio task copies the current contextvars.Context when it is created,
# so a value set here is seen by the setting task and tasks spawned from it only.
_execution_context: ContextVar[ExecutionContext] = ContextVar("tx_scope_execution_context", default=_EMPTY_CONTEXT)


def get_context() -> ExecutionContext:
    """Returns the context visible at the current point of execution.

    Returns an empty mapping if no context was ever established.
    """
    return _execution_context.get()


def get_validated_context(shape: Type[ShapeT]) -> ShapeT:
    """Validates the current context against a pydantic model.

    Args:
        shape: The pydantic model class describing the expected context keys.

    Returns:
        The validated model instance.

    Raises:
        ContextShapeMismatch: If the context does not match the shape.
    """
    try:
        return shape.model_validate(dict(get_context()))
    except ValidationError as e:
        raise ContextShapeMismatch(f"Context does not match {shape.__name__}: {e}", cause=e) from e


@contextlib.contextmanager
def context_scope(overrides: Mapping[str, Any]) -> Iterator[ExecutionContext]:
    """Establishes `current context + overrides` for the duration of the `with` block.

    Keys in `overrides` win on collision. The previous context is restored on exit,
    whether the block returns or raises.
    """
    merged = MappingProxyType({**get_context(), **overrides})
    token = _execution_context.set(merged)
    try:
        yield merged
    finally:
        _execution_context.reset(token)


def run_with_context(overrides: Mapping[str, Any], body: Callable[..., T], *args: Any, **kwargs: Any) -> T:
    """Calls `body` with the merged context visible to it and everything it calls.

    Raises:
        TypeError: If `body` is a coroutine function or returns an awaitable. The scope
            would end before it is awaited; use `run_with_context_async` instead.
    """
    if inspect.iscoroutinefunction(body):
        raise TypeError(f"run_with_context cannot await {body!r}; use run_with_context_async")
    with context_scope(overrides):
        result = body(*args, **kwargs)
    if inspect.isawaitable(result):
        if inspect.iscoroutine(result):
            result.close()
        raise TypeError(f"{body!r} returned an awaitable; use run_with_context_async")
    return result


async def run_with_context_async(
    overrides: Mapping[str, Any], body: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any
) -> T:
    """Awaits `body` with the merged context visible across all of its suspension points."""
    with context_scope(overrides):
        return await body(*args, **kwargs)
