# Implicit transaction scoping for coroutine methods.

import functools
import inspect
import logging
import uuid
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Optional, Tuple, Type, TypeVar

from tx_scope.core.context import context_scope
from tx_scope.core.logging import log_transaction_event
from tx_scope.db.engine import TransactionEngine
from tx_scope.db.registry import TransactionRegistry
from tx_scope.db.resolver import TRANSACTION_ID_KEY, DispatchResolver, ResolvedHandle

logger = logging.getLogger(__name__)

T = TypeVar("T")
ClassT = TypeVar("ClassT", bound=type)

# Holds the owning TransactionManager on every wrapper function and on every class
# produced by transactional_class.
TRANSACTIONAL_MARKER = "__tx_scope_transactional__"


@dataclass(frozen=True)
class WrapRegistration:
    """Records that `owner.method_name` runs inside the transaction scope."""

    owner: str
    method_name: str


def wrapped_by(obj: Any) -> Optional["TransactionManager"]:
    """Returns the manager whose decorator produced `obj`, or None."""
    if isinstance(obj, (staticmethod, classmethod)):
        obj = obj.__func__
    if isinstance(obj, type):
        return obj.__dict__.get(TRANSACTIONAL_MARKER)
    return getattr(obj, TRANSACTIONAL_MARKER, None)


def is_transactional(obj: Any) -> bool:
    """Returns True if `obj` was produced by a transactional decorator of any manager."""
    return wrapped_by(obj) is not None


def _default_id_factory() -> str:
    return str(uuid.uuid4())


class TransactionManager:
    """Owns the transaction registry for one storage engine and wraps methods with the open-or-join procedure.

    A call to a wrapped method opens a new engine transaction unless the current
    execution context already carries a registered transaction, in which case the
    call joins it. The transaction handle is never passed through call signatures;
    code that needs the database calls `resolve()` and uses the returned handle.

    Example:
        manager = TransactionManager(ConnectionTransactionEngine(engine))

        @manager.transactional_class
        class AccountRepository:
            async def transfer(self, source, target, amount):
                await self.withdraw(source, amount)  # joins the transfer's transaction
                await self.deposit(target, amount)

            async def withdraw(self, account, amount):
                connection = manager.resolve().handle
                ...

    Managers that can be active in the same call chain (one per database) need
    distinct `context_key` values so each finds only its own transaction id.
    """

    def __init__(
        self,
        engine: TransactionEngine,
        registry: Optional[TransactionRegistry] = None,
        id_factory: Optional[Callable[[], str]] = None,
        context_key: str = TRANSACTION_ID_KEY,
    ) -> None:
        self.engine = engine
        self.registry = registry if registry is not None else TransactionRegistry()
        self.context_key = context_key
        self.resolver = DispatchResolver(engine.base_handle, self.registry, context_key=context_key)
        self._id_factory = id_factory or _default_id_factory
        self._registrations: List[WrapRegistration] = []

    @property
    def base_handle(self) -> Any:
        return self.engine.base_handle

    @property
    def registrations(self) -> Tuple[WrapRegistration, ...]:
        return tuple(self._registrations)

    def resolve(self) -> ResolvedHandle:
        """Returns the handle for the current call: the active transaction's, or the base handle."""
        return self.resolver.resolve()

    def in_transaction(self) -> bool:
        return self.resolve().transacting

    def current_transaction_id(self) -> Optional[str]:
        return self.resolve().transaction_id

    async def run_in_transaction(self, body: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        """Awaits `body` inside the current transaction, opening one if none is active."""
        resolved = self.resolve()
        if resolved.transacting:
            log_transaction_event(resolved.transaction_id, "join", {"method": _describe(body)})
            return await body(*args, **kwargs)
        return await self._open_and_run(body, args, kwargs)

    async def _open_and_run(self, body: Callable[..., Awaitable[T]], args: tuple, kwargs: dict) -> T:
        transaction_id = self._id_factory()

        async def run_body(handle: Any) -> T:
            self.registry.register(transaction_id, handle)
            log_transaction_event(transaction_id, "open", {"method": _describe(body)})
            outcome = "error"
            try:
                with context_scope({self.context_key: transaction_id}):
                    result = await body(*args, **kwargs)
                outcome = "success"
                return result
            finally:
                # dispose() may already have cleared the entry
                self.registry.discard(transaction_id)
                log_transaction_event(transaction_id, "close", {"outcome": outcome})

        return await self.engine.open_transaction(run_body)

    def transactional_method(self, func: Any) -> Any:
        """Decorator that runs a coroutine function in the current transaction, opening one if needed.

        Applying it to a function this manager already wrapped returns the function
        unchanged. A function wrapped by another manager is wrapped again, so each
        manager opens or joins its own transaction.

        Raises:
            TypeError: If `func` is not a coroutine function.
        """
        if isinstance(func, (staticmethod, classmethod)):
            return type(func)(self.transactional_method(func.__func__))
        if wrapped_by(func) is self:
            return func
        if not inspect.iscoroutinefunction(func):
            raise TypeError(f"transactional_method requires a coroutine function, got {func!r}")

        owner, _, _ = func.__qualname__.rpartition(".")
        self._register(owner or func.__module__, func.__name__)
        return self._wrap(func)

    def transactional_class(self, cls: ClassT) -> ClassT:
        """Class decorator that wraps every coroutine method defined on the class.

        Returns a subclass carrying the wrapped methods under the same name; the
        decorated class itself is left untouched. Dunder methods, non-coroutine
        attributes and methods this manager already wrapped are left as they are.

        Creating the subclass runs `cls.__init_subclass__` and metaclass hooks once
        more. Classes that register their subclasses (declarative ORM models,
        plugin registries) will see the wrapped subclass registered as well; wrap
        such classes with `transactional_method` on individual methods instead.
        """
        if wrapped_by(cls) is self:
            return cls

        namespace = {
            "__module__": cls.__module__,
            "__qualname__": cls.__qualname__,
            "__doc__": cls.__doc__,
            TRANSACTIONAL_MARKER: self,
        }
        wrapped_names: List[str] = []
        for name, attr in vars(cls).items():
            if name.startswith("__") and name.endswith("__"):
                continue
            descriptor_type: Optional[Type[Any]] = None
            func = attr
            if isinstance(attr, (staticmethod, classmethod)):
                descriptor_type = type(attr)
                func = attr.__func__
            if not inspect.iscoroutinefunction(func) or wrapped_by(func) is self:
                continue

            wrapped_names.append(name)
            self._register(cls.__qualname__, name)
            wrapped = self._wrap(func)
            namespace[name] = descriptor_type(wrapped) if descriptor_type else wrapped

        logger.debug(f"Wrapped {cls.__qualname__} methods as transactional: {wrapped_names}")
        return type(cls)(cls.__name__, (cls,), namespace)

    def _wrap(self, func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            return await self.run_in_transaction(func, *args, **kwargs)

        setattr(wrapper, TRANSACTIONAL_MARKER, self)
        return wrapper

    def _register(self, owner: str, method_name: str) -> None:
        registration = WrapRegistration(owner=owner, method_name=method_name)
        if registration not in self._registrations:
            self._registrations.append(registration)

    async def dispose(self) -> None:
        """Releases the engine. Any registry entry still present at this point is a leak and is logged."""
        leaked = self.registry.ids()
        if leaked:
            logger.warning(f"Disposing transaction manager with {len(leaked)} open transaction(s): {leaked}")
        self.registry.clear()
        await self.engine.dispose()


def _describe(func: Callable[..., Any]) -> str:
    return getattr(func, "__qualname__", repr(func))
