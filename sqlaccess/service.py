"""Base class for data-access services."""

from typing import Callable, Optional

from sqlalchemy.orm import Session

from sqlaccess.context import ExecutionContext
from sqlaccess.db.connection import ConnectionRegistry
from sqlaccess.db.transaction import TransactionExecutor

Option = Callable[["Service"], None]


def with_session(session: Session) -> Option:
    """Bind an existing session so the service joins its transaction."""
    def apply(service: "Service") -> None:
        service.session = session
    return apply


class Service:
    """Shared plumbing for services built on a :class:`ConnectionRegistry`.

    Services that are composed inside a transaction receive the outer
    session via :func:`with_session`. ``master`` then returns that session,
    so writes join the caller's transaction instead of opening a new
    connection. Reads from ``slave`` always get a fresh session.

    Example::

        class OrderService(Service):
            def create(self, ctx, order):
                session = self.master(ctx)
                session.add(order)

        def insert_order(ctx, session):
            OrderService(registry, with_session(session)).create(ctx, order)
    """

    def __init__(self, registry: ConnectionRegistry, *options: Option) -> None:
        self.registry = registry
        self.session: Optional[Session] = None
        self.with_options(*options)

    def with_options(self, *options: Option) -> "Service":
        for option in options:
            option(self)
        return self

    def clean(self) -> None:
        """Forget the bound session. The service never closes it."""
        self.session = None

    @property
    def owns_session(self) -> bool:
        """True when sessions returned by ``master`` must be closed by the caller."""
        return self.session is None

    def master(self, ctx: Optional[ExecutionContext] = None) -> Session:
        return self.master_with(ctx, None)

    def master_with(self, ctx: Optional[ExecutionContext], name: Optional[str]) -> Session:
        if self.session is not None:
            return self.session
        return self.registry.master(ctx, name)

    def slave(self, ctx: Optional[ExecutionContext] = None) -> Session:
        return self.slave_with(ctx, None)

    def slave_with(self, ctx: Optional[ExecutionContext], name: Optional[str]) -> Session:
        return self.registry.slave(ctx, name)

    def transaction(self) -> TransactionExecutor:
        """Acquire a transaction executor, bound to the service session if any."""
        executor = self.registry.transaction()
        if self.session is not None:
            executor.with_session(self.session)
        return executor
