"""Transaction executor running an ordered chain of handlers atomically."""

import logging
import threading
from typing import TYPE_CHECKING, Any, Callable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from sqlaccess.context import ExecutionContext
from sqlaccess.exceptions import SQLAccessError, TransactionError

if TYPE_CHECKING:
    from sqlaccess.db.connection import ConnectionRegistry

logger = logging.getLogger(__name__)

# A handler signals failure by returning an exception or by raising one.
TransactionHandler = Callable[[ExecutionContext, Session], Optional[Exception]]

# Raised by the engine or by this package; treated as ordinary handler failures.
EXPECTED_ERRORS = (SQLAlchemyError, SQLAccessError)


class TransactionExecutor:
    """Runs queued handlers inside one begin/commit/rollback envelope.

    Instances come from a :class:`TransactionPool` and are good for one
    :meth:`run`. Whatever happens during the run, an opened transaction is
    committed or rolled back exactly once and a session created by the run
    is closed exactly once. Call :meth:`release` afterwards and stop using
    the instance.

    Example::

        tx = registry.transaction()
        try:
            error = tx.add(insert_order, update_inventory).run(ctx)
        finally:
            tx.release()
    """

    def __init__(
        self,
        registry: Optional["ConnectionRegistry"] = None,
        pool: Optional["TransactionPool"] = None,
    ) -> None:
        self._registry = registry
        self._pool = pool
        self.handlers: List[TransactionHandler] = []
        self.session: Optional[Session] = None
        self.session_created = False
        self.session_opened = False
        self._transaction: Any = None
        self._ran = False
        self._released = False

    def add(self, *handlers: TransactionHandler) -> "TransactionExecutor":
        """Append handlers. Order is kept and duplicates are allowed."""
        self._ensure_usable()
        self.handlers.extend(handlers)
        return self

    def with_session(self, session: Session) -> "TransactionExecutor":
        """Run on a caller-owned session instead of creating one.

        The executor never closes a session bound this way. If the session is
        already inside a transaction, the run opens a SAVEPOINT on it.
        """
        self._ensure_usable()
        self.session = session
        return self

    def run(self, ctx: Optional[ExecutionContext] = None) -> Optional[Exception]:
        """Execute the queued handlers as one unit of work.

        Args:
            ctx: Execution context passed to every handler. A background
                context is used when omitted.

        Returns:
            None on success, otherwise the first meaningful error: the begin
            failure, the failing handler's error, the recovered abort, or the
            commit failure.

        Raises:
            TransactionError: If the executor was already run or released, or
                has neither a registry nor a bound session.
        """
        self._ensure_usable()
        if self._ran:
            raise TransactionError("Transaction executor can only run once per acquire")
        if self.session is None and self._registry is None:
            raise TransactionError("No session bound and no registry to create one")
        self._ran = True

        ctx = ctx or ExecutionContext.background()
        error: Optional[Exception] = None
        interrupted = True
        try:
            error = self._process(ctx)
            interrupted = False
        except Exception as e:
            logger.critical(f"[TX] {_tag(ctx)}process fatal: {e!r}", exc_info=True)
            error = e
            interrupted = False
        finally:
            error = self._finalize(ctx, error, interrupted)
        return error

    def run_or_raise(self, ctx: Optional[ExecutionContext] = None) -> None:
        """Like :meth:`run`, but raise the resulting error instead of returning it."""
        error = self.run(ctx)
        if error is not None:
            raise error

    def release(self) -> None:
        """Reset the executor and hand it back to its pool."""
        if self._released:
            return
        if self._pool is not None:
            self._pool.release(self)
        else:
            self.clean()

    def _process(self, ctx: ExecutionContext) -> Optional[Exception]:
        if self.session is None:
            self.session = self._registry.master(ctx)
            self.session_created = True
            logger.debug(f"[TX] {_tag(ctx)}session created")

        try:
            self._transaction = self._begin(self.session)
        except Exception as e:
            logger.error(f"[TX] {_tag(ctx)}session begin: {e}")
            return e

        self.session_opened = True
        logger.debug(f"[TX] {_tag(ctx)}session opened")

        for handler in self.handlers:
            try:
                ctx.check()
                result = handler(ctx, self.session)
            except EXPECTED_ERRORS as e:
                logger.error(f"[TX] {_tag(ctx)}handler {_name(handler)} failed: {e}")
                return e
            if isinstance(result, Exception):
                logger.error(f"[TX] {_tag(ctx)}handler {_name(handler)} failed: {result}")
                return result
        return None

    @staticmethod
    def _begin(session: Session) -> Any:
        if session.in_transaction():
            return session.begin_nested()
        return session.begin()

    def _finalize(
        self,
        ctx: ExecutionContext,
        error: Optional[Exception],
        interrupted: bool,
    ) -> Optional[Exception]:
        if self.session_opened:
            if error is not None or interrupted:
                try:
                    self._transaction.rollback()
                except Exception as e:
                    logger.error(f"[TX] {_tag(ctx)}process rollback: {e}")
                else:
                    logger.debug(f"[TX] {_tag(ctx)}process rollback completed")
            else:
                try:
                    self._transaction.commit()
                except Exception as e:
                    logger.error(f"[TX] {_tag(ctx)}process commit: {e}")
                    error = e
                else:
                    logger.debug(f"[TX] {_tag(ctx)}process commit")

        if self.session_created:
            try:
                self.session.close()
            except Exception as e:
                logger.error(f"[TX] {_tag(ctx)}session close: {e}")
            else:
                logger.info(f"[TX] {_tag(ctx)}session closed")

        return error

    def _ensure_usable(self) -> None:
        if self._released:
            raise TransactionError("Transaction executor used after release")

    def acquire(self) -> "TransactionExecutor":
        """Put the executor in its initial state. Called by the pool."""
        self.handlers = []
        self.session = None
        self.session_created = False
        self.session_opened = False
        self._transaction = None
        self._ran = False
        self._released = False
        return self

    def clean(self) -> "TransactionExecutor":
        """Drop every reference held from the last run."""
        self.handlers = []
        self.session = None
        self.session_created = False
        self.session_opened = False
        self._transaction = None
        self._ran = False
        self._released = True
        return self


class TransactionPool:
    """Thread-safe free list of reusable transaction executors."""

    def __init__(self, registry: Optional["ConnectionRegistry"] = None, max_size: int = 64) -> None:
        """Initialize transaction pool.

        Args:
            registry: Registry handed to new executors for creating sessions.
            max_size: Maximum number of idle executors kept for reuse.
        """
        self._registry = registry
        self.max_size = max_size
        self._free: List[TransactionExecutor] = []
        self._lock = threading.Lock()

    def acquire(self) -> TransactionExecutor:
        """Take an idle executor, or create one if none is idle."""
        with self._lock:
            executor = self._free.pop() if self._free else None
        if executor is None:
            executor = TransactionExecutor(self._registry, pool=self)
        return executor.acquire()

    def release(self, executor: TransactionExecutor) -> None:
        """Reset an executor and keep it for reuse while there is room."""
        executor.clean()
        with self._lock:
            if any(idle is executor for idle in self._free):
                return
            if len(self._free) < self.max_size:
                self._free.append(executor)

    def __len__(self) -> int:
        with self._lock:
            return len(self._free)


def _tag(ctx: ExecutionContext) -> str:
    return f"[trace={ctx.trace_id}] "


def _name(handler: Any) -> str:
    return getattr(handler, "__qualname__", None) or getattr(handler, "__name__", None) or repr(handler)
