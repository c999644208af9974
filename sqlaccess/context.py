"""Execution context carrying cancellation, deadline and log correlation."""

import threading
import time
import uuid
from typing import Optional

from sqlaccess.exceptions import ContextCancelledError


class ExecutionContext:
    """Cooperative cancellation handle passed to sessions and handlers.

    A context never interrupts a running call. Engine hooks and the
    transaction executor call :meth:`check` between steps, which raises
    :class:`ContextCancelledError` once the context is cancelled or its
    deadline has passed.
    """

    def __init__(
        self,
        trace_id: Optional[str] = None,
        deadline: Optional[float] = None,
        _cancel_event: Optional[threading.Event] = None,
    ) -> None:
        """Initialize execution context.

        Args:
            trace_id: Correlation id used in log lines. Generated when omitted.
            deadline: Absolute ``time.monotonic()`` value after which the
                context counts as expired.
        """
        self.trace_id = trace_id or uuid.uuid4().hex[:16]
        self.deadline = deadline
        self._cancel_event = _cancel_event or threading.Event()

    @classmethod
    def background(cls) -> "ExecutionContext":
        """Return a fresh context with no deadline."""
        return cls()

    def with_timeout(self, seconds: float) -> "ExecutionContext":
        """Derive a context that expires ``seconds`` from now.

        The derived context shares this context's cancel flag and keeps the
        earlier of the two deadlines.
        """
        deadline = time.monotonic() + seconds
        if self.deadline is not None:
            deadline = min(deadline, self.deadline)
        return ExecutionContext(self.trace_id, deadline, self._cancel_event)

    def child(self) -> "ExecutionContext":
        """Derive a context sharing trace id, deadline and cancel flag."""
        return ExecutionContext(self.trace_id, self.deadline, self._cancel_event)

    def cancel(self) -> None:
        self._cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    @property
    def expired(self) -> bool:
        return self.deadline is not None and time.monotonic() >= self.deadline

    @property
    def remaining(self) -> Optional[float]:
        """Seconds left until the deadline, or None without one."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def check(self) -> None:
        """Raise if the context can no longer be used.

        Raises:
            ContextCancelledError: If cancelled or past the deadline.
        """
        if self.cancelled:
            raise ContextCancelledError(
                f"context {self.trace_id} cancelled", trace_id=self.trace_id
            )
        if self.expired:
            raise ContextCancelledError(
                f"context {self.trace_id} deadline exceeded",
                trace_id=self.trace_id,
                expired=True,
            )

    def __repr__(self) -> str:
        return f"ExecutionContext(trace_id={self.trace_id!r}, deadline={self.deadline!r})"
