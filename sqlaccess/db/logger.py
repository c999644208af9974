"""Statement logging adapter wired into SQLAlchemy engine and session events."""

import logging
import time
from typing import Any, Dict, Optional

from sqlalchemy import event
from sqlalchemy.engine import Connection, Engine, ExceptionContext
from sqlalchemy.orm import Session, SessionTransaction, sessionmaker

from sqlaccess.config.models import ConnectionConfig

logger = logging.getLogger(__name__)

CONTEXT_KEY = "sqlaccess.context"
SESSION_ID_KEY = "sqlaccess.session_id"
_TIMINGS_KEY = "sqlaccess.timings"


class StatementLogger:
    """Per-statement diagnostic sink bound to one :class:`ConnectionConfig`.

    Successful statements are logged at INFO when ``show_sql`` is enabled.
    Failed statements are always logged at ERROR. Before each statement the
    execution context bound to the connection (if any) is checked, so a
    cancelled or expired context stops further statements.
    """

    def __init__(self, config: ConnectionConfig) -> None:
        self.config = config

    @property
    def show_sql(self) -> bool:
        return self.config.show_sql

    @property
    def session_tracing(self) -> bool:
        return self.config.enable_session_id

    def attach(self, engine: Engine) -> None:
        """Register engine and pool listeners."""
        event.listen(engine, "before_cursor_execute", self.before_execute)
        event.listen(engine, "after_cursor_execute", self.after_execute)
        event.listen(engine, "handle_error", self.on_error)
        event.listen(engine, "checkin", self.on_checkin)

    def bind(self, factory: sessionmaker) -> None:
        """Register the session listener that carries correlation data."""
        event.listen(factory, "after_begin", self.on_session_begin)

    def on_session_begin(
        self,
        session: Session,
        transaction: SessionTransaction,
        connection: Connection,
    ) -> None:
        info = connection.info
        ctx = session.info.get("context")
        if ctx is not None:
            info[CONTEXT_KEY] = ctx
        session_id = session.info.get("session_id")
        if session_id is not None:
            info[SESSION_ID_KEY] = session_id

    def on_checkin(self, dbapi_connection: Any, connection_record: Any) -> None:
        # Correlation data must not leak into the next checkout.
        if connection_record is None:
            return
        info = connection_record.info
        info.pop(CONTEXT_KEY, None)
        info.pop(SESSION_ID_KEY, None)
        info.pop(_TIMINGS_KEY, None)

    def before_execute(self, conn, cursor, statement, parameters, context, executemany):
        ctx = conn.info.get(CONTEXT_KEY)
        if ctx is not None:
            ctx.check()
        conn.info.setdefault(_TIMINGS_KEY, []).append(time.perf_counter())

    def after_execute(self, conn, cursor, statement, parameters, context, executemany):
        elapsed = self._elapsed(conn.info)
        if not self.show_sql:
            return

        message = (
            f"[SQL] {self._prefix(conn.info)}{self._compact(statement)}, "
            f"username={self.config.username}, schema={self.config.schema_name}, "
            f"duration={elapsed}ms"
        )
        if parameters:
            message += f", arguments={parameters}"
        logger.info(message)

    def on_error(self, exception_context: ExceptionContext) -> None:
        info: Dict[str, Any] = {}
        if exception_context.connection is not None:
            info = exception_context.connection.info
            self._elapsed(info)

        statement = exception_context.statement or ""
        logger.error(
            f"[SQL] {self._prefix(info)}{self._compact(statement)}, "
            f"username={self.config.username}, schema={self.config.schema_name}: "
            f"{exception_context.original_exception}"
        )

    @staticmethod
    def _elapsed(info: Dict[str, Any]) -> int:
        timings = info.get(_TIMINGS_KEY)
        if not timings:
            return 0
        return int((time.perf_counter() - timings.pop()) * 1000)

    def _prefix(self, info: Dict[str, Any]) -> str:
        parts = []
        ctx = info.get(CONTEXT_KEY)
        if ctx is not None:
            parts.append(f"trace={ctx.trace_id}")
        session_id: Optional[str] = info.get(SESSION_ID_KEY)
        if session_id and self.session_tracing:
            parts.append(f"session={session_id}")
        if not parts:
            return ""
        return "[" + " ".join(parts) + "] "

    @staticmethod
    def _compact(statement: str) -> str:
        return " ".join(statement.split())
