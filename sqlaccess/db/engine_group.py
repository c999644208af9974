"""Master/slave engine groups built on SQLAlchemy."""

import logging
import random
import re
import uuid
from enum import Enum
from threading import Lock
from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import parse_qsl

from sqlalchemy import create_engine
from sqlalchemy.engine import URL, Engine, make_url
from sqlalchemy.exc import ArgumentError
from sqlalchemy.orm import Session, sessionmaker

from sqlaccess.config.models import ConnectionConfig
from sqlaccess.context import ExecutionContext
from sqlaccess.db.logger import StatementLogger
from sqlaccess.exceptions import ConfigurationError, DatabaseError
from sqlaccess.naming import NameMapper

logger = logging.getLogger(__name__)

DRIVER_DIALECTS: Dict[str, str] = {
    "mysql": "mysql+pymysql",
    "postgres": "postgresql+psycopg2",
    "postgresql": "postgresql+psycopg2",
    "sqlite": "sqlite",
}

TCP_DSN_PATTERN = re.compile(
    r'^(?P<user>[^:@/]+)(?::(?P<password>.*))?@tcp\((?P<address>[^)]+)\)/'
    r'(?P<schema>[^?]*)(?:\?(?P<query>.*))?$'
)


class RoutingStrategy(str, Enum):
    """Strategies for picking a slave engine."""
    ROUND_ROBIN = "round_robin"
    RANDOM = "random"


def build_url(driver: str, dsn: str) -> URL:
    """Translate a configured data source into a SQLAlchemy URL.

    Args:
        driver: Configured driver name, e.g. ``mysql`` or ``sqlite``.
        dsn: Either a SQLAlchemy URL, a SQLite path, or a
            ``user:pass@tcp(host:port)/schema?opts`` data source.

    Returns:
        SQLAlchemy URL.

    Raises:
        ConfigurationError: If the data source cannot be translated.
    """
    dsn = dsn.strip()
    if not dsn:
        raise ConfigurationError("Empty data source name")

    if "://" in dsn:
        try:
            return make_url(dsn)
        except (ArgumentError, ValueError) as e:
            raise ConfigurationError(f"Invalid database URL: {e}") from e

    dialect = DRIVER_DIALECTS.get(driver.lower(), driver)

    if dialect.split("+", 1)[0] == "sqlite":
        if dsn == ":memory:":
            return URL.create(dialect)
        return URL.create(dialect, database=dsn)

    match = TCP_DSN_PATTERN.match(dsn)
    if not match:
        raise ConfigurationError(f"Unsupported data source format for driver '{driver}'")

    host, port = match.group("address"), None
    if ":" in host:
        host_part, port_part = host.rsplit(":", 1)
        if port_part.isdigit():
            host, port = host_part, int(port_part)

    return URL.create(
        dialect,
        username=match.group("user"),
        password=match.group("password"),
        host=host,
        port=port,
        database=match.group("schema") or None,
        query=dict(parse_qsl(match.group("query") or "")),
    )


def _pool_options(url: URL, config: ConnectionConfig) -> Dict[str, Any]:
    # In-memory SQLite runs on a singleton pool that takes no sizing.
    if url.get_backend_name() == "sqlite" and url.database in (None, "", ":memory:"):
        return {}
    # Idle connections count against the open limit.
    pool_size = min(config.max_idle, config.max_open)
    return {
        'pool_size': pool_size,
        'max_overflow': max(config.max_open - pool_size, 0),
        'pool_recycle': int(config.lifetime.total_seconds()),
    }


class EngineGroup:
    """One master engine plus zero or more slave engines.

    All engines share pool bounds, the naming convention and a statement
    logger bound to the owning :class:`ConnectionConfig`. Writes go to the
    master; reads may go to a slave picked by :class:`RoutingStrategy`, or to
    the master when no slave is configured.
    """

    def __init__(
        self,
        master: Engine,
        slaves: Sequence[Engine] = (),
        config: Optional[ConnectionConfig] = None,
        strategy: RoutingStrategy = RoutingStrategy.ROUND_ROBIN,
    ) -> None:
        """Initialize engine group.

        Args:
            master: Engine receiving writes and transactions.
            slaves: Read engines.
            config: Settings the group was built from.
            strategy: Slave routing strategy.
        """
        self.config = config or ConnectionConfig()
        self.strategy = RoutingStrategy(strategy)
        self.statement_logger = StatementLogger(self.config)

        self._lock = Lock()
        self._round_robin_counter = 0
        self._master = master
        self._slaves: List[Engine] = list(slaves)
        self._factories: Dict[int, sessionmaker] = {}

        for engine in [self._master, *self._slaves]:
            self.statement_logger.attach(engine)
            factory = sessionmaker(bind=engine, expire_on_commit=False)
            self.statement_logger.bind(factory)
            self._factories[id(engine)] = factory

    @classmethod
    def from_config(
        cls,
        config: ConnectionConfig,
        strategy: RoutingStrategy = RoutingStrategy.ROUND_ROBIN,
    ) -> "EngineGroup":
        """Build an engine group from a connection configuration.

        Args:
            config: Normalized connection configuration.
            strategy: Slave routing strategy.

        Returns:
            New EngineGroup.

        Raises:
            ConfigurationError: If no data source is configured or one is malformed.
            DatabaseError: If SQLAlchemy cannot create an engine (unknown dialect,
                missing driver module, ...).
        """
        if not config.dsn:
            raise ConfigurationError("At least one data source name is required")

        engines: List[Engine] = []
        try:
            for dsn in config.dsn:
                url = build_url(config.driver, dsn)
                engines.append(create_engine(url, **_pool_options(url, config)))
        except ConfigurationError:
            cls._dispose_all(engines)
            raise
        except Exception as e:
            cls._dispose_all(engines)
            raise DatabaseError(
                f"Failed to create database engine: {e}", driver=config.driver
            ) from e

        return cls(engines[0], engines[1:], config=config, strategy=strategy)

    @staticmethod
    def _dispose_all(engines: Sequence[Engine]) -> None:
        for engine in engines:
            engine.dispose()

    @property
    def mapper(self) -> NameMapper:
        return self.config.name_mapper

    @property
    def show_sql(self) -> bool:
        return self.config.show_sql

    @property
    def session_tracing(self) -> bool:
        return self.config.enable_session_id

    @property
    def slaves(self) -> List[Engine]:
        return list(self._slaves)

    def master(self) -> Engine:
        return self._master

    def slave(self) -> Engine:
        """Pick a read engine. Falls back to the master without slaves."""
        if not self._slaves:
            return self._master
        if self.strategy == RoutingStrategy.RANDOM:
            return random.choice(self._slaves)
        with self._lock:
            index = self._round_robin_counter % len(self._slaves)
            self._round_robin_counter += 1
        return self._slaves[index]

    def master_session(self, ctx: Optional[ExecutionContext] = None) -> Session:
        """Open a new session on the master engine."""
        return self._open_session(self._master, ctx)

    def slave_session(self, ctx: Optional[ExecutionContext] = None) -> Session:
        """Open a new session on a slave engine."""
        return self._open_session(self.slave(), ctx)

    def _open_session(self, engine: Engine, ctx: Optional[ExecutionContext]) -> Session:
        session = self._factories[id(engine)]()
        session.info["context"] = ctx or ExecutionContext.background()
        if self.session_tracing:
            session.info["session_id"] = uuid.uuid4().hex
        return session

    def dispose(self) -> None:
        """Dispose all engines and their pools."""
        self._dispose_all([self._master, *self._slaves])

    def __repr__(self) -> str:
        return (
            f"EngineGroup(master={self._master.url!r}, slaves={len(self._slaves)}, "
            f"strategy={self.strategy.value})"
        )
