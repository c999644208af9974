"""Connection registry resolving logical names to engine groups."""

import logging
import threading
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional, Union

from sqlalchemy.orm import Session

from sqlaccess.config.models import DEFAULT_CONNECTION_NAME, DEFAULT_DSN, ConnectionConfig
from sqlaccess.config.parser import ConfigParser
from sqlaccess.context import ExecutionContext
from sqlaccess.db.engine_group import EngineGroup
from sqlaccess.db.transaction import TransactionExecutor, TransactionPool

logger = logging.getLogger(__name__)

GroupFactory = Callable[[ConnectionConfig], EngineGroup]


def build_default_group() -> EngineGroup:
    """Build the group used for names that are unknown or fail to construct."""
    return EngineGroup.from_config(ConnectionConfig(dsn=[DEFAULT_DSN]))


class ConnectionRegistry:
    """Resolves logical connection names to lazily built engine groups.

    A registry is created once at startup and handed to everything that needs
    database access. Each configured name is built on first use and cached
    for the life of the registry. Resolution never raises: unknown names and
    construction failures yield the shared default group, and failures are
    not cached so a later call can succeed.
    """

    def __init__(
        self,
        configs: Optional[Mapping[str, ConnectionConfig]] = None,
        group_factory: Optional[GroupFactory] = None,
        fallback: Optional[EngineGroup] = None,
    ) -> None:
        """Initialize connection registry.

        Args:
            configs: Mapping of connection name to normalized configuration.
            group_factory: Callable building an EngineGroup from a configuration.
            fallback: Group returned for unresolvable names. Built from the
                hardcoded defaults when omitted.
        """
        self.configs: Dict[str, ConnectionConfig] = dict(configs or {})
        self._factory = group_factory or EngineGroup.from_config
        self._groups: Dict[str, EngineGroup] = {}
        # Guards both lookup and insert so a name is built at most once.
        self._lock = threading.Lock()
        self._fallback = fallback if fallback is not None else build_default_group()
        self._transactions = TransactionPool(self)

    @classmethod
    def from_file(
        cls,
        config_path: Optional[Union[str, Path]] = None,
        **kwargs: Any,
    ) -> "ConnectionRegistry":
        """Create a registry from a YAML configuration file.

        Args:
            config_path: Path to configuration file. If None, default locations are searched.
            **kwargs: Passed through to the constructor.
        """
        configs = ConfigParser().load_config(config_path)
        return cls(configs, **kwargs)

    @property
    def fallback(self) -> EngineGroup:
        return self._fallback

    @property
    def transactions(self) -> TransactionPool:
        return self._transactions

    def resolve(self, name: Optional[str] = None) -> EngineGroup:
        """Return the engine group for a logical connection name.

        Args:
            name: Connection name. If None, uses the default name.

        Returns:
            The cached or newly built group, or the default group when the
            name is not configured or its group cannot be built.
        """
        if name is None:
            name = DEFAULT_CONNECTION_NAME

        with self._lock:
            group = self._groups.get(name)
            if group is not None:
                logger.debug(f"Reusing engine group: {name}")
                return group

            config = self.configs.get(name)
            if config is None:
                logger.warning(f"Engine group config not specified: {name}")
                return self._fallback

            try:
                group = self._factory(config)
            except Exception as e:
                logger.error(f"Engine group create error: name={name}, {e}")
                return self._fallback

            self._groups[name] = group
            logger.info(f"Created engine group: {name}, {group!r}")
            return group

    def master(self, ctx: Optional[ExecutionContext] = None, name: Optional[str] = None) -> Session:
        """Open a new session routed to the master of ``name``.

        The caller owns the session and must close it.
        """
        return self.resolve(name).master_session(ctx)

    def slave(self, ctx: Optional[ExecutionContext] = None, name: Optional[str] = None) -> Session:
        """Open a new session routed to a slave of ``name``.

        The caller owns the session and must close it.
        """
        return self.resolve(name).slave_session(ctx)

    def transaction(self) -> TransactionExecutor:
        """Acquire a reset transaction executor from the reuse pool."""
        return self._transactions.acquire()

    def is_resolved(self, name: str) -> bool:
        with self._lock:
            return name in self._groups

    def get_connection_status(self) -> Dict[str, Any]:
        """Get status of all configured connection names.

        Returns:
            Dictionary with connection status information.
        """
        with self._lock:
            resolved = set(self._groups)

        status = {
            'total_configured': len(self.configs),
            'total_resolved': len(resolved),
            'default_name': DEFAULT_CONNECTION_NAME,
            'connections': {},
        }

        for name, config in self.configs.items():
            status['connections'][name] = {
                'resolved': name in resolved,
                'driver': config.driver,
                'username': config.username,
                'host': config.hostname,
                'schema': config.schema_name,
                'slaves': max(len(config.dsn) - 1, 0),
            }

        return status

    def close_all_connections(self) -> None:
        """Dispose every resolved group and the fallback, and forget the cache.

        Names resolved afterwards are built again from their configuration.
        """
        with self._lock:
            groups = list(self._groups.values())
            self._groups.clear()

        for group in [*groups, self._fallback]:
            try:
                group.dispose()
            except Exception as e:
                logger.warning(f"Engine group dispose error: {e}")
