"""Connection groups, sessions and transactions."""

from sqlaccess.db.connection import ConnectionRegistry, build_default_group
from sqlaccess.db.engine_group import EngineGroup, RoutingStrategy, build_url
from sqlaccess.db.logger import StatementLogger
from sqlaccess.db.transaction import (
    TransactionExecutor,
    TransactionHandler,
    TransactionPool,
)

__all__ = [
    # Registry
    "ConnectionRegistry",
    "build_default_group",
    # Engine groups
    "EngineGroup",
    "RoutingStrategy",
    "build_url",
    "StatementLogger",
    # Transactions
    "TransactionExecutor",
    "TransactionHandler",
    "TransactionPool",
]
