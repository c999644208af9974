"""sqlaccess: named master/slave connection groups and a transaction harness.

sqlaccess provides:
- Lazily built, cached master/slave engine groups keyed by logical name
- Sessions routed to master or slave and bound to an execution context
- A pooled transaction executor with guaranteed commit/rollback and close
- YAML-based configuration
"""

__version__ = "0.1.0"
__license__ = "MIT"

# Core exports
from sqlaccess.exceptions import (
    SQLAccessError,
    ConfigurationError,
    DatabaseError,
    TransactionError,
    ContextCancelledError,
)
from sqlaccess.context import ExecutionContext
from sqlaccess.db import ConnectionRegistry, EngineGroup, TransactionExecutor
from sqlaccess.service import Service, with_session

__all__ = [
    "__version__",
    "SQLAccessError",
    "ConfigurationError",
    "DatabaseError",
    "TransactionError",
    "ContextCancelledError",
    "ExecutionContext",
    "ConnectionRegistry",
    "EngineGroup",
    "TransactionExecutor",
    "Service",
    "with_session",
]
