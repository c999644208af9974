"""Shared fixtures for sqlaccess tests."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Optional

import pytest

from sqlaccess.config import ConnectionConfig
from sqlaccess.db import ConnectionRegistry, EngineGroup


class FakeTransaction:
    """Records commit/rollback calls and can be told to fail."""

    def __init__(self, session: "FakeSession", nested: bool = False) -> None:
        self.session = session
        self.nested = nested
        self.commits = 0
        self.rollbacks = 0

    def commit(self) -> None:
        self.commits += 1
        self.session.calls.append("commit")
        if self.session.fail_commit:
            raise self.session.fail_commit

    def rollback(self) -> None:
        self.rollbacks += 1
        self.session.calls.append("rollback")
        if self.session.fail_rollback:
            raise self.session.fail_rollback


class FakeSession:
    """Stand-in for a SQLAlchemy session that counts lifecycle calls."""

    def __init__(
        self,
        in_transaction: bool = False,
        fail_begin: Optional[Exception] = None,
        fail_commit: Optional[Exception] = None,
        fail_rollback: Optional[Exception] = None,
        fail_close: Optional[Exception] = None,
    ) -> None:
        self._in_transaction = in_transaction
        self.fail_begin = fail_begin
        self.fail_commit = fail_commit
        self.fail_rollback = fail_rollback
        self.fail_close = fail_close
        self.transactions: List[FakeTransaction] = []
        self.calls: List[str] = []
        self.closes = 0
        self.info: Dict[str, object] = {}

    def in_transaction(self) -> bool:
        return self._in_transaction

    def _start(self, nested: bool) -> FakeTransaction:
        self.calls.append("begin_nested" if nested else "begin")
        if self.fail_begin:
            raise self.fail_begin
        transaction = FakeTransaction(self, nested=nested)
        self.transactions.append(transaction)
        return transaction

    def begin(self) -> FakeTransaction:
        return self._start(nested=False)

    def begin_nested(self) -> FakeTransaction:
        return self._start(nested=True)

    def close(self) -> None:
        self.closes += 1
        self.calls.append("close")
        if self.fail_close:
            raise self.fail_close

    @property
    def commits(self) -> int:
        return sum(t.commits for t in self.transactions)

    @property
    def rollbacks(self) -> int:
        return sum(t.rollbacks for t in self.transactions)


class FakeRegistry:
    """Hands out pre-built fake sessions from ``master``."""

    def __init__(self, *sessions: FakeSession) -> None:
        self.sessions = list(sessions)
        self.opened: List[FakeSession] = []

    def master(self, ctx=None, name=None) -> FakeSession:
        session = self.sessions.pop(0) if self.sessions else FakeSession()
        self.opened.append(session)
        return session


def sqlite_config(path: Path, slaves: int = 0, **kwargs) -> ConnectionConfig:
    """Connection config pointing master and slaves at the same SQLite file."""
    return ConnectionConfig(driver="sqlite", dsn=[str(path)] * (slaves + 1), **kwargs)


@pytest.fixture
def fake_session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def fallback_group(tmp_path: Path):
    """Fallback group on a scratch SQLite file instead of the MySQL default."""
    group = EngineGroup.from_config(sqlite_config(tmp_path / "fallback.db"))
    yield group
    group.dispose()


@pytest.fixture
def registry(tmp_path: Path, fallback_group: EngineGroup):
    """Registry with a default ``db`` group (one slave) and a ``reports`` group."""
    configs = {
        "db": sqlite_config(tmp_path / "app.db", slaves=1, show_sql=True, enable_session_id=True),
        "reports": sqlite_config(tmp_path / "reports.db"),
    }
    registry = ConnectionRegistry(configs, fallback=fallback_group)
    yield registry
    for name in configs:
        if registry.is_resolved(name):
            registry.resolve(name).dispose()


@pytest.fixture
def make_session():
    """Factory for fake sessions, e.g. ``make_session(fail_commit=err)``."""
    return FakeSession


@pytest.fixture
def make_registry():
    """Factory for fake registries handing out the given sessions."""
    return FakeRegistry


@pytest.fixture
def make_sqlite_config():
    return sqlite_config


@pytest.fixture(autouse=True)
def restore_root_logger():
    """CLI runs reconfigure the root logger; undo that after each test."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
