"""Tests for engine groups and data source translation."""

from datetime import timedelta

import pytest
from sqlalchemy import text

from sqlaccess.context import ExecutionContext
from sqlaccess.db import EngineGroup, RoutingStrategy, build_url
from sqlaccess.db.engine_group import _pool_options
from sqlaccess.exceptions import ConfigurationError, DatabaseError


class TestBuildUrl:

    def test_mysql_tcp(self) -> None:
        url = build_url("mysql", "app:pw@tcp(db.local:3307)/orders?charset=utf8")
        assert url.drivername == "mysql+pymysql"
        assert url.username == "app"
        assert url.password == "pw"
        assert url.host == "db.local"
        assert url.port == 3307
        assert url.database == "orders"
        assert url.query == {"charset": "utf8"}

    def test_postgres_alias(self) -> None:
        url = build_url("postgres", "app:pw@tcp(pg:5432)/billing")
        assert url.drivername == "postgresql+psycopg2"
        assert url.port == 5432

    def test_host_without_port(self) -> None:
        url = build_url("mysql", "app:pw@tcp(db.local)/orders")
        assert url.host == "db.local"
        assert url.port is None

    def test_url_passthrough(self) -> None:
        url = build_url("mysql", "postgresql+psycopg2://u:p@h/d")
        assert url.drivername == "postgresql+psycopg2"

    def test_sqlite_path(self) -> None:
        url = build_url("sqlite", "./app.db")
        assert url.drivername == "sqlite"
        assert url.database == "./app.db"

    def test_sqlite_memory(self) -> None:
        url = build_url("sqlite", ":memory:")
        assert url.database is None

    @pytest.mark.parametrize("dsn", ["", "   ", "not a dsn", "postgresql://u:p@h:notaport/d"])
    def test_invalid(self, dsn) -> None:
        with pytest.raises(ConfigurationError):
            build_url("mysql", dsn)


class TestPoolOptions:

    def test_bounds_mapped(self, make_sqlite_config, tmp_path) -> None:
        config = make_sqlite_config(tmp_path / "x.db", max_idle=3, max_open=10, max_lifetime=120)
        url = build_url("sqlite", str(tmp_path / "x.db"))
        assert _pool_options(url, config) == {
            'pool_size': 3,
            'max_overflow': 7,
            'pool_recycle': 120,
        }

    def test_open_below_idle(self, make_sqlite_config, tmp_path) -> None:
        config = make_sqlite_config(tmp_path / "x.db", max_idle=8, max_open=4)
        url = build_url("sqlite", str(tmp_path / "x.db"))
        options = _pool_options(url, config)
        assert options['pool_size'] == 4
        assert options['max_overflow'] == 0

    def test_capacity_never_exceeds_open_limit(self, make_sqlite_config, tmp_path) -> None:
        group = EngineGroup.from_config(make_sqlite_config(tmp_path / "cap.db", max_idle=10, max_open=5))
        try:
            pool = group.master().pool
            assert pool.size() + pool._max_overflow == 5
        finally:
            group.dispose()

    def test_memory_sqlite_skipped(self, make_sqlite_config) -> None:
        config = make_sqlite_config(":memory:")
        assert _pool_options(build_url("sqlite", ":memory:"), config) == {}


class TestFromConfig:

    def test_requires_dsn(self, make_sqlite_config) -> None:
        config = make_sqlite_config("x.db")
        config.dsn = []
        with pytest.raises(ConfigurationError):
            EngineGroup.from_config(config)

    def test_unknown_dialect(self) -> None:
        from sqlaccess.config import ConnectionConfig

        config = ConnectionConfig(driver="nosuchdb", dsn=["u:p@tcp(h:1)/d"])
        with pytest.raises(DatabaseError) as exc_info:
            EngineGroup.from_config(config)
        assert exc_info.value.driver == "nosuchdb"

    def test_settings_exposed(self, make_sqlite_config, tmp_path) -> None:
        from sqlaccess.naming import GonicMapper

        group = EngineGroup.from_config(
            make_sqlite_config(tmp_path / "m.db", mapper="gonic", show_sql=True, enable_session_id=True)
        )
        try:
            assert group.mapper == GonicMapper()
            assert group.show_sql is True
            assert group.session_tracing is True
            assert group.strategy == RoutingStrategy.ROUND_ROBIN
        finally:
            group.dispose()

    def test_master_and_slaves(self, make_sqlite_config, tmp_path) -> None:
        group = EngineGroup.from_config(make_sqlite_config(tmp_path / "g.db", slaves=2))
        try:
            assert len(group.slaves) == 2
            assert group.master() not in group.slaves
            assert group.master().pool.size() == 2
            assert group.config.lifetime == timedelta(seconds=60)
        finally:
            group.dispose()


class TestRouting:

    def test_round_robin(self, make_sqlite_config, tmp_path) -> None:
        group = EngineGroup.from_config(make_sqlite_config(tmp_path / "rr.db", slaves=3))
        try:
            picked = [group.slave() for _ in range(6)]
            slaves = group.slaves
            assert picked == slaves + slaves
        finally:
            group.dispose()

    def test_random(self, make_sqlite_config, tmp_path) -> None:
        group = EngineGroup.from_config(
            make_sqlite_config(tmp_path / "rnd.db", slaves=2), strategy=RoutingStrategy.RANDOM
        )
        try:
            for _ in range(10):
                assert group.slave() in group.slaves
        finally:
            group.dispose()

    def test_no_slaves_reads_from_master(self, fallback_group) -> None:
        assert fallback_group.slave() is fallback_group.master()


class TestSessions:

    def test_session_carries_context(self, make_sqlite_config, tmp_path) -> None:
        group = EngineGroup.from_config(make_sqlite_config(tmp_path / "s.db", enable_session_id=True))
        ctx = ExecutionContext(trace_id="t-1")
        session = group.master_session(ctx)
        try:
            assert session.info["context"] is ctx
            assert session.info["session_id"]
            assert session.get_bind() is group.master()
        finally:
            session.close()
            group.dispose()

    def test_session_id_only_when_enabled(self, fallback_group) -> None:
        session = fallback_group.master_session()
        try:
            assert "session_id" not in session.info
            assert isinstance(session.info["context"], ExecutionContext)
        finally:
            session.close()

    def test_slave_reads_master_writes(self, make_sqlite_config, tmp_path) -> None:
        group = EngineGroup.from_config(make_sqlite_config(tmp_path / "rw.db", slaves=1))
        try:
            with group.master_session() as session:
                session.execute(text("CREATE TABLE items (id INTEGER PRIMARY KEY, name TEXT)"))
                session.execute(text("INSERT INTO items (name) VALUES ('widget')"))
                session.commit()

            with group.slave_session() as session:
                assert session.get_bind() is group.slaves[0]
                names = session.execute(text("SELECT name FROM items")).scalars().all()
            assert names == ["widget"]
        finally:
            group.dispose()
