"""Tests for connection configuration normalization."""

from datetime import timedelta

from sqlaccess.config import (
    DEFAULT_DRIVER,
    DEFAULT_MAPPER,
    DEFAULT_MAX_IDLE,
    DEFAULT_MAX_LIFETIME,
    DEFAULT_MAX_OPEN,
    ConnectionConfig,
)
from sqlaccess.naming import GonicMapper, SameMapper, SnakeMapper


class TestConnectionConfigDefaults:

    def test_empty_record_gets_defaults(self) -> None:
        config = ConnectionConfig()
        assert config.driver == DEFAULT_DRIVER
        assert config.mapper == DEFAULT_MAPPER
        assert config.max_idle == DEFAULT_MAX_IDLE
        assert config.max_lifetime == DEFAULT_MAX_LIFETIME
        assert config.max_open == DEFAULT_MAX_OPEN
        assert config.lifetime == timedelta(seconds=DEFAULT_MAX_LIFETIME)
        assert isinstance(config.name_mapper, SnakeMapper)
        assert config.dsn == []
        assert config.show_sql is False
        assert config.enable_session_id is False

    def test_zero_values_are_treated_as_unset(self) -> None:
        config = ConnectionConfig(max_idle=0, max_open=0, max_lifetime=0)
        assert config.max_idle == DEFAULT_MAX_IDLE
        assert config.max_open == DEFAULT_MAX_OPEN
        assert config.max_lifetime == DEFAULT_MAX_LIFETIME

    def test_explicit_values_kept(self) -> None:
        config = ConnectionConfig(driver="sqlite", max_idle=5, max_open=10, max_lifetime=300)
        assert config.driver == "sqlite"
        assert config.max_idle == 5
        assert config.max_open == 10
        assert config.lifetime == timedelta(minutes=5)

    def test_normalize_is_idempotent(self) -> None:
        config = ConnectionConfig(
            mapper="GONIC",
            dsn=["app:secret@tcp(db1:3306)/orders?charset=utf8"],
        )
        before = (config.model_dump(), config.username, config.hostname, config.schema_name,
                  config.name_mapper, config.lifetime)
        config.normalize()
        after = (config.model_dump(), config.username, config.hostname, config.schema_name,
                 config.name_mapper, config.lifetime)
        assert before == after

    def test_unknown_fields_ignored(self) -> None:
        config = ConnectionConfig.model_validate({"driver": "sqlite", "colour": "blue"})
        assert not hasattr(config, "colour")


class TestMapperSelection:

    def test_selector_is_lower_cased(self) -> None:
        config = ConnectionConfig(mapper="Gonic")
        assert config.mapper == "gonic"
        assert isinstance(config.name_mapper, GonicMapper)

    def test_unknown_selector_uses_identity(self) -> None:
        config = ConnectionConfig(mapper="camel")
        assert isinstance(config.name_mapper, SameMapper)


class TestDataSourceParsing:

    def test_tcp_form(self) -> None:
        config = ConnectionConfig(dsn=[
            "app:p@ss:word@tcp(db-master.local:3306)/orders?charset=utf8",
            "reader:pw@tcp(db-replica.local:3306)/orders",
        ])
        assert config.username == "app"
        assert config.hostname == "db-master.local:3306"
        assert config.schema_name == "orders"

    def test_single_string_accepted(self) -> None:
        config = ConnectionConfig(dsn="app:pw@tcp(127.0.0.1:3306)/shop")
        assert config.dsn == ["app:pw@tcp(127.0.0.1:3306)/shop"]
        assert config.schema_name == "shop"

    def test_url_form(self) -> None:
        config = ConnectionConfig(dsn=["postgresql://app:pw@pg.local:5432/billing"])
        assert config.username == "app"
        assert config.hostname == "pg.local:5432"
        assert config.schema_name == "billing"

    def test_unparseable_leaves_fields_empty(self) -> None:
        config = ConnectionConfig(driver="sqlite", dsn=["./local.db"])
        assert config.username == ""
        assert config.hostname == ""
        assert config.schema_name == ""

    def test_masked_hides_passwords(self) -> None:
        config = ConnectionConfig(dsn=[
            "app:secret@tcp(db:3306)/orders",
            "postgresql://app:secret@pg/billing",
            "./local.db",
        ])
        masked = config.masked()
        assert all("secret" not in entry for entry in masked)
        assert masked[0] == "app:***@tcp(db:3306)/orders"
        assert masked[2] == "./local.db"
