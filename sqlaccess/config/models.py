"""Pydantic models for sqlaccess configuration."""

import re
from datetime import timedelta
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError

from sqlaccess.naming import NameMapper, SameMapper, get_mapper

DEFAULT_CONNECTION_NAME = "db"
DEFAULT_DRIVER = "mysql"
DEFAULT_DSN = "username:password@tcp(127.0.0.1:3306)/undefined?charset=utf8"
DEFAULT_MAPPER = "snake"
DEFAULT_MAX_IDLE = 2
DEFAULT_MAX_LIFETIME = 60
DEFAULT_MAX_OPEN = 50

# user:pass@tcp(host:port)/schema
DSN_PATTERN = re.compile(r'^([_a-zA-Z0-9-.]+):(\S+)@tcp\(([^)]+)\)/([_a-zA-Z0-9-.]+)')


class ConnectionConfig(BaseModel):
    """Connection settings for one logical connection name.

    Records are normalized on construction: unset fields get defaults, the
    mapper selector is lower-cased and derived values (naming strategy,
    lifetime duration, username/host/schema) are computed. Calling
    :meth:`normalize` again yields the same result.
    """

    model_config = ConfigDict(extra="ignore")

    driver: str = ""
    dsn: List[str] = Field(default_factory=list)
    enable_session_id: bool = False
    show_sql: bool = False
    mapper: str = ""
    max_idle: int = 0
    max_lifetime: int = 0
    max_open: int = 0

    _mapper: NameMapper = PrivateAttr(default_factory=SameMapper)
    _max_lifetime: timedelta = PrivateAttr(default_factory=timedelta)
    _username: str = PrivateAttr(default="")
    _hostname: str = PrivateAttr(default="")
    _schema: str = PrivateAttr(default="")

    @field_validator('dsn', mode='before')
    @classmethod
    def coerce_dsn(cls, v):
        """Accept a single string where a list is expected."""
        if v is None:
            return []
        if isinstance(v, str):
            return [v]
        return v

    def model_post_init(self, __context: Any) -> None:
        self.normalize()

    def normalize(self) -> "ConnectionConfig":
        """Fill defaults and compute derived values.

        Returns:
            The same record, for chaining.
        """
        if not self.driver:
            self.driver = DEFAULT_DRIVER
        if not self.mapper:
            self.mapper = DEFAULT_MAPPER
        self.mapper = self.mapper.lower()
        if not self.max_idle:
            self.max_idle = DEFAULT_MAX_IDLE
        if not self.max_lifetime:
            self.max_lifetime = DEFAULT_MAX_LIFETIME
        if not self.max_open:
            self.max_open = DEFAULT_MAX_OPEN

        self._max_lifetime = timedelta(seconds=self.max_lifetime)
        self._mapper = get_mapper(self.mapper)
        self._parse_data_source_name()
        return self

    def _parse_data_source_name(self) -> None:
        # Only the first entry is inspected; it is the master.
        for entry in self.dsn[:1]:
            entry = entry.strip()
            if not entry:
                continue
            match = DSN_PATTERN.match(entry)
            if match:
                self._username = match.group(1)
                self._hostname = match.group(3)
                self._schema = match.group(4)
            elif "://" in entry:
                try:
                    url = make_url(entry)
                except (ArgumentError, ValueError):
                    return
                self._username = url.username or ""
                self._hostname = url.host or ""
                if url.port:
                    self._hostname = f"{self._hostname}:{url.port}"
                self._schema = url.database or ""

    @property
    def name_mapper(self) -> NameMapper:
        """Resolved naming strategy."""
        return self._mapper

    @property
    def lifetime(self) -> timedelta:
        """Maximum connection lifetime as a duration."""
        return self._max_lifetime

    @property
    def username(self) -> str:
        return self._username

    @property
    def hostname(self) -> str:
        return self._hostname

    @property
    def schema_name(self) -> str:
        return self._schema

    def masked(self) -> List[str]:
        """Data sources with passwords replaced, for display."""
        masked = []
        for entry in self.dsn:
            match = DSN_PATTERN.match(entry.strip())
            if match:
                masked.append(entry.strip().replace(f":{match.group(2)}@", ":***@", 1))
            elif "://" in entry:
                try:
                    masked.append(make_url(entry).render_as_string(hide_password=True))
                except (ArgumentError, ValueError):
                    masked.append(entry)
            else:
                masked.append(entry)
        return masked


class EnvironmentSettings(BaseSettings):
    """Environment-specific settings."""

    model_config = SettingsConfigDict(env_prefix="SQLACCESS_", case_sensitive=False)

    log_level: str = Field(default="INFO")
    debug: bool = Field(default=False)
    config_file: Optional[str] = Field(default=None)
