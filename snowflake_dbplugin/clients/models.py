"""Configuration schema for the Snowflake connection producer."""

from enum import Enum
from typing import Any, Dict, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator, model_validator

from snowflake_dbplugin.common.utils import parse_duration_seconds
from snowflake_dbplugin.constants import DEFAULT_MAX_OPEN_CONNECTIONS
from snowflake_dbplugin.credentials.exceptions import ConfigurationError


class AuthMode(Enum):
    """How the producer authenticates its own connection.

    - PASSWORD: credentials are templated into (or already part of) the URL
    - KEY_PAIR: JWT authentication signed with the configured private key
    """

    PASSWORD = "password"
    KEY_PAIR = "key_pair"


class SnowflakeConnectionConfig(BaseModel):
    """Every option the plugin accepts at initialization.

    Attributes:
        connection_url: ``<account>.snowflakecomputing.com/<db>``, a
            gosnowflake DSN such as ``{{username}}:{{password}}@account/db``,
            or a ``snowflake://`` URL.
        username: Static username; templated into the URL in password mode and
            used as the JWT subject in key-pair mode.
        password: Static password; templated into the URL.
        private_key: PKCS8 PEM bytes or text, or a path to a PEM file. Takes
            precedence over ``password`` when both are set.
        username_template: Template for generated usernames; empty selects
            the default.
        max_open_connections: Pool ceiling; 0 selects the default (4).
        max_idle_connections: Idle pool size; 0 selects max_open_connections
            and larger values are clamped to it.
        max_connection_lifetime: Duration after which pooled connections are
            recycled; None or zero means unlimited.
        disable_escaping: Skip percent-escaping of username/password when they
            are templated into the URL.
    """

    model_config = ConfigDict(extra="forbid")

    connection_url: str
    username: str = ""
    password: str = ""
    private_key: Union[str, bytes] = ""
    username_template: str = ""
    max_open_connections: int = 0
    max_idle_connections: int = 0
    max_connection_lifetime: Optional[Union[int, float, str]] = None
    disable_escaping: bool = False

    @field_validator("connection_url")
    @classmethod
    def _connection_url_not_empty(cls, value: str) -> str:
        if not value:
            raise ValueError("connection_url cannot be empty")
        return value

    @field_validator("max_open_connections", "max_idle_connections")
    @classmethod
    def _pool_size_not_negative(cls, value: int) -> int:
        if value < 0:
            raise ValueError("must not be negative")
        return value

    @field_validator("max_connection_lifetime")
    @classmethod
    def _lifetime_parses(
        cls, value: Optional[Union[int, float, str]]
    ) -> Optional[Union[int, float, str]]:
        parse_duration_seconds(value)
        return value

    @model_validator(mode="after")
    def _apply_pool_defaults(self) -> "SnowflakeConnectionConfig":
        if self.max_open_connections == 0:
            self.max_open_connections = DEFAULT_MAX_OPEN_CONNECTIONS
        if self.max_idle_connections == 0:
            self.max_idle_connections = self.max_open_connections
        if self.max_idle_connections > self.max_open_connections:
            self.max_idle_connections = self.max_open_connections
        if self.max_connection_lifetime is None:
            self.max_connection_lifetime = "0s"
        return self

    @property
    def auth_mode(self) -> AuthMode:
        return AuthMode.KEY_PAIR if self.private_key else AuthMode.PASSWORD

    @property
    def max_connection_lifetime_seconds(self) -> float:
        return parse_duration_seconds(self.max_connection_lifetime)

    def secret_values(self) -> Dict[str, str]:
        """Map of configured secrets to the placeholders used in error messages."""
        private_key = self.private_key
        if isinstance(private_key, bytes):
            private_key = private_key.decode("utf-8", errors="replace")
        return {self.password: "[password]", private_key: "[private_key]"}

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "SnowflakeConnectionConfig":
        """
        Validate a raw configuration map.

        Raises:
            ConfigurationError: For unknown keys, a missing or empty
                connection_url, bad pool sizes or an unparsable
                max_connection_lifetime.
        """
        try:
            return cls.model_validate(dict(config))
        except ValidationError as e:
            errors = []
            message = None
            for error in e.errors():
                location = ".".join(str(part) for part in error["loc"])
                detail = error["msg"].removeprefix("Value error, ")
                if error["type"] == "extra_forbidden":
                    detail = "unknown configuration key"
                errors.append(f"{location}: {detail}")

                if message is not None:
                    continue
                if location == "connection_url" and (
                    error["type"] == "missing" or "cannot be empty" in detail
                ):
                    message = "connection_url cannot be empty"
                elif location.startswith("max_connection_lifetime"):
                    message = f"invalid max_connection_lifetime: {detail}"

            if message is None:
                message = f"invalid configuration: {'; '.join(errors)}"
            raise ConfigurationError(message, errors=errors) from e
