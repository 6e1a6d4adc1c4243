"""
Snowflake connection producer.

The producer owns the plugin configuration and a lazily created, pooled
SQLAlchemy engine. Two authentication modes are supported: password (the
credentials are part of the connection URL) and key-pair (JWT signed with the
configured private key).

All state is guarded by ``lock``. Public coroutines (``load``, ``close``)
acquire it; ``connection``, ``execute`` and ``_close`` do not and must only be
called by code already holding it.
"""

import asyncio
import threading
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from sqlalchemy import create_engine
from sqlalchemy.engine import URL, Engine

from snowflake_dbplugin.clients import ClientInterface
from snowflake_dbplugin.clients.models import AuthMode, SnowflakeConnectionConfig
from snowflake_dbplugin.clients.utils import (
    build_key_pair_url,
    ensure_url_scheme,
    escape_url_value,
    substitute_url_placeholders,
)
from snowflake_dbplugin.common.logger_adaptors import get_logger
from snowflake_dbplugin.common.templates import TemplateError, UsernameTemplate
from snowflake_dbplugin.common.utils import redact_secrets, run_sync, with_timeout
from snowflake_dbplugin.config import get_settings
from snowflake_dbplugin.constants import (
    DEFAULT_USERNAME_TEMPLATE,
    SUPPORTED_CREDENTIAL_TYPES_KEY,
)
from snowflake_dbplugin.credentials.exceptions import (
    ConfigurationError,
    NotInitializedError,
    SnowflakeConnectionError,
)
from snowflake_dbplugin.credentials.private_key import (
    parse_private_key,
    private_key_to_der,
)
from snowflake_dbplugin.credentials.types import CredentialType

logger = get_logger(__name__)


class SnowflakeConnectionProducer(ClientInterface):
    """Connection producer for a Snowflake account.

    Attributes:
        config (SnowflakeConnectionConfig | None): Validated configuration.
        raw_config (Dict[str, Any]): Configuration map as received from the host.
        initialized (bool): Whether ``load`` has validated a configuration.
        auth_mode (AuthMode | None): Authentication mode resolved at load time.
        connection_url (str): Connection URL after credential templating.
        username_template (UsernameTemplate | None): Compiled username template.
        engine (Engine | None): Cached pooled engine, created on first use.
        sql_alchemy_connect_args (Dict[str, Any]): Extra driver connect args.
        lock (asyncio.Lock): Guards all of the above.
    """

    engine: Optional[Engine] = None

    def __init__(self, sql_alchemy_connect_args: Optional[Dict[str, Any]] = None):
        self.config: Optional[SnowflakeConnectionConfig] = None
        self.raw_config: Dict[str, Any] = {}
        self.initialized = False
        self.auth_mode: Optional[AuthMode] = None
        self.connection_url = ""
        self.username_template: Optional[UsernameTemplate] = None
        self.engine = None
        self.sql_alchemy_connect_args = dict(sql_alchemy_connect_args or {})
        self.lock = asyncio.Lock()

    async def load(
        self,
        config: Mapping[str, Any],
        verify_connection: bool = False,
        timeout: Optional[float] = None,
    ) -> Dict[str, Any]:
        """Validate the configuration and optionally verify connectivity.

        Args:
            config: Raw configuration map from the host.
            verify_connection: Open a pooled connection and run the liveness
                query before returning.
            timeout: Seconds allowed for the verification round trip.

        Returns:
            Dict[str, Any]: The effective configuration to persist.

        Raises:
            ConfigurationError: If the configuration is invalid.
            SnowflakeConnectionError: If verification fails. The producer stays
                initialized and the next call reconnects from scratch.
            OperationTimeoutError: If verification exceeds ``timeout``.
        """
        async with self.lock:
            return await self._load(config, verify_connection, timeout)

    async def _load(
        self,
        config: Mapping[str, Any],
        verify_connection: bool,
        timeout: Optional[float],
    ) -> Dict[str, Any]:
        parsed = SnowflakeConnectionConfig.from_config(config)

        try:
            username_template = UsernameTemplate(
                parsed.username_template or DEFAULT_USERNAME_TEMPLATE
            )
        except TemplateError as e:
            raise ConfigurationError(f"unable to initialize username template: {e}") from e

        connection_url = parsed.connection_url
        if parsed.password:
            username, password = parsed.username, parsed.password
            if not parsed.disable_escaping:
                username = escape_url_value(username)
                password = escape_url_value(password)
            connection_url = substitute_url_placeholders(
                connection_url, {"username": username, "password": password}
            )

        # Drop any engine built from a previous configuration
        self._close()

        self.raw_config = dict(config)
        self.config = parsed
        self.auth_mode = parsed.auth_mode
        self.connection_url = connection_url
        self.username_template = username_template
        self.initialized = True
        logger.info(
            f"Initialized Snowflake connection producer (auth mode: {self.auth_mode.value})"
        )

        if verify_connection:
            if timeout is None:
                timeout = get_settings().request_timeout_seconds
            try:
                await with_timeout(self._verify(), timeout, "connection verification")
            except (ConfigurationError, asyncio.CancelledError, TimeoutError):
                self._close()
                raise
            except Exception as e:
                self._close()
                message = redact_secrets(str(e), self.secret_values())
                logger.error(f"Error verifying connection: {message}")
                raise SnowflakeConnectionError(
                    f"error verifying connection: {message}"
                ) from e

        effective_config = dict(config)
        effective_config[SUPPORTED_CREDENTIAL_TYPES_KEY] = [
            CredentialType.PASSWORD.value,
            CredentialType.RSA_PRIVATE_KEY.value,
        ]
        return effective_config

    async def _verify(self) -> None:
        engine = self.connection()
        await run_sync(self._ping)(engine, get_settings().verify_query)

    @staticmethod
    def _ping(engine: Engine, query: str) -> None:
        with engine.connect() as connection:
            connection.exec_driver_sql(query)

    def connection(self) -> Engine:
        """Return the cached engine, creating it on first use.

        The caller must hold ``lock``.

        Raises:
            NotInitializedError: If ``load`` has not completed.
            InvalidURLError: If key-pair mode cannot parse the connection URL.
            PrivateKeyError: If key-pair mode cannot parse the private key.
            SnowflakeConnectionError: If the driver rejects the engine arguments.
        """
        if not self.initialized or self.config is None:
            raise NotInitializedError()

        if self.engine is not None:
            return self.engine

        connect_args = dict(self.sql_alchemy_connect_args)
        session_parameters = dict(connect_args.get("session_parameters") or {})
        # Allow one entry to carry several statements, split warehouse-side
        session_parameters.setdefault("MULTI_STATEMENT_COUNT", 0)
        connect_args["session_parameters"] = session_parameters

        url: Union[str, URL]
        if self.auth_mode == AuthMode.KEY_PAIR:
            url = build_key_pair_url(self.connection_url, self.config.username)
            private_key = parse_private_key(self.config.private_key)
            connect_args["private_key"] = private_key_to_der(private_key)
        else:
            url = ensure_url_scheme(self.connection_url)

        lifetime = self.config.max_connection_lifetime_seconds
        try:
            engine = create_engine(
                url,
                connect_args=connect_args,
                pool_size=self.config.max_idle_connections,
                max_overflow=self.config.max_open_connections
                - self.config.max_idle_connections,
                pool_recycle=int(lifetime) if lifetime > 0 else -1,
                pool_pre_ping=True,
            )
        except Exception as e:
            message = redact_secrets(str(e), self.secret_values())
            logger.error(f"Error opening Snowflake connection: {message}")
            raise SnowflakeConnectionError(
                f"error opening Snowflake connection: {message}"
            ) from e

        self.engine = engine
        return self.engine

    async def execute(
        self,
        statements: Sequence[str],
        timeout: Optional[float] = None,
        redactions: Optional[Mapping[str, str]] = None,
    ) -> None:
        """Execute rendered statements in order on one pooled connection.

        The caller must hold ``lock``. Execution is not transactional: when a
        statement fails, the ones before it stay applied. On timeout the
        statements not yet started are skipped, and this coroutine returns
        only once the in-flight statement has finished, so the lock keeps
        covering the checked-out connection.

        Args:
            statements: Rendered statements.
            timeout: Seconds allowed for execution.
            redactions: Request secrets to mask in logged statements, on top
                of the configured credentials.

        Raises:
            OperationTimeoutError: If execution exceeds ``timeout``.
            Exception: The driver error for the first failing statement.
        """
        engine = self.connection()
        if timeout is None:
            timeout = get_settings().request_timeout_seconds
        secrets = {**self.secret_values(), **(redactions or {})}
        stopped = threading.Event()
        worker = asyncio.ensure_future(
            run_sync(self._execute_statements)(
                engine, list(statements), secrets, stopped
            )
        )
        try:
            await with_timeout(asyncio.shield(worker), timeout, "statement execution")
        except (asyncio.CancelledError, TimeoutError):
            stopped.set()
            # Wait out the statement still running in the worker thread
            await asyncio.wait({worker})
            if not worker.cancelled() and worker.exception() is not None:
                logger.warning(
                    "Statement failed after execution was abandoned: "
                    f"{redact_secrets(str(worker.exception()), secrets)}"
                )
            raise

    def _execute_statements(
        self,
        engine: Engine,
        statements: List[str],
        secrets: Mapping[str, str],
        stopped: threading.Event,
    ) -> None:
        with engine.connect() as connection:
            for index, statement in enumerate(statements):
                if stopped.is_set():
                    logger.warning(
                        f"Skipping {len(statements) - index} statement(s) after timeout"
                    )
                    return
                logger.debug(
                    f"Executing statement {index + 1}/{len(statements)}: "
                    f"{redact_secrets(statement, secrets)}"
                )
                connection.exec_driver_sql(statement)
            connection.commit()

    def secret_values(self) -> Dict[str, str]:
        if self.config is None:
            return {}
        return self.config.secret_values()

    def _close(self) -> None:
        """Dispose of the cached engine without locking. Safe to call repeatedly."""
        engine, self.engine = self.engine, None
        if engine is not None:
            engine.dispose()

    async def close(self) -> None:
        """Dispose of the cached engine; the next use reconnects lazily."""
        async with self.lock:
            self._close()

