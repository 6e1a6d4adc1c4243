import uuid
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Mapping, Optional, Type

from snowflake_dbplugin.clients.sql import SnowflakeConnectionProducer
from snowflake_dbplugin.common.logger_adaptors import get_logger, request_context
from snowflake_dbplugin.common.templates import TemplateError
from snowflake_dbplugin.common.utils import redact_secrets
from snowflake_dbplugin.constants import (
    DEFAULT_DELETE_SQL,
    DEFAULT_RENEW_SQL,
    DEFAULT_ROTATE_PASSWORD_SQL,
    DEFAULT_ROTATE_PUBLIC_KEY_SQL,
    PLUGIN_TYPE,
)
from snowflake_dbplugin.credentials.exceptions import (
    CredentialCreationError,
    CredentialRevocationError,
    CredentialUpdateError,
    NotInitializedError,
    SnowflakePluginError,
)
from snowflake_dbplugin.credentials.private_key import normalize_public_key
from snowflake_dbplugin.credentials.statements import StatementTemplater
from snowflake_dbplugin.credentials.types import (
    CredentialType,
    DeleteUserRequest,
    NewUserRequest,
    NewUserResponse,
    UpdateUserRequest,
    UsernameMetadata,
)
from snowflake_dbplugin.handlers import HandlerInterface

logger = get_logger(__name__)


@contextmanager
def request_scope(operation: str, username: Optional[str] = None) -> Iterator[None]:
    """Bind the operation (and username, once known) to every log record."""
    ctx = {"request_id": str(uuid.uuid4()), "operation": operation}
    if username:
        ctx["username"] = username
    token = request_context.set(ctx)
    try:
        yield
    finally:
        request_context.reset(token)


class SnowflakeHandler(HandlerInterface):
    """
    Credential lifecycle handler for Snowflake users.

    Every operation renders its statement templates, then executes them in
    order on one pooled connection while holding the producer lock. Execution
    is not transactional: when a statement fails, earlier statements stay
    applied and the error is returned to the host.
    """

    producer: SnowflakeConnectionProducer
    templater: StatementTemplater

    def __init__(
        self,
        producer: SnowflakeConnectionProducer | None = None,
        templater: StatementTemplater | None = None,
    ):
        self.producer = producer or SnowflakeConnectionProducer()
        self.templater = templater or StatementTemplater()

    def type(self) -> str:
        return PLUGIN_TYPE

    async def initialize(
        self,
        config: Mapping[str, Any],
        verify_connection: bool = False,
        timeout: Optional[float] = None,
    ) -> Dict[str, Any]:
        """
        Validate the configuration, optionally verifying connectivity, and
        return the effective configuration.
        """
        with request_scope("initialize"):
            logger.info(f"Initializing {PLUGIN_TYPE} plugin")
            return await self.producer.load(
                config, verify_connection=verify_connection, timeout=timeout
            )

    def generate_username(self, metadata: UsernameMetadata) -> str:
        """Render the configured username template for ``metadata``."""
        if not self.producer.initialized or self.producer.username_template is None:
            raise NotInitializedError()
        try:
            return self.producer.username_template.render(
                {"DisplayName": metadata.display_name, "RoleName": metadata.role_name}
            )
        except TemplateError as e:
            raise CredentialCreationError(f"unable to generate username: {e}") from e

    async def new_user(
        self, request: NewUserRequest, timeout: Optional[float] = None
    ) -> NewUserResponse:
        """
        Create a user from the request's creation statements.

        Args:
            request: The creation request.
            timeout: Seconds allowed for statement execution.

        Returns:
            NewUserResponse: The generated username, plus the normalized
            public key for key-pair credentials.

        Raises:
            CredentialCreationError: If the statements are empty, the secret
                for the credential type is missing, a statement references
                {{expiration}} without an expiration, or a statement fails.
            NotInitializedError: If ``initialize`` has not been called.
            OperationTimeoutError: If execution exceeds ``timeout``.
        """
        with request_scope("new_user"):
            if not request.statements.commands:
                raise CredentialCreationError("empty creation statements")

            redactions: Dict[str, str] = {}
            public_key: Optional[str] = None
            if request.credential_type == CredentialType.RSA_PRIVATE_KEY:
                if not request.public_key:
                    raise CredentialCreationError(
                        "public_key is required for rsa_private_key credentials"
                    )
                try:
                    public_key = normalize_public_key(request.public_key)
                except ValueError as e:
                    raise CredentialCreationError(f"invalid public_key: {e}") from e
                secret = public_key
                redactions[public_key] = "[public_key]"
            else:
                if not request.password:
                    raise CredentialCreationError(
                        "password is required for password credentials"
                    )
                secret = request.password
                redactions[secret] = "[password]"

            if request.expiration is None and any(
                "{{expiration}}" in command for command in request.statements.commands
            ):
                raise CredentialCreationError(
                    "expiration is required by the creation statements"
                )

            async with self.producer.lock:
                username = self.generate_username(request.username_config)
                request_context.set(
                    {**(request_context.get() or {}), "username": username}
                )

                values = self.templater.values(
                    username,
                    credential_type=request.credential_type,
                    secret=secret,
                    expiration=request.expiration,
                )
                statements = self.templater.render_all(
                    request.statements.commands, values
                )
                await self._execute(
                    statements, timeout, CredentialCreationError, redactions
                )

            logger.info(f"Created {request.credential_type.value} user")
            return NewUserResponse(username=username, public_key=public_key)

    async def update_user(
        self, request: UpdateUserRequest, timeout: Optional[float] = None
    ) -> None:
        """
        Apply the requested password, public key and expiration changes, in
        that order, under one lock acquisition.

        Renewing only changes the expiry; secret material is left untouched.

        Raises:
            CredentialUpdateError: If no change is requested, the username is
                empty, the new public key is invalid, or a statement fails.
        """
        with request_scope("update_user", request.username):
            if not request.username:
                raise CredentialUpdateError("username cannot be empty")
            if (
                request.password is None
                and request.public_key is None
                and request.expiration is None
            ):
                raise CredentialUpdateError("no changes requested")

            statements: List[str] = []
            redactions: Dict[str, str] = {}

            if request.password is not None:
                if not request.password.new_password:
                    raise CredentialUpdateError("new password cannot be empty")
                redactions[request.password.new_password] = "[password]"
                values = self.templater.values(
                    request.username,
                    credential_type=CredentialType.PASSWORD,
                    secret=request.password.new_password,
                )
                statements.extend(
                    self.templater.render_all(
                        request.password.statements.commands
                        or [DEFAULT_ROTATE_PASSWORD_SQL],
                        values,
                    )
                )

            if request.public_key is not None:
                try:
                    public_key = normalize_public_key(request.public_key.new_public_key)
                except ValueError as e:
                    raise CredentialUpdateError(f"invalid public_key: {e}") from e
                redactions[public_key] = "[public_key]"
                values = self.templater.values(
                    request.username,
                    credential_type=CredentialType.RSA_PRIVATE_KEY,
                    secret=public_key,
                )
                statements.extend(
                    self.templater.render_all(
                        request.public_key.statements.commands
                        or [DEFAULT_ROTATE_PUBLIC_KEY_SQL],
                        values,
                    )
                )

            if request.expiration is not None:
                values = self.templater.values(
                    request.username, expiration=request.expiration.new_expiration
                )
                statements.extend(
                    self.templater.render_all(
                        request.expiration.statements.commands or [DEFAULT_RENEW_SQL],
                        values,
                    )
                )

            async with self.producer.lock:
                await self._execute(
                    statements, timeout, CredentialUpdateError, redactions
                )
            logger.info("Updated user")

    async def delete_user(
        self, request: DeleteUserRequest, timeout: Optional[float] = None
    ) -> None:
        """
        Drop a user. Without statements, ``DROP USER {{name}};`` is used.

        Raises:
            CredentialRevocationError: If the username is empty or a statement
                fails. Failures are never swallowed; retrying is up to the host.
        """
        with request_scope("delete_user", request.username):
            if not request.username:
                raise CredentialRevocationError("username cannot be empty")

            values = self.templater.values(request.username)
            statements = self.templater.render_all(
                request.statements.commands or [DEFAULT_DELETE_SQL], values
            )
            async with self.producer.lock:
                await self._execute(statements, timeout, CredentialRevocationError, {})
            logger.info("Deleted user")

    async def close(self) -> None:
        await self.producer.close()

    async def _execute(
        self,
        statements: List[str],
        timeout: Optional[float],
        error_class: Type[SnowflakePluginError],
        redactions: Dict[str, str],
    ) -> None:
        """Run statements through the producer. The caller holds the lock."""
        try:
            await self.producer.execute(
                statements, timeout=timeout, redactions=redactions
            )
        except SnowflakePluginError:
            raise
        except Exception as e:
            message = redact_secrets(
                str(e), {**self.producer.secret_values(), **redactions}
            )
            logger.error(f"Error executing statements: {message}")
            raise error_class(f"failed to execute statements: {message}") from e
