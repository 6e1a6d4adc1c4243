"""Custom exceptions for the snowflake database plugin.

These exceptions provide specific error handling for the different failure
modes of the connection producer and the credential lifecycle. Every
exception carries an ``error_code`` so the host can classify it without
parsing messages.
"""

from typing import List, Optional

from snowflake_dbplugin.common.error_codes import ERROR_CODES, ErrorCode


class SnowflakePluginError(Exception):
    """Base exception for plugin operations.

    All plugin exceptions inherit from this class, allowing for broad
    exception handling when needed.
    """

    error_code: ErrorCode = ERROR_CODES["CONFIGURATION_ERROR"]


class ConfigurationError(SnowflakePluginError):
    """Raised when the plugin configuration is missing or invalid.

    This can occur when:
    - connection_url is empty
    - max_connection_lifetime cannot be parsed
    - an unknown configuration key is supplied
    - the username template does not compile

    Attributes:
        message: Human-readable error message.
        errors: List of specific validation errors.

    Example:
        >>> raise ConfigurationError(
        ...     "invalid configuration",
        ...     errors=["connection_url cannot be empty"]
        ... )
    """

    error_code = ERROR_CODES["CONFIGURATION_ERROR"]

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        super().__init__(message)
        self.errors = errors or []


class InvalidURLError(ConfigurationError):
    """Raised when the connection URL does not match
    ``<account_name>.snowflakecomputing.com/<db_name>``.
    """

    error_code = ERROR_CODES["INVALID_URL_ERROR"]

    def __init__(
        self,
        message: str = (
            "invalid connection URL format, expect "
            "<account_name>.snowflakecomputing.com/<db_name>"
        ),
    ):
        super().__init__(message)


class PrivateKeyError(ConfigurationError):
    """Raised when private key material is absent, of the wrong type, or
    cannot be parsed.

    Example:
        >>> raise PrivateKeyError(
        ...     "unexpected private key type, expected type 'PRIVATE KEY', "
        ...     "got 'RSA PRIVATE KEY'"
        ... )
    """

    error_code = ERROR_CODES["PRIVATE_KEY_ERROR"]

    def __init__(self, message: str):
        super().__init__(message)


class SnowflakeConnectionError(SnowflakePluginError):
    """Raised when the driver cannot open a connection or the liveness
    check fails.
    """

    error_code = ERROR_CODES["CONNECTION_ERROR"]


class NotInitializedError(SnowflakeConnectionError):
    """Raised when a connection is requested before ``initialize()``."""

    error_code = ERROR_CODES["NOT_INITIALIZED_ERROR"]

    def __init__(self, message: str = "connection has not been initialized"):
        super().__init__(message)


class OperationTimeoutError(SnowflakePluginError, TimeoutError):
    """Raised when an operation exceeds its caller-supplied timeout.

    Statements that already ran before the deadline remain applied.
    """

    error_code = ERROR_CODES["TIMEOUT_ERROR"]


class CredentialCreationError(SnowflakePluginError):
    """Raised when a user cannot be created.

    This can occur when:
    - the creation statement list is empty
    - the secret for the requested credential type is missing
    - a creation statement fails to execute
    """

    error_code = ERROR_CODES["CREDENTIAL_CREATION_ERROR"]


class CredentialUpdateError(SnowflakePluginError):
    """Raised when a password, public key, or expiration change fails."""

    error_code = ERROR_CODES["CREDENTIAL_UPDATE_ERROR"]


class CredentialRevocationError(SnowflakePluginError):
    """Raised when a user cannot be dropped."""

    error_code = ERROR_CODES["CREDENTIAL_REVOCATION_ERROR"]
