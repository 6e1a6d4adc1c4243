"""
Error codes for the snowflake database plugin.

This module defines standardized error codes used throughout the plugin.
Error codes follow the format: Snowflake-{Component}-{HTTP_Code}-{Unique_ID}

Components:
- Config: Plugin configuration errors
- Connection: Connection producer errors
- Credential: Credential lifecycle errors
"""

from enum import Enum
from typing import Dict


class ErrorComponent(Enum):
    """Components that can generate errors in the system."""

    CONFIG = "Config"
    CONNECTION = "Connection"
    CREDENTIAL = "Credential"


class ErrorCode:
    """Error code with component, HTTP code, and description."""

    def __init__(
        self, component: str, http_code: str, unique_id: str, description: str
    ):
        self.code = f"Snowflake-{component}-{http_code}-{unique_id}"
        self.description = description

    def __str__(self) -> str:
        return f"{self.code}: {self.description}"


# Configuration Errors
CONFIG_ERRORS = {
    "CONFIGURATION_ERROR": ErrorCode(
        ErrorComponent.CONFIG.value, "400", "00", "Invalid plugin configuration"
    ),
    "INVALID_URL_ERROR": ErrorCode(
        ErrorComponent.CONFIG.value, "400", "01", "Invalid connection URL format"
    ),
    "PRIVATE_KEY_ERROR": ErrorCode(
        ErrorComponent.CONFIG.value, "400", "02", "Invalid private key"
    ),
}

# Connection Errors
CONNECTION_ERRORS = {
    "CONNECTION_ERROR": ErrorCode(
        ErrorComponent.CONNECTION.value, "503", "00", "Snowflake connection error"
    ),
    "NOT_INITIALIZED_ERROR": ErrorCode(
        ErrorComponent.CONNECTION.value, "500", "00", "Connection producer is not initialized"
    ),
    "TIMEOUT_ERROR": ErrorCode(
        ErrorComponent.CONNECTION.value, "504", "00", "Operation timed out"
    ),
}

# Credential Errors
CREDENTIAL_ERRORS = {
    "CREDENTIAL_CREATION_ERROR": ErrorCode(
        ErrorComponent.CREDENTIAL.value, "500", "00", "Credential creation failed"
    ),
    "CREDENTIAL_UPDATE_ERROR": ErrorCode(
        ErrorComponent.CREDENTIAL.value, "500", "01", "Credential update failed"
    ),
    "CREDENTIAL_REVOCATION_ERROR": ErrorCode(
        ErrorComponent.CREDENTIAL.value, "500", "02", "Credential revocation failed"
    ),
}

# Combined dictionary of all error codes
ERROR_CODES: Dict[str, ErrorCode] = {
    **CONFIG_ERRORS,
    **CONNECTION_ERRORS,
    **CREDENTIAL_ERRORS,
}
