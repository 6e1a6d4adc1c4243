"""Request and response types for the credential lifecycle.

These mirror the host contract: the host builds a request, the handler
renders and executes statements, and only the generated username (plus the
accepted public key for key-pair users) flows back.

Example:
    >>> from datetime import datetime, timedelta, timezone
    >>> request = NewUserRequest(
    ...     username_config=UsernameMetadata(display_name="token", role_name="reader"),
    ...     statements=Statements(commands=[
    ...         "CREATE USER {{name}} PASSWORD = '{{password}}';",
    ...         "GRANT ROLE reader TO USER {{name}};",
    ...     ]),
    ...     password="y8fva_sdVA3rasf",
    ...     expiration=datetime.now(timezone.utc) + timedelta(hours=1),
    ... )
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional, Union


class CredentialType(Enum):
    """Kind of secret a generated user authenticates with."""

    PASSWORD = "password"
    RSA_PRIVATE_KEY = "rsa_private_key"


@dataclass
class UsernameMetadata:
    """Inputs to the username template."""

    display_name: str = ""
    role_name: str = ""


@dataclass
class Statements:
    """Ordered SQL statement templates.

    Each entry is executed as one unit; an entry may itself hold several
    semicolon-separated statements, which the warehouse splits.
    """

    commands: List[str] = field(default_factory=list)


@dataclass
class NewUserRequest:
    """Request to create a user.

    Attributes:
        username_config: Metadata rendered into the generated username.
        statements: Creation statements; must not be empty.
        credential_type: Selects whether ``password`` or ``public_key`` is used.
        password: Plaintext password for PASSWORD credentials.
        public_key: PKIX PEM public key for RSA_PRIVATE_KEY credentials.
        expiration: When the credential should expire.
        rollback_statements: Accepted for contract compatibility; creation is
            not transactional so these are never executed.
    """

    username_config: UsernameMetadata = field(default_factory=UsernameMetadata)
    statements: Statements = field(default_factory=Statements)
    credential_type: CredentialType = CredentialType.PASSWORD
    password: str = field(default="", repr=False)
    public_key: Union[str, bytes] = field(default=b"", repr=False)
    expiration: Optional[datetime] = None
    rollback_statements: Statements = field(default_factory=Statements)


@dataclass
class NewUserResponse:
    username: str
    public_key: Optional[str] = None


@dataclass
class ChangePassword:
    new_password: str = field(repr=False)
    statements: Statements = field(default_factory=Statements)


@dataclass
class ChangePublicKey:
    new_public_key: Union[str, bytes] = field(repr=False)
    statements: Statements = field(default_factory=Statements)


@dataclass
class ChangeExpiration:
    new_expiration: datetime
    statements: Statements = field(default_factory=Statements)


@dataclass
class UpdateUserRequest:
    """Request to rotate secret material and/or renew an existing user.

    At least one of ``password``, ``public_key`` or ``expiration`` must be set.
    """

    username: str
    password: Optional[ChangePassword] = None
    public_key: Optional[ChangePublicKey] = None
    expiration: Optional[ChangeExpiration] = None


@dataclass
class DeleteUserRequest:
    """Request to drop a user; empty statements fall back to the default drop."""

    username: str
    statements: Statements = field(default_factory=Statements)
