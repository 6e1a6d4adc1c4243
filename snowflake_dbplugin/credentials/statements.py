"""Placeholder substitution for credential statements.

Recognized placeholders:

- ``{{name}}`` / ``{{username}}``: the generated or supplied username
- ``{{password}}``: the plaintext password (password credentials)
- ``{{public_key}}``: the base64 public key body (key-pair credentials)
- ``{{expiration}}``: days until expiry, as accepted by ``DAYS_TO_EXPIRY``

Substitution is literal text replacement. Usernames and expirations are
produced by the plugin itself; passwords, public keys and the statements are
supplied by the host and are not SQL-escaped unless an ``escape`` hook is
given (see :func:`quote_sql_literal`).
"""

import math
from datetime import datetime, timezone
from typing import Callable, Dict, List, Mapping, Optional, Sequence

from snowflake_dbplugin.credentials.types import CredentialType

SECONDS_PER_DAY = 60 * 60 * 24


def quote_sql_literal(value: str) -> str:
    """Escape a value for use inside a single-quoted SQL string literal."""
    return value.replace("'", "''")


def expiration_days(expiration: datetime, now: Optional[datetime] = None) -> str:
    """
    Days from ``now`` until ``expiration``, rounded up to three decimals and
    never negative. Naive datetimes are taken as UTC.
    """
    if expiration.tzinfo is None:
        expiration = expiration.replace(tzinfo=timezone.utc)
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    seconds = max((expiration - now).total_seconds(), 0.0)
    days = math.ceil(seconds / SECONDS_PER_DAY * 1000) / 1000
    return f"{days:.3f}"


class StatementTemplater:
    """Render statement templates for one credential operation.

    Args:
        escape: Optional hook applied to host-supplied secret values before
            substitution. Defaults to no escaping.
    """

    def __init__(self, escape: Optional[Callable[[str], str]] = None):
        self.escape = escape or (lambda value: value)

    def values(
        self,
        username: str,
        credential_type: Optional[CredentialType] = None,
        secret: Optional[str] = None,
        expiration: Optional[datetime] = None,
    ) -> Dict[str, str]:
        """Build the placeholder map; the secret lands on the placeholder
        matching ``credential_type``."""
        values = {"name": username, "username": username}
        if secret is not None and credential_type is not None:
            key = (
                "public_key"
                if credential_type == CredentialType.RSA_PRIVATE_KEY
                else "password"
            )
            values[key] = self.escape(secret)
        if expiration is not None:
            values["expiration"] = expiration_days(expiration)
        return values

    @staticmethod
    def render(statement: str, values: Mapping[str, str]) -> str:
        for key, value in values.items():
            statement = statement.replace("{{" + key + "}}", value)
        return statement

    def render_all(
        self, statements: Sequence[str], values: Mapping[str, str]
    ) -> List[str]:
        """
        Render every non-blank entry. Each entry stays one executable unit,
        whether it holds a single statement or several joined by semicolons.
        """
        rendered = []
        for statement in statements:
            statement = statement.strip()
            if statement:
                rendered.append(self.render(statement, values))
        return rendered
