import re
from typing import Dict, Tuple
from urllib.parse import parse_qsl, quote

from sqlalchemy.engine import URL, make_url

from snowflake_dbplugin.constants import (
    SNOWFLAKE_JWT_AUTHENTICATOR,
    SNOWFLAKE_URL_SCHEME,
)
from snowflake_dbplugin.credentials.exceptions import InvalidURLError

# Expected format: <account_name>.snowflakecomputing.com/<db_name>
ACCOUNT_AND_DB_NAME_FROM_CONN_URL_REGEX = re.compile(
    r"(.+)\.snowflakecomputing\.com/(.+)", re.DOTALL
)


def parse_snowflake_fields_from_url(connection_url: str) -> Tuple[str, str]:
    """
    Extract the account and database names from a connection URL of the form
    ``<account_name>.snowflakecomputing.com/<db_name>``.

    Args:
        connection_url: The connection URL to parse.

    Returns:
        Tuple[str, str]: The account name and the database name, exactly as
            they appear in the URL.

    Raises:
        InvalidURLError: If the URL does not match the expected format or
            either segment is empty.
    """
    match = ACCOUNT_AND_DB_NAME_FROM_CONN_URL_REGEX.fullmatch(connection_url or "")
    if not match:
        raise InvalidURLError()

    account, database = match.group(1), match.group(2)
    if not account or not database:
        raise InvalidURLError()
    return account, database


def has_url_scheme(connection_url: str) -> bool:
    """Return True if the URL carries an explicit ``snowflake://`` scheme."""
    return connection_url.lower().startswith(f"{SNOWFLAKE_URL_SCHEME}://")


def ensure_url_scheme(connection_url: str) -> str:
    """
    Prefix a gosnowflake style DSN (``user:pass@account/db``) with the
    ``snowflake://`` scheme so SQLAlchemy can load the dialect.
    """
    if has_url_scheme(connection_url):
        return connection_url
    return f"{SNOWFLAKE_URL_SCHEME}://{connection_url}"


def escape_url_value(value: str) -> str:
    """Percent-escape a value for the userinfo part of a URL."""
    return quote(value, safe="")


def substitute_url_placeholders(connection_url: str, values: Dict[str, str]) -> str:
    """
    Replace ``{{key}}`` placeholders in the connection URL with their values.

    Example:
        >>> substitute_url_placeholders(
        ...     "{{username}}:{{password}}@acct/db",
        ...     {"username": "vault", "password": "s3cr3t"},
        ... )
        'vault:s3cr3t@acct/db'
    """
    for key, value in values.items():
        connection_url = connection_url.replace("{{" + key + "}}", value)
    return connection_url


def build_key_pair_url(connection_url: str, username: str) -> URL:
    """
    Build a SQLAlchemy URL for key-pair (JWT) authentication.

    A URL with a ``snowflake://`` scheme is parsed as a structured URL: the
    configured username fills in a missing user, any password is dropped and
    the JWT authenticator is appended to the query. Any other value must be
    of the legacy ``<account>.snowflakecomputing.com/<database>`` form.

    Raises:
        InvalidURLError: If the URL cannot be parsed.
    """
    if has_url_scheme(connection_url):
        try:
            url = make_url(connection_url)
        except Exception as e:
            raise InvalidURLError(f"invalid connection URL: {e}") from e
        if not url.host:
            raise InvalidURLError("invalid connection URL: missing account")
        return url.set(
            username=url.username or username or None, password=None
        ).update_query_dict({"authenticator": SNOWFLAKE_JWT_AUTHENTICATOR})

    account, database = parse_snowflake_fields_from_url(connection_url)
    database, _, raw_query = database.partition("?")
    if not database:
        raise InvalidURLError()
    query = dict(parse_qsl(raw_query))
    query["authenticator"] = SNOWFLAKE_JWT_AUTHENTICATOR
    return URL.create(
        SNOWFLAKE_URL_SCHEME,
        username=username or None,
        host=account,
        database=database,
        query=query,
    )
