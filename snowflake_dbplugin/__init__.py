"""Snowflake database plugin.

Issues short-lived Snowflake users from host-supplied statement templates.

Example:
    >>> from snowflake_dbplugin.handlers.snowflake import SnowflakeHandler
    >>> handler = SnowflakeHandler()
    >>> await handler.initialize(
    ...     {"connection_url": "{{username}}:{{password}}@account/db",
    ...      "username": "admin", "password": "secret"},
    ...     verify_connection=True,
    ... )  # doctest: +SKIP
"""

__version__ = "0.1.0"
