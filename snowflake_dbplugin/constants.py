import os

from dotenv import load_dotenv

load_dotenv(dotenv_path=".env")

# Plugin Constants
PLUGIN_TYPE = "snowflake"
SUPPORTED_CREDENTIAL_TYPES_KEY = "supported_credential_types"

# Connection Producer Constants
DEFAULT_MAX_OPEN_CONNECTIONS = int(
    os.getenv("SNOWFLAKE_DEFAULT_MAX_OPEN_CONNECTIONS", "4")
)
SNOWFLAKE_JWT_AUTHENTICATOR = "SNOWFLAKE_JWT"
SNOWFLAKE_URL_SCHEME = "snowflake"
PRIVATE_KEY_PEM_TYPE = "PRIVATE KEY"

# Username Template Constants
DEFAULT_USERNAME_TEMPLATE = (
    '{{ printf "v_%s_%s_%s_%s" (.DisplayName | truncate 32) '
    "(.RoleName | truncate 32) (random 20) (unix_time) "
    '| truncate 255 | replace "-" "_" }}'
)

# Default Statements
DEFAULT_RENEW_SQL = "ALTER USER {{name}} SET DAYS_TO_EXPIRY = {{expiration}};"
DEFAULT_ROTATE_PASSWORD_SQL = "ALTER USER {{name}} SET PASSWORD = '{{password}}';"
DEFAULT_ROTATE_PUBLIC_KEY_SQL = (
    "ALTER USER {{name}} SET RSA_PUBLIC_KEY = '{{public_key}}';"
)
DEFAULT_DELETE_SQL = "DROP USER {{name}};"

# Logger Constants
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
SERVICE_NAME: str = os.getenv("SERVICE_NAME", "snowflake-dbplugin")
SERVICE_VERSION: str = os.getenv("SERVICE_VERSION", "0.1.0")
