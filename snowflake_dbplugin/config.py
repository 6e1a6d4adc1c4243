"""Process-level settings for the snowflake database plugin using Pydantic."""

from functools import lru_cache
from typing import Any, Dict, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class PluginSettings(BaseSettings):
    """Central process configuration for the plugin.

    This class uses Pydantic's BaseSettings which allows for configuration via environment
    variables and/or direct assignment. Environment variables take precedence over defaults.

    Environment Variables:
        SNOWFLAKE_PLUGIN_REQUEST_TIMEOUT_SECONDS: Default timeout applied to an operation
            when the caller does not pass one. Unset means no timeout.
        SNOWFLAKE_PLUGIN_VERIFY_QUERY: Statement used as the connection liveness check
    """

    model_config = SettingsConfigDict(
        env_prefix="SNOWFLAKE_PLUGIN_",
        case_sensitive=False,
        extra="ignore",
    )

    request_timeout_seconds: Optional[float] = None
    verify_query: str = "SELECT 1"

    def model_dump(self, *args: Any, **kwargs: Any) -> Dict[str, Any]:
        """Get settings as a dictionary."""
        return super().model_dump(*args, **kwargs)


# Global settings instance with default values
settings = PluginSettings()


@lru_cache()
def get_settings() -> PluginSettings:
    """Get the global settings instance.

    Note:
        This function is cached to avoid re-reading environment variables.
        To refresh settings, call get_settings.cache_clear()
    """
    return settings


def configure_settings(**kwargs: Any) -> None:
    """Configure global settings with overrides.

    Example:
        >>> configure_settings(request_timeout_seconds=30)
    """
    global settings
    settings = PluginSettings(**kwargs)
    get_settings.cache_clear()
