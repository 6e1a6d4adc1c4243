import logging
import sys
from contextvars import ContextVar
from typing import Any, Dict, Optional, Tuple

from loguru import logger

from snowflake_dbplugin.constants import LOG_LEVEL, SERVICE_NAME, SERVICE_VERSION

# Create a context variable for per-request fields (request_id, operation, username)
request_context: ContextVar[Optional[Dict[str, Any]]] = ContextVar(
    "request_context", default=None
)


# Add a Loguru handler for the Python logging system
class InterceptHandler(logging.Handler):
    def emit(self, record):
        # Get corresponding Loguru level if it exists
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Find caller from where originated the logged message
        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        # Add logger_name to extra to prevent KeyError
        logger_extras = {"logger_name": record.name}

        logger.opt(depth=depth, exception=record.exc_info).bind(**logger_extras).log(
            level, record.getMessage()
        )


def resolve_log_level(name: str) -> str:
    """Map ``name`` to a level loguru knows; unknown names fall back to INFO."""
    name = {"WARN": "WARNING", "FATAL": "CRITICAL"}.get(name.upper(), name.upper())
    if name in ("TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"):
        return name
    return "INFO"


PLUGIN_LOG_LEVEL = resolve_log_level(LOG_LEVEL)

logging.basicConfig(
    level=logging.getLevelNamesMapping().get(PLUGIN_LOG_LEVEL, logging.DEBUG),
    handlers=[InterceptHandler()],
)

# The snowflake connector is chatty at INFO; keep its records at WARNING and above
logging.getLogger("snowflake.connector").setLevel(logging.WARNING)


class PluginLoggerAdapter:
    """Logger adapter binding the logger name and request context to loguru."""

    _sink_configured = False

    def __init__(self, logger_name: str) -> None:
        self.logger_name = logger_name
        self.logger = logger

        if not PluginLoggerAdapter._sink_configured:
            logger.remove()
            plugin_format_str = "<green>{time:YYYY-MM-DD HH:mm:ss}</green> <blue>[{level}]</blue> <cyan>{extra[logger_name]}</cyan> - <level>{message}</level>"
            logger.add(
                sys.stderr, format=plugin_format_str, level=PLUGIN_LOG_LEVEL, colorize=True
            )
            PluginLoggerAdapter._sink_configured = True

    def process(self, msg: Any, kwargs: Dict[str, Any]) -> Tuple[Any, Dict[str, Any]]:
        """Process the log message with request context."""
        kwargs["logger_name"] = self.logger_name
        kwargs.setdefault("service_name", SERVICE_NAME)
        kwargs.setdefault("service_version", SERVICE_VERSION)

        ctx = request_context.get()
        for key in ("request_id", "operation", "username"):
            if ctx and key in ctx:
                kwargs.setdefault(key, ctx[key])

        return msg, kwargs

    def debug(self, msg: str, *args: Any, **kwargs: Any):
        msg, kwargs = self.process(msg, kwargs)
        self.logger.bind(**kwargs).debug(msg, *args)

    def info(self, msg: str, *args: Any, **kwargs: Any):
        msg, kwargs = self.process(msg, kwargs)
        self.logger.bind(**kwargs).info(msg, *args)

    def warning(self, msg: str, *args: Any, **kwargs: Any):
        msg, kwargs = self.process(msg, kwargs)
        self.logger.bind(**kwargs).warning(msg, *args)

    def error(self, msg: str, *args: Any, **kwargs: Any):
        msg, kwargs = self.process(msg, kwargs)
        self.logger.bind(**kwargs).error(msg, *args)

    def critical(self, msg: str, *args: Any, **kwargs: Any):
        msg, kwargs = self.process(msg, kwargs)
        self.logger.bind(**kwargs).critical(msg, *args)


# Create a singleton instance of the logger
_logger_instances: Dict[str, PluginLoggerAdapter] = {}


def get_logger(name: str | None = None) -> PluginLoggerAdapter:
    """Get or create an instance of PluginLoggerAdapter.
    Args:
        name (str, optional): Logger name. If None, uses the caller's module name.
    Returns:
        PluginLoggerAdapter: Logger instance for the specified name
    """
    global _logger_instances

    if name is None:
        name = __name__
    if name not in _logger_instances:
        _logger_instances[name] = PluginLoggerAdapter(name)

    return _logger_instances[name]
