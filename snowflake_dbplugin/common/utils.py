import asyncio
import functools
import re
from typing import Any, Awaitable, Callable, Mapping, Optional, TypeVar, Union

from snowflake_dbplugin.credentials.exceptions import OperationTimeoutError

T = TypeVar("T")

_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "μs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
    "d": 86400.0,
}
_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h|d)")


def parse_duration_seconds(value: Union[int, float, str, None]) -> float:
    """Parse a duration into seconds.

    Accepts integers (seconds), integer strings (seconds), and Go-style
    duration strings such as ``"90s"``, ``"1h30m"`` or ``"1.5h"``. ``None``
    and the empty string mean zero.

    Args:
        value: The raw duration value.

    Returns:
        float: The duration in seconds.

    Raises:
        ValueError: If the value cannot be parsed or is negative.
    """
    if value is None:
        return 0.0
    if isinstance(value, bool):
        raise ValueError(f"invalid duration {value!r}")
    if isinstance(value, (int, float)):
        if value < 0:
            raise ValueError(f"invalid duration {value!r}: must not be negative")
        return float(value)

    raw = str(value).strip()
    if raw == "":
        return 0.0
    if re.fullmatch(r"\d+", raw):
        return float(raw)

    position = 0
    total = 0.0
    for match in _DURATION_PART.finditer(raw):
        if match.start() != position:
            raise ValueError(f"invalid duration {value!r}")
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        position = match.end()
    if position == 0 or position != len(raw):
        raise ValueError(f"invalid duration {value!r}")
    return total


def redact_secrets(message: str, secret_values: Mapping[str, str]) -> str:
    """Replace every non-empty secret in ``message`` with its placeholder.

    Example:
        >>> redact_secrets("bad password hunter2", {"hunter2": "[password]"})
        'bad password [password]'
    """
    for secret, placeholder in secret_values.items():
        if secret:
            message = message.replace(secret, placeholder)
    return message


def run_sync(func: Callable[..., T]) -> Callable[..., Awaitable[T]]:
    """Run a blocking function in the loop's default thread pool executor.

    Args:
        func: The function to run in thread pool.

    Returns:
        An async wrapper function that runs the input function in a thread pool.
    """

    @functools.wraps(func)
    async def wrapper(*args: Any, **kwargs: Any) -> T:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(func, *args, **kwargs))

    return wrapper


async def with_timeout(
    awaitable: Awaitable[T], timeout: Optional[float], operation: str
) -> T:
    """Await ``awaitable`` bounded by ``timeout`` seconds.

    Raises:
        OperationTimeoutError: If the deadline passes first. Work already done
            in the worker thread is not undone.
    """
    if timeout is None:
        return await awaitable
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError as e:
        raise OperationTimeoutError(
            f"{operation} timed out after {timeout}s"
        ) from e
