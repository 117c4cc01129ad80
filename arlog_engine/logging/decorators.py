import time
import functools
import asyncio
from typing import Optional

from .logger import logger


def _report(name: str, start: float, slow_ms: Optional[float], error: Optional[BaseException] = None):
    duration = round((time.perf_counter() - start) * 1000, 2)
    if error is not None:
        logger.error(f"{name} failed", duration_ms=duration, error=str(error))
    elif slow_ms is not None and duration >= slow_ms:
        logger.warning(f"{name} slow", duration_ms=duration, slow_ms=slow_ms)
    else:
        logger.debug(f"{name} completed", duration_ms=duration)


def log_timing(func=None, *, label: Optional[str] = None, slow_ms: Optional[float] = None):
    """
    Decorator to log function execution time.

    Usable bare (``@log_timing``) or with options
    (``@log_timing(label="analysis", slow_ms=5000)``). Calls taking at least
    ``slow_ms`` are logged at WARNING, failures at ERROR and re-raised.
    """
    def decorate(fn):
        name = label or fn.__name__

        @functools.wraps(fn)
        async def async_wrapper(*args, **kwargs):
            start = time.perf_counter()
            try:
                result = await fn(*args, **kwargs)
            except Exception as e:
                _report(name, start, slow_ms, e)
                raise
            _report(name, start, slow_ms)
            return result

        @functools.wraps(fn)
        def sync_wrapper(*args, **kwargs):
            start = time.perf_counter()
            try:
                result = fn(*args, **kwargs)
            except Exception as e:
                _report(name, start, slow_ms, e)
                raise
            _report(name, start, slow_ms)
            return result

        if asyncio.iscoroutinefunction(fn):
            return async_wrapper
        return sync_wrapper

    if func is not None:
        return decorate(func)
    return decorate
