import functools
from collections.abc import Callable
from typing import Any

from devicecast.control.sdk.types.exceptions import OperationalError


def wrap_with_callbacks(on_failure: Callable[[Exception], Any] | None = None):
    """Report failures of the decorated coroutine without altering its outcome."""

    def decorator(fn):
        @functools.wraps(fn)
        async def wrapper(*args, **kwargs):
            try:
                return await fn(*args, **kwargs)
            except Exception as e:
                if on_failure:
                    on_failure(e)
                raise

        return wrapper

    return decorator


def capture_operational_error(fn):
    """
    Re-raise operational errors from the decorated public method with the
    internal frames stripped, so the traceback points at the caller's call.
    """

    @functools.wraps(fn)
    async def wrapper(*args, **kwargs):
        try:
            return await fn(*args, **kwargs)
        except OperationalError as e:
            raise e.with_traceback(None) from e.__cause__

    return wrapper
