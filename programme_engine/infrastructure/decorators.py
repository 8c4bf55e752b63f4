"""Infrastructure-level decorators used by the record stores."""

from __future__ import annotations

import functools
import time
from typing import Any, Callable, Iterable, Optional, Tuple, Type, TypeVar

from programme_engine.domain.repositories import StoreUnavailableError
from programme_engine.infrastructure import log_utils

TFunc = TypeVar("TFunc", bound=Callable[..., Any])


def retry_on_transient_error(
    *,
    exception_types: Iterable[Type[BaseException]] = (StoreUnavailableError,),
) -> Callable[[TFunc], TFunc]:
    """Retry decorator with exponential backoff for transient failures.

    Parameters
    ----------
    exception_types:
        Exception types treated as transient. Anything else propagates
        immediately. The decorated method's instance supplies ``max_retries``
        (total attempts) and ``backoff_base`` (seconds before the first retry).
    """

    exception_tuple: Tuple[Type[BaseException], ...] = tuple(exception_types)

    def decorator(func: TFunc) -> TFunc:
        @functools.wraps(func)
        def wrapper(self: Any, *args: Any, **kwargs: Any) -> Any:
            max_retries: int = max(1, getattr(self, "max_retries", 1))
            backoff_base: float = getattr(self, "backoff_base", 0.0)

            last_exc: Optional[BaseException] = None

            for attempt in range(max_retries):
                try:
                    return func(self, *args, **kwargs)
                except exception_tuple as exc:  # type: ignore[misc]
                    last_exc = exc
                    if attempt == max_retries - 1:
                        raise

                    collection = _extract_arg("collection", 0, args, kwargs)
                    key = _extract_arg("key", 1, args, kwargs)
                    sleep_for = backoff_base * (2 ** attempt)
                    log_utils.warn(
                        f"[retry] transient store error on {func.__name__} {collection}/{key}: {exc!r}, "
                        f"retrying in {sleep_for:.2f}s..."
                    )

                    if sleep_for > 0:
                        time.sleep(sleep_for)

            if last_exc is not None:
                raise last_exc

            raise RuntimeError("retry_on_transient_error failed without executing the function.")

        return wrapper  # type: ignore[return-value]

    return decorator


def _extract_arg(name: str, position: int, args: tuple[Any, ...], kwargs: dict[str, Any]) -> Any:
    """Helper to extract positional/keyword arguments for logging."""

    if position < len(args):
        return args[position]
    if name in kwargs:
        return kwargs[name]
    return "<unknown>"
