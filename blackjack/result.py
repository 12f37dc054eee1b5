from __future__ import annotations

import functools
import logging
from collections.abc import Awaitable, Callable, Iterator
from dataclasses import dataclass
from typing import Any, Generic, ParamSpec, TypeVar

from blackjack.errors import SessionError, StoreError

logger = logging.getLogger(__name__)

T = TypeVar("T")
P = ParamSpec("P")


@dataclass(frozen=True, slots=True)
class Result(Generic[T]):
    """Outcome of a store-facing call: either a value or an error, never both.

    Unpacks like a pair so call sites read as::

        meta, err = await store.get_meta(SessionFilter(connection_id=cid))
        if err:
            ...
    """

    value: T | None = None
    error: SessionError | None = None

    @staticmethod
    def success(value: T) -> "Result[T]":
        return Result(value=value, error=None)

    @staticmethod
    def failure(error: SessionError) -> "Result[Any]":
        return Result(value=None, error=error)

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]

    def __iter__(self) -> Iterator[Any]:
        yield self.value
        yield self.error


def _as_session_error(exc: Exception, *, op: str) -> SessionError:
    if isinstance(exc, SessionError):
        logger.debug("%s failed: %s", op, exc.kind.value)
        return exc
    logger.exception("%s failed with unexpected error", op, exc_info=exc)
    err = StoreError(f"{op}: {exc}")
    err.__cause__ = exc
    return err


def guarded(fn: Callable[P, Awaitable[T | Exception]]) -> Callable[P, Awaitable[Result[T]]]:
    """Run an async operation and fold every failure into a `Result`.

    The wrapped callable may signal failure by raising or by returning an
    exception instance. Domain errors (`SessionError`) pass through untouched;
    anything else becomes a `StoreError` chained to the original.
    Cancellation (a `BaseException`) is not intercepted.
    """

    op = fn.__qualname__

    @functools.wraps(fn)
    async def wrapper(*args: P.args, **kwargs: P.kwargs) -> Result[T]:
        try:
            out = await fn(*args, **kwargs)
        except Exception as e:
            return Result.failure(_as_session_error(e, op=op))
        if isinstance(out, Exception):
            return Result.failure(_as_session_error(out, op=op))
        return Result.success(out)

    return wrapper
