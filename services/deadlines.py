"""Deadline-bounded execution of storage calls."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from typing import Callable, Optional, TypeVar

from services.errors import StorageTimeoutError, StorageUnavailableError

T = TypeVar("T")


def call_storage(operation: str, fn: Callable[[], T]) -> T:
    """Run ``fn`` inline, translating I/O failures into ``StorageUnavailableError``."""
    try:
        return fn()
    except OSError as exc:
        raise StorageUnavailableError(f"Storage unavailable during {operation}: {exc}") from exc


def call_with_deadline(
    executor: ThreadPoolExecutor,
    operation: str,
    fn: Callable[[], T],
    timeout: Optional[float],
) -> T:
    """Run ``fn`` on ``executor`` and wait at most ``timeout`` seconds for it.

    The storage call itself is not interrupted on timeout; the caller simply
    stops waiting for it.
    """
    future = executor.submit(call_storage, operation, fn)
    try:
        return future.result(timeout=timeout)
    except FutureTimeoutError as exc:
        future.cancel()
        raise StorageTimeoutError(
            f"{operation} did not complete within {timeout} seconds."
        ) from exc
