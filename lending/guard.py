"""
guard.py - Reentrancy Guard

One guard object per market instance. Every state-mutating entry point holds
it for the duration of the call, including the external transfers it makes,
so an asset or recipient calling back into the market mid-transfer is
rejected instead of observing half-applied state.

Usage:
    guard = ReentrancyGuard()
    with guard.acquire("borrow"):
        ...

    class Component:
        def __init__(self, guard):
            self._guard = guard

        @non_reentrant
        def borrow(self, caller, amount):
            ...
"""

from __future__ import annotations
from contextlib import contextmanager
from functools import wraps
from typing import Callable, Iterator, Optional, TypeVar

from .core import ReentrancyViolation


F = TypeVar("F", bound=Callable)


class ReentrancyGuard:
    """
    Mutual-exclusion flag scoped to one market instance.

    The flag is set on entry and cleared on every exit path, success or
    failure. A nested acquisition raises ReentrancyViolation and leaves the
    outer holder's flag in place.

    Thread Safety:
        Not thread-safe. Calls into one market are serialized by the caller.
    """

    def __init__(self):
        self._holder: Optional[str] = None

    @property
    def locked(self) -> bool:
        """True while a guarded call is in progress."""
        return self._holder is not None

    @property
    def holder(self) -> Optional[str]:
        """Name of the entry point currently holding the guard."""
        return self._holder

    @contextmanager
    def acquire(self, name: str = "call") -> Iterator[None]:
        if self._holder is not None:
            raise ReentrancyViolation(
                f"Reentrant call to {name} while {self._holder} is in progress"
            )
        self._holder = name
        try:
            yield
        finally:
            self._holder = None


def non_reentrant(method: F) -> F:
    """
    Wrap a method so it runs while holding ``self._guard``.

    The owning object must expose the shared guard as ``_guard``.
    """
    @wraps(method)
    def wrapper(self, *args, **kwargs):
        with self._guard.acquire(method.__name__):
            return method(self, *args, **kwargs)

    return wrapper
