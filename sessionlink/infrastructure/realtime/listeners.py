"""Callback registration primitives shared by the realtime components.

Every registration returns a ``Subscription`` handle. Releasing it is
idempotent and may happen at any time, including from inside the callback it
guards; a released callback is skipped for the rest of the dispatch cycle
that is currently running.
"""

from __future__ import annotations

import contextlib
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

T = TypeVar("T")


class Subscription:
    """Release handle for a registered callback.

    The handle is also callable, so it can be used wherever a plain
    ``unsubscribe()`` function is expected.
    """

    __slots__ = ("_release_fn", "_active")

    def __init__(self, release_fn: Callable[[], None] | None = None) -> None:
        self._release_fn = release_fn
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def release(self) -> None:
        if not self._active:
            return
        self._active = False
        release_fn, self._release_fn = self._release_fn, None
        if release_fn is not None:
            release_fn()

    def __call__(self) -> None:
        self.release()

    def __enter__(self) -> Subscription:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.release()

    def __repr__(self) -> str:
        return f"<Subscription active={self._active}>"


@dataclass(eq=False)
class _Entry(Generic[T]):
    callback: T
    active: bool = True


class ListenerSet(Generic[T]):
    """Ordered set of callbacks with reentrancy-safe release."""

    def __init__(self) -> None:
        self._entries: list[_Entry[T]] = []

    def add(self, callback: T) -> Subscription:
        entry = _Entry(callback)
        self._entries.append(entry)
        return Subscription(lambda: self._discard(entry))

    def _discard(self, entry: _Entry[T]) -> None:
        entry.active = False
        with contextlib.suppress(ValueError):
            self._entries.remove(entry)

    def clear(self) -> None:
        for entry in self._entries:
            entry.active = False
        self._entries.clear()

    def __iter__(self) -> Iterator[T]:
        # Iterate a snapshot; re-check liveness lazily so a release made by an
        # earlier callback in the same cycle takes effect immediately.
        for entry in list(self._entries):
            if entry.active:
                yield entry.callback

    def __len__(self) -> int:
        return len(self._entries)

    def __bool__(self) -> bool:
        return bool(self._entries)
