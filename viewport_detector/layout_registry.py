"""Ancestor layout store and the scope stack used to resolve it.

A :class:`LayoutRegistry` holds the most recently reported rectangle of one
ancestor container. It has exactly one writer (the provider that owns it) and
any number of readers (the monitors of its descendants).

Nesting follows the ``with fig:`` idiom: entering a registry pushes it onto a
thread-local stack, and components built inside the block bind to the nearest
enclosing registry. Components keep that reference; the stack is only
consulted at construction time.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Optional

from .geometry import LayoutRectangle

__all__ = ["LayoutRegistry", "current_registry", "use_registry"]

logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())

_REGISTRY_STACK_LOCAL = threading.local()


class LayoutRegistry:
    """Single-slot store for an ancestor's latest layout rectangle.

    Parameters
    ----------
    name : str, optional
        Label used in log messages and ``repr``.
    initial : LayoutRectangle, optional
        Value to seed the registry with; subject to the same validation as
        :meth:`write`.
    """

    def __init__(
        self, name: Optional[str] = None, *, initial: Optional[LayoutRectangle] = None
    ) -> None:
        self.name = name
        self._value: Optional[LayoutRectangle] = None
        self._closed = False
        if initial is not None:
            self.write(initial)

    def __repr__(self) -> str:
        label = f" {self.name!r}" if self.name else ""
        state = "closed" if self._closed else repr(self._value)
        return f"<LayoutRegistry{label} {state}>"

    @property
    def closed(self) -> bool:
        return self._closed

    def write(self, rect: LayoutRectangle) -> bool:
        """Replace the stored rectangle with ``rect``.

        Rectangles with a non-positive width or height are rejected so a
        transient zero-sized layout pass does not clobber the last good value.

        Returns
        -------
        bool
            ``True`` if the value was stored.
        """
        if self._closed:
            logger.debug("Ignoring layout write to closed registry %r", self)
            return False
        if rect.width <= 0 or rect.height <= 0:
            logger.debug("Rejecting degenerate layout %r for %r", rect, self)
            return False
        self._value = rect
        return True

    def read(self) -> Optional[LayoutRectangle]:
        """Return the latest rectangle, or ``None`` if unknown or closed."""
        if self._closed:
            return None
        return self._value

    def close(self) -> None:
        """Mark the owning ancestor as gone; subsequent reads return ``None``."""
        self._closed = True
        self._value = None
        _pop_registry(self)

    def __enter__(self) -> LayoutRegistry:
        _push_registry(self)
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        _pop_registry(self)


def _registry_stack() -> list[LayoutRegistry]:
    """Return the thread-local registry stack."""
    stack = getattr(_REGISTRY_STACK_LOCAL, "stack", None)
    if stack is None:
        stack = []
        _REGISTRY_STACK_LOCAL.stack = stack
    return stack


def _push_registry(registry: LayoutRegistry) -> None:
    _registry_stack().append(registry)


def _pop_registry(registry: LayoutRegistry) -> None:
    """Remove ``registry`` from the stack if present (innermost occurrence)."""
    stack = _registry_stack()
    if not stack:
        return
    if stack[-1] is registry:
        stack.pop()
        return
    for i in range(len(stack) - 1, -1, -1):
        if stack[i] is registry:
            del stack[i]
            break


def current_registry(*, required: bool = False) -> Optional[LayoutRegistry]:
    """Return the nearest enclosing registry.

    Parameters
    ----------
    required : bool, default=False
        If True, raise when no registry is active.

    Returns
    -------
    LayoutRegistry or None
        Innermost registry entered on this thread, or ``None``.
    """
    stack = _registry_stack()
    if stack:
        return stack[-1]
    if required:
        raise RuntimeError(
            "No active LayoutRegistry. Use `with provider:` first, "
            "or pass the registry explicitly."
        )
    return None


@contextmanager
def use_registry(registry: LayoutRegistry) -> Iterator[LayoutRegistry]:
    """Context manager that temporarily makes ``registry`` the current scope."""
    _push_registry(registry)
    try:
        yield registry
    finally:
        _pop_registry(registry)
