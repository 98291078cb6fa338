"""Repeating timer on top of an asyncio event loop."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Optional

__all__ = ["RepeatingTimer", "resolve_loop"]

logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


def resolve_loop(loop: Optional[asyncio.AbstractEventLoop] = None) -> asyncio.AbstractEventLoop:
    """Return ``loop`` or the running event loop.

    Raises
    ------
    RuntimeError
        If no loop is given and none is running.
    """
    if loop is not None:
        return loop
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        raise RuntimeError(
            "No running asyncio event loop. Start the monitor from a notebook cell "
            "or coroutine, or pass loop=... explicitly."
        ) from None


class RepeatingTimer:
    """Call ``callback`` every ``interval_s`` seconds until cancelled.

    Parameters
    ----------
    loop:
        Event loop providing ``call_later``.
    interval_s:
        Seconds between calls. Must be > 0.
    callback:
        Zero-argument callable. Exceptions are logged and do not stop the timer.
    """

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        interval_s: float,
        callback: Callable[[], Any],
    ) -> None:
        if interval_s <= 0:
            raise ValueError("interval_s must be > 0")
        self._loop = loop
        self._interval_s = float(interval_s)
        self._callback = callback
        self._handle: Optional[Any] = None

    @property
    def active(self) -> bool:
        return self._handle is not None

    def start(self) -> None:
        if self._handle is None:
            self._schedule_next()

    def cancel(self) -> None:
        handle, self._handle = self._handle, None
        if handle is not None:
            handle.cancel()

    def _schedule_next(self) -> None:
        self._handle = self._loop.call_later(self._interval_s, self._on_tick)

    def _on_tick(self) -> None:
        if self._handle is None:
            return
        self._schedule_next()
        try:
            self._callback()
        except Exception:
            logger.exception("RepeatingTimer callback failed")
