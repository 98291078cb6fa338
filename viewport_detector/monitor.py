"""Per-element visibility polling.

:class:`VisibilityMonitor` repeatedly measures one element, compares it with
the nearest ancestor layout and reports visibility to a callback. It runs on a
single asyncio loop; the only suspension points are the measurement coroutine
and the loop timers.

Lifecycle
---------
``IDLE -> ACTIVE <-> MEASURING -> DORMANT -> DESTROYED``

- ``start()`` arms an initial check after ``initial_delay`` ms and a repeating
  check every ``frequency`` ms.
- At most one measurement is outstanding; a tick that arrives while one is in
  flight is skipped.
- With ``run_once=True`` the monitor goes ``DORMANT`` after reporting ``True``.
  ``reset()`` re-activates it.
- ``destroy()`` is terminal. Timers are cancelled synchronously and any result
  still in flight is discarded when it arrives.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import math
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from .display import display_rectangle
from .geometry import LayoutRectangle, is_visible
from .layout_registry import LayoutRegistry
from .options import MonitorOptions
from .timers import RepeatingTimer, resolve_loop

__all__ = ["Measurement", "MonitorState", "VisibilityMonitor"]

logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


@dataclass(frozen=True)
class Measurement:
    """Raw result of measuring a node.

    ``x``/``y`` are relative to the node's parent; ``page_x``/``page_y`` are
    absolute and are what visibility is computed from. Any field may be
    ``None`` when the host could not provide it.
    """

    x: Optional[float] = None
    y: Optional[float] = None
    width: Optional[float] = None
    height: Optional[float] = None
    page_x: Optional[float] = None
    page_y: Optional[float] = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> Measurement:
        def _num(key: str) -> Optional[float]:
            value = data.get(key)
            if value is None:
                return None
            try:
                return float(value)
            except (TypeError, ValueError):
                return None

        return cls(
            x=_num("x"),
            y=_num("y"),
            width=_num("width"),
            height=_num("height"),
            page_x=_num("page_x"),
            page_y=_num("page_y"),
        )

    def to_rectangle(self) -> Optional[LayoutRectangle]:
        """Return the absolute rectangle, or ``None`` if the data is unusable."""
        values = (self.page_x, self.page_y, self.width, self.height)
        if any(v is None or not math.isfinite(v) for v in values):
            return None
        if self.width < 0 or self.height < 0:
            return None
        return LayoutRectangle(self.page_x, self.page_y, self.width, self.height)


MeasureFn = Callable[[], Awaitable[Optional[Measurement]]]


class MonitorState(str, Enum):
    IDLE = "idle"
    ACTIVE = "active"
    MEASURING = "measuring"
    DORMANT = "dormant"
    DESTROYED = "destroyed"


class VisibilityMonitor:
    """Poll an element's visibility inside its ancestor container.

    Parameters
    ----------
    measure : callable
        Coroutine function returning a :class:`Measurement` for the element.
        It may raise; the cycle is then skipped.
    on_change : callable
        Called with the new visibility (``bool``). With ``report="change"``
        only transitions are reported.
    registry : LayoutRegistry, optional
        Ancestor layout store. When absent or empty, the last value seen or
        ``fallback`` is used.
    fallback : LayoutRectangle, optional
        Container used before any ancestor layout is known. Defaults to
        :func:`display_rectangle`, read on every cycle until a registry value
        arrives, so window sizes reported after construction are honoured.
    loop : asyncio.AbstractEventLoop, optional
        Loop for timers and measurement tasks. Defaults to the running loop
        when the monitor starts.
    options : MonitorOptions, optional
        Full option set. Individual keyword arguments (``frequency``,
        ``percent_width``, ...) override its fields.

    Examples
    --------
    >>> async def main():  # doctest: +SKIP
    ...     monitor = VisibilityMonitor(probe.measure, print, frequency=300)
    ...     await asyncio.sleep(5)
    ...     monitor.destroy()
    """

    def __init__(
        self,
        measure: MeasureFn,
        on_change: Callable[[bool], Any],
        *,
        registry: Optional[LayoutRegistry] = None,
        fallback: Optional[LayoutRectangle] = None,
        loop: Optional[asyncio.AbstractEventLoop] = None,
        options: Optional[MonitorOptions] = None,
        **settings: Any,
    ) -> None:
        if options is None:
            options = MonitorOptions(**settings)
        elif settings:
            options = dataclasses.replace(options, **settings)
        self.options = options

        self._measure = measure
        self._on_change = on_change
        self._registry = registry
        self._fallback = fallback
        self._parent_layout: Optional[LayoutRectangle] = None
        self._loop = loop

        self.last_known_visibility: Optional[bool] = None
        self._state = MonitorState.IDLE
        self._initial_handle: Optional[asyncio.TimerHandle] = None
        self._timer: Optional[RepeatingTimer] = None
        self._inflight: Optional[asyncio.Future] = None
        # Bumped whenever pending results must be discarded.
        self._generation = 0
        self._seen_layout = False

        if options.start_immediately:
            self.start()

    def __repr__(self) -> str:
        return (
            f"<VisibilityMonitor state={self.state.value} "
            f"visible={self.last_known_visibility!r}>"
        )

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> MonitorState:
        if self._state is MonitorState.ACTIVE and self.measuring:
            return MonitorState.MEASURING
        return self._state

    @property
    def measuring(self) -> bool:
        """Return True while a measurement is outstanding."""
        return self._inflight is not None and not self._inflight.done()

    @property
    def registry(self) -> Optional[LayoutRegistry]:
        return self._registry

    def container_rectangle(self) -> LayoutRectangle:
        """Return the ancestor rectangle in effect for the next evaluation."""
        if self._registry is not None:
            current = self._registry.read()
            if current is not None:
                self._parent_layout = current
        if self._parent_layout is not None:
            return self._parent_layout
        if self._fallback is not None:
            return self._fallback
        return display_rectangle()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Begin polling. No-op when already active.

        Raises
        ------
        RuntimeError
            If the monitor is destroyed, or dormant after ``run_once``.
        """
        if self._state is MonitorState.DESTROYED:
            raise RuntimeError("Cannot start a destroyed VisibilityMonitor")
        if self._state is MonitorState.DORMANT:
            raise RuntimeError("VisibilityMonitor is dormant; call reset() to poll again")
        if self._state is MonitorState.ACTIVE:
            return
        self._loop = resolve_loop(self._loop)
        self._state = MonitorState.ACTIVE
        self._arm_initial_check()
        self._timer = RepeatingTimer(self._loop, self.options.interval_s, self._on_tick)
        self._timer.start()

    def stop(self) -> None:
        """Stop polling and discard any in-flight result; ``start()`` resumes.

        A measurement already dispatched stays tracked until it settles, so a
        restart never overlaps it.
        """
        if self._state is MonitorState.DESTROYED:
            return
        self._cancel_timers()
        self._generation += 1
        self._state = MonitorState.IDLE

    def reset(self) -> None:
        """Forget the last reported visibility and poll again from scratch."""
        if self._state is MonitorState.DESTROYED:
            raise RuntimeError("Cannot reset a destroyed VisibilityMonitor")
        self.stop()
        self.last_known_visibility = None
        self._seen_layout = False
        self.start()

    def destroy(self) -> None:
        """Cancel all timers and drop pending results. Terminal."""
        if self._state is MonitorState.DESTROYED:
            return
        self._cancel_timers()
        self._generation += 1
        self._inflight = None
        self._state = MonitorState.DESTROYED

    def notify_layout(self) -> None:
        """Re-arm the initial check when the element is laid out for the first time."""
        if self._seen_layout or self._state is not MonitorState.ACTIVE:
            return
        self._seen_layout = True
        self._arm_initial_check()

    async def check(self) -> Optional[bool]:
        """Run one measurement cycle now.

        Returns
        -------
        bool or None
            The computed visibility, or ``None`` when the cycle was skipped
            (measurement in flight, failed or discarded, or the monitor is
            dormant or destroyed).
        """
        if self._state in (MonitorState.DORMANT, MonitorState.DESTROYED):
            return None
        if self.measuring:
            logger.debug("Skipping check; a measurement is already in flight")
            return None
        task = asyncio.ensure_future(self._run_cycle(self._generation))
        self._inflight = task
        return await task

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _arm_initial_check(self) -> None:
        if self._initial_handle is not None:
            self._initial_handle.cancel()
        self._initial_handle = self._loop.call_later(
            self.options.initial_delay_s, self._on_initial_tick
        )

    def _on_initial_tick(self) -> None:
        self._initial_handle = None
        self._on_tick()

    def _cancel_timers(self) -> None:
        if self._initial_handle is not None:
            self._initial_handle.cancel()
            self._initial_handle = None
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _on_tick(self) -> None:
        if self._state is not MonitorState.ACTIVE:
            return
        if self.measuring:
            logger.debug("Skipping cycle; previous measurement still in flight")
            return
        self._inflight = self._loop.create_task(self._run_cycle(self._generation))

    async def _run_cycle(self, generation: int) -> Optional[bool]:
        try:
            measurement = await self._measure()
        except Exception as exc:
            if generation == self._generation:
                logger.warning("ViewportDetector: Error measuring view: %s", exc)
            return None

        if generation != self._generation:
            return None

        rect = measurement.to_rectangle() if measurement is not None else None
        if rect is None:
            logger.warning("ViewportDetector: Invalid measurements received")
            return None

        visible = is_visible(
            self.container_rectangle(),
            rect,
            self.options.percent_width,
            self.options.percent_height,
        )
        self._report(visible)
        return visible

    def _report(self, visible: bool) -> None:
        changed = visible != self.last_known_visibility
        self.last_known_visibility = visible
        if changed or self.options.report == "always":
            try:
                self._on_change(visible)
            except Exception:
                logger.exception("ViewportDetector: on_change callback failed")

        if (
            visible
            and self.options.run_once
            and self._state in (MonitorState.IDLE, MonitorState.ACTIVE)
        ):
            self._cancel_timers()
            self._state = MonitorState.DORMANT
