"""
Notebook components: ``ViewportDetectorProvider`` and ``ViewportDetector``

These are Python-side wrappers that assemble ipywidgets containers around a
child widget and a hidden :class:`ViewportProbe`.

- `ViewportDetectorProvider` marks a clipping/scrolling container. Its probe
  reports the container rectangle on every layout event and the provider
  writes it into its own :class:`LayoutRegistry`.

- `ViewportDetector` wraps one tracked child. It owns a
  :class:`VisibilityMonitor` that measures the child through its probe and
  compares it with the nearest provider's rectangle (or the browser window
  when there is none).

Typical usage
-------------

    import ipywidgets as W

    provider = ViewportDetectorProvider(W.VBox(), height="400px", overflow_y="auto")
    with provider:
        items = [
            ViewportDetector(W.Label(f"item {i}"), on_change=print, percent_height=0.7)
            for i in range(20)
        ]
    provider.child.children = [item.widget for item in items]
    display(provider.widget)

Keyword arguments not consumed by the component are passed to
``ipywidgets.Layout`` of the wrapping box.
"""

from __future__ import annotations

from typing import Any, Callable, Optional

import ipywidgets as W

from .layout_registry import LayoutRegistry, current_registry
from .monitor import VisibilityMonitor
from .options import MonitorOptions
from .ViewportProbe import DEFAULT_MEASURE_TIMEOUT_MS, ViewportProbe

__all__ = ["ViewportDetectorProvider", "ViewportDetector"]


class ViewportDetectorProvider:
    """
    Container whose rectangle defines the viewport for nested detectors.

    Parameters
    ----------
    child:
        Widget rendered inside the container.
    registry:
        Registry to publish into. A new one is created by default.
    debug_js:
        Enable frontend console logs for troubleshooting.
    **layout:
        ``ipywidgets.Layout`` fields for the container (``height``,
        ``overflow_y``, ``margin``, ...).

    Notes
    -----
    Use ``with provider:`` while building nested detectors so they bind to
    this provider's registry. Nested providers work the same way; a detector
    binds to the innermost one.
    """

    def __init__(
        self,
        child: W.Widget,
        *,
        registry: Optional[LayoutRegistry] = None,
        debug_js: bool = False,
        **layout: Any,
    ) -> None:
        self.child = child
        self.registry = registry if registry is not None else LayoutRegistry()
        self.probe = ViewportProbe(report_layout=True, debug_js=debug_js)
        self.probe.on_layout(self.registry.write)
        self._host = W.Box([child, self.probe], layout=W.Layout(**layout))

    @property
    def widget(self) -> W.Widget:
        """The widget to embed in your outer layout."""
        return self._host

    def __enter__(self) -> ViewportDetectorProvider:
        self.registry.__enter__()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.registry.__exit__(exc_type, exc, tb)

    def close(self) -> None:
        """Unmount: nested monitors keep their last known container rectangle."""
        self.registry.close()
        self.probe.close()
        self._host.close()


class ViewportDetector:
    """
    Report whether ``child`` is inside the viewport of its provider.

    Parameters
    ----------
    child:
        The widget to monitor. It is rendered unchanged.
    on_change:
        Callback receiving ``True``/``False`` when visibility changes.
    provider:
        Provider (or bare registry) to compare against. Defaults to the
        innermost ``with provider:`` block, then to the browser window.
    frequency, percent_width, percent_height, run_once, start_immediately,
    report, initial_delay:
        See :class:`MonitorOptions`.
    loop:
        Event loop for polling; defaults to the running loop.
    measure_timeout_ms:
        Measurement timeout passed to the probe.
    debug_js:
        Enable frontend console logs.
    **layout:
        ``ipywidgets.Layout`` fields for the wrapping box.

    Attributes
    ----------
    monitor:
        The underlying :class:`VisibilityMonitor`.
    probe:
        The hidden :class:`ViewportProbe` that measures ``child``'s box.
    """

    def __init__(
        self,
        child: W.Widget,
        on_change: Callable[[bool], Any],
        *,
        provider: ViewportDetectorProvider | LayoutRegistry | None = None,
        frequency: float = MonitorOptions.frequency,
        percent_width: float = MonitorOptions.percent_width,
        percent_height: float = MonitorOptions.percent_height,
        run_once: bool = MonitorOptions.run_once,
        start_immediately: bool = MonitorOptions.start_immediately,
        report: str = MonitorOptions.report,
        initial_delay: float = MonitorOptions.initial_delay,
        loop: Any = None,
        measure_timeout_ms: float = DEFAULT_MEASURE_TIMEOUT_MS,
        debug_js: bool = False,
        **layout: Any,
    ) -> None:
        if isinstance(provider, ViewportDetectorProvider):
            registry = provider.registry
        elif provider is not None:
            registry = provider
        else:
            registry = current_registry()

        self.child = child
        self.probe = ViewportProbe(
            report_layout=True,
            debug_js=debug_js,
            measure_timeout_ms=measure_timeout_ms,
        )
        self._host = W.Box([child, self.probe], layout=W.Layout(**layout))

        options = MonitorOptions(
            frequency=frequency,
            percent_width=percent_width,
            percent_height=percent_height,
            run_once=run_once,
            start_immediately=start_immediately,
            report=report,
            initial_delay=initial_delay,
        )
        self.monitor = VisibilityMonitor(
            self.probe.measure,
            on_change,
            registry=registry,
            loop=loop,
            options=options,
        )
        self.probe.on_layout(self._on_first_layout)

    @property
    def widget(self) -> W.Widget:
        """The widget to embed in your outer layout."""
        return self._host

    def _on_first_layout(self, _rect: Any) -> None:
        self.monitor.notify_layout()
        self.probe.report_layout = False

    def close(self) -> None:
        """Unmount: stop polling and discard any pending measurement."""
        self.monitor.destroy()
        self.probe.close()
        self._host.close()
