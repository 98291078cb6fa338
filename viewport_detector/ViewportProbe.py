"""
ViewportProbe — hidden anywidget that measures its host element in the browser

The probe is the bridge between Python and the notebook frontend's layout
engine. It is placed, hidden, as a child of the container it should measure
(its "host" is ``el.parentElement``) and offers two services:

- **Measurement on request** (``measure()``): Python sends a ``measure``
  custom message carrying a request id; the frontend replies with a
  ``measurement`` message holding ``getBoundingClientRect()`` of the host.
  ``page_x``/``page_y`` are viewport coordinates, the shared space every
  rectangle in this package uses.

- **Layout events** (``on_layout()``): the frontend reports the host rectangle
  whenever it may have changed (``ResizeObserver`` on the host, capturing
  ``scroll`` listeners on the document and ``window`` ``resize``). Reports are
  coalesced to one per animation frame.

The probe also syncs ``window.innerWidth``/``innerHeight`` into
``window_width``/``window_height`` and forwards them to
:func:`viewport_detector.display.display_surface`.

Exports
-------

- `ViewportProbe`
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Any, Callable, Optional

import anywidget
import traitlets

from .display import display_surface
from .errors import MeasurementError
from .geometry import LayoutRectangle
from .monitor import Measurement

__all__ = ["ViewportProbe"]

logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())

DEFAULT_MEASURE_TIMEOUT_MS = 1000


class ViewportProbe(anywidget.AnyWidget):
    """
    Frontend measurement driver for one host element.

    Traitlets (synced to frontend)
    ------------------------------

    report_layout:
        If True, the frontend pushes ``layout`` messages whenever the host
        rectangle may have changed. Monitors only need the first one; the
        provider needs all of them.

    window_width / window_height:
        Written by the frontend with the current browser window size.

    debug_js:
        If True, enables console logging from the frontend driver.

    Parameters
    ----------
    measure_timeout_ms:
        How long ``measure()`` waits for the frontend before failing. A probe
        that was never rendered never replies.
    """

    report_layout = traitlets.Bool(True).tag(sync=True)
    window_width = traitlets.Float(0.0).tag(sync=True)
    window_height = traitlets.Float(0.0).tag(sync=True)
    debug_js = traitlets.Bool(False).tag(sync=True)

    _esm = r"""
    function safeLog(enabled, ...args) {
      if (enabled) console.log("[ViewportProbe]", ...args);
    }

    function rectOf(host) {
      const r = host.getBoundingClientRect();
      return {
        x: host.offsetLeft,
        y: host.offsetTop,
        width: r.width,
        height: r.height,
        page_x: r.left,
        page_y: r.top,
      };
    }

    export default {
      render({ model, el }) {
        // The probe node must not affect layout.
        el.style.display = "none";
        const debug = () => !!model.get("debug_js");

        function host() {
          return el.parentElement;
        }

        function syncWindow() {
          model.set("window_width", window.innerWidth);
          model.set("window_height", window.innerHeight);
          model.save_changes();
        }

        let frame = null;
        function scheduleLayout(reason) {
          if (!model.get("report_layout") || frame !== null) return;
          frame = requestAnimationFrame(() => {
            frame = null;
            const h = host();
            if (!h) return;
            const r = rectOf(h);
            safeLog(debug(), "layout", reason, r);
            model.send({ type: "layout", x: r.page_x, y: r.page_y, width: r.width, height: r.height });
          });
        }

        const onMsg = (msg) => {
          if (!msg || msg.type !== "measure") return;
          const h = host();
          const reply = { type: "measurement", request_id: msg.request_id };
          if (h) Object.assign(reply, rectOf(h));
          safeLog(debug(), "measurement", reply);
          model.send(reply);
        };
        model.on("msg:custom", onMsg);

        const onScroll = () => scheduleLayout("scroll");
        const onResize = () => {
          syncWindow();
          scheduleLayout("resize");
        };
        document.addEventListener("scroll", onScroll, true);
        window.addEventListener("resize", onResize);

        let ro = null;
        const h = host();
        if (h) {
          ro = new ResizeObserver(() => scheduleLayout("ResizeObserver"));
          ro.observe(h);
        } else {
          safeLog(debug(), "No host found; layout reports inactive.");
        }

        syncWindow();
        scheduleLayout("init");

        return () => {
          try { if (frame !== null) cancelAnimationFrame(frame); } catch (e) {}
          try { if (ro) ro.disconnect(); } catch (e) {}
          try { document.removeEventListener("scroll", onScroll, true); } catch (e) {}
          try { window.removeEventListener("resize", onResize); } catch (e) {}
          try { model.off("msg:custom", onMsg); } catch (e) {}
        };
      }
    };
    """

    def __init__(self, *, measure_timeout_ms: float = DEFAULT_MEASURE_TIMEOUT_MS, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.measure_timeout_ms = float(measure_timeout_ms)
        self._pending: dict[str, asyncio.Future] = {}
        self._layout_callbacks: list[Callable[[LayoutRectangle], Any]] = []
        self.on_msg(self._handle_custom_msg)
        self.observe(self._on_window_size, names=["window_width", "window_height"])

    def on_layout(self, callback: Callable[[LayoutRectangle], Any]) -> None:
        """Register ``callback`` for every layout rectangle the frontend reports."""
        self._layout_callbacks.append(callback)

    async def measure(self) -> Measurement:
        """Ask the frontend for the host's current rectangle.

        Raises
        ------
        MeasurementError
            If the frontend does not answer within ``measure_timeout_ms``.
        """
        loop = asyncio.get_running_loop()
        request_id = uuid.uuid4().hex
        future = loop.create_future()
        self._pending[request_id] = future
        try:
            self.send({"type": "measure", "request_id": request_id})
            return await asyncio.wait_for(future, self.measure_timeout_ms / 1000.0)
        except asyncio.TimeoutError:
            raise MeasurementError(
                f"No measurement from frontend within {self.measure_timeout_ms:g} ms"
            ) from None
        finally:
            self._pending.pop(request_id, None)

    def _handle_custom_msg(self, _widget: Any, content: Any, _buffers: Any = None) -> None:
        if not isinstance(content, dict):
            return
        kind = content.get("type")
        if kind == "measurement":
            future = self._pending.get(str(content.get("request_id")))
            if future is None or future.done():
                logger.debug("Dropping unmatched measurement reply %r", content)
                return
            future.set_result(Measurement.from_mapping(content))
        elif kind == "layout":
            try:
                rect = LayoutRectangle.from_mapping(content)
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning("ViewportProbe: malformed layout report %r (%s)", content, exc)
                return
            for callback in list(self._layout_callbacks):
                try:
                    callback(rect)
                except Exception:
                    logger.exception("ViewportProbe: layout callback failed")

    def _on_window_size(self, _change: Any) -> None:
        display_surface().set_size(self.window_width, self.window_height)

    def close(self) -> None:
        for future in self._pending.values():
            if not future.done():
                future.set_exception(MeasurementError("ViewportProbe was closed"))
        self._pending.clear()
        self._layout_callbacks.clear()
        super().close()
