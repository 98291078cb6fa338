"""Display-surface size used as the fallback container rectangle.

Before a provider has reported a real layout, monitors compare against the
whole browser window. Frontend probes push ``window.innerWidth`` and
``window.innerHeight`` here whenever they render or the window resizes.
"""

from __future__ import annotations

import threading

from .geometry import LayoutRectangle

__all__ = ["DEFAULT_DISPLAY_SIZE", "DisplaySurface", "display_surface", "display_rectangle"]

# Used until a frontend reports the real window size.
DEFAULT_DISPLAY_SIZE = (1280.0, 800.0)


class DisplaySurface:
    """Last known window size."""

    def __init__(self, width: float = DEFAULT_DISPLAY_SIZE[0], height: float = DEFAULT_DISPLAY_SIZE[1]) -> None:
        self._lock = threading.Lock()
        self._width = float(width)
        self._height = float(height)

    @property
    def size(self) -> tuple[float, float]:
        with self._lock:
            return self._width, self._height

    def set_size(self, width: float, height: float) -> bool:
        """Record a new window size; non-positive sizes are ignored."""
        width = float(width)
        height = float(height)
        if width <= 0 or height <= 0:
            return False
        with self._lock:
            self._width = width
            self._height = height
        return True

    def rectangle(self) -> LayoutRectangle:
        """Return the surface as a rectangle anchored at the origin."""
        width, height = self.size
        return LayoutRectangle(0.0, 0.0, width, height)


_SURFACE = DisplaySurface()


def display_surface() -> DisplaySurface:
    """Return the process-wide display surface."""
    return _SURFACE


def display_rectangle() -> LayoutRectangle:
    """Return a snapshot of the current display-surface rectangle."""
    return _SURFACE.rectangle()
