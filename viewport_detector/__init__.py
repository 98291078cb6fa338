"""Top-level public API for the ``viewport_detector`` package.

The package reports whether a widget is visible inside an ancestor container's
viewable region, for lazy loading, impression tracking or animation triggers
in Jupyter notebooks:

>>> from viewport_detector import ViewportDetector, ViewportDetectorProvider  # doctest: +SKIP

The geometry, registry and monitor layers are importable on their own and do
not need a frontend.
"""

from .display import DisplaySurface, display_rectangle, display_surface
from .errors import MeasurementError, ViewportConfigWarning
from .geometry import (
    LayoutRectangle,
    intersection,
    is_visible,
    visible_fractions,
    visible_mask,
)
from .layout_registry import LayoutRegistry, current_registry, use_registry
from .monitor import Measurement, MonitorState, VisibilityMonitor
from .options import MonitorOptions
from .ViewportDetector import ViewportDetector, ViewportDetectorProvider
from .ViewportProbe import ViewportProbe
