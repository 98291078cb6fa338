"""Monitor configuration and its validation policy.

Out-of-range values are reported with :class:`ViewportConfigWarning` and kept
as given, so an explicit caller choice is honoured. The one exception is the
polling interval: a non-positive ``frequency`` cannot be scheduled, so the
monitor polls every :data:`MIN_FREQUENCY` milliseconds instead.
"""

from __future__ import annotations

import warnings
from dataclasses import dataclass

from .errors import ViewportConfigWarning

__all__ = [
    "DEFAULT_FREQUENCY",
    "DEFAULT_PERCENT_WIDTH",
    "DEFAULT_PERCENT_HEIGHT",
    "INITIAL_CHECK_DELAY",
    "MIN_FREQUENCY",
    "REPORT_MODES",
    "MonitorOptions",
]

DEFAULT_FREQUENCY = 1000
DEFAULT_PERCENT_WIDTH = 1.0
DEFAULT_PERCENT_HEIGHT = 1.0
INITIAL_CHECK_DELAY = 100
MIN_FREQUENCY = 16

REPORT_MODES = ("change", "always")


@dataclass(frozen=True)
class MonitorOptions:
    """Polling and threshold settings for a :class:`VisibilityMonitor`.

    Parameters
    ----------
    frequency : float
        Milliseconds between measurement cycles. Must be positive.
    percent_width, percent_height : float
        Minimum visible fraction of the element along each axis, in ``[0, 1]``.
    run_once : bool
        Stop polling after visibility has been reported as ``True`` once.
    start_immediately : bool
        Start polling as soon as the monitor is constructed.
    report : {"change", "always"}
        ``"change"`` calls ``on_change`` only on transitions; ``"always"`` calls
        it after every successful cycle.
    initial_delay : float
        Milliseconds to wait before the first cycle so the first layout pass
        can settle.
    """

    frequency: float = DEFAULT_FREQUENCY
    percent_width: float = DEFAULT_PERCENT_WIDTH
    percent_height: float = DEFAULT_PERCENT_HEIGHT
    run_once: bool = False
    start_immediately: bool = True
    report: str = "change"
    initial_delay: float = INITIAL_CHECK_DELAY

    def __post_init__(self) -> None:
        if self.report not in REPORT_MODES:
            raise ValueError(
                f"report must be one of {REPORT_MODES}, got {self.report!r}"
            )
        for message in self.problems():
            warnings.warn(message, ViewportConfigWarning, stacklevel=3)

    def problems(self) -> list[str]:
        """Return human-readable descriptions of out-of-range settings."""
        found = []
        if self.frequency <= 0:
            found.append("ViewportDetector: frequency must be a positive number")
        if not 0 <= self.percent_width <= 1:
            found.append("ViewportDetector: percent_width must be between 0 and 1")
        if not 0 <= self.percent_height <= 1:
            found.append("ViewportDetector: percent_height must be between 0 and 1")
        if self.initial_delay < 0:
            found.append("ViewportDetector: initial_delay must not be negative")
        return found

    @property
    def interval_s(self) -> float:
        """Polling interval in seconds, clamped to :data:`MIN_FREQUENCY`."""
        return max(float(self.frequency), float(MIN_FREQUENCY)) / 1000.0

    @property
    def initial_delay_s(self) -> float:
        return max(float(self.initial_delay), 0.0) / 1000.0
