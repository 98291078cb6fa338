"""Exception and warning types raised by viewport_detector."""

from __future__ import annotations


class ViewportConfigWarning(UserWarning):
    """Non-fatal configuration problem (out-of-range threshold, bad frequency)."""


class MeasurementError(RuntimeError):
    """The host could not measure an element for this cycle."""
