"""Rectangle geometry used to decide whether an element is in the viewport.

All rectangles live in one shared coordinate space (CSS pixels relative to the
browser viewport when they come from the frontend probe). The functions here
are pure: no state, no I/O.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Optional, Sequence, Union

import numpy as np

__all__ = [
    "LayoutRectangle",
    "intersection",
    "visible_fractions",
    "is_visible",
    "visible_mask",
]


@dataclass(frozen=True)
class LayoutRectangle:
    """Axis-aligned rectangle ``(x, y, width, height)``.

    Parameters
    ----------
    x, y : float
        Top-left corner.
    width, height : float
        Extent along each axis. Expected to be non-negative; a rectangle with a
        zero extent is degenerate and never counts as visible.
    """

    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @property
    def is_degenerate(self) -> bool:
        """Return True when either extent is zero or negative."""
        return self.width <= 0 or self.height <= 0

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> LayoutRectangle:
        """Build a rectangle from a ``{"x", "y", "width", "height"}`` mapping.

        Raises
        ------
        KeyError
            If a key is missing.
        TypeError, ValueError
            If a value cannot be converted to ``float``.
        """
        return cls(
            x=float(data["x"]),
            y=float(data["y"]),
            width=float(data["width"]),
            height=float(data["height"]),
        )


def intersection(a: LayoutRectangle, b: LayoutRectangle) -> Optional[LayoutRectangle]:
    """Return the overlap of ``a`` and ``b``, or ``None`` when they are disjoint.

    Rectangles that only touch along an edge do not overlap.
    """
    left = max(a.x, b.x)
    right = min(a.right, b.right)
    top = max(a.y, b.y)
    bottom = min(a.bottom, b.bottom)
    if right <= left or bottom <= top:
        return None
    return LayoutRectangle(x=left, y=top, width=right - left, height=bottom - top)


def visible_fractions(
    container: LayoutRectangle, element: LayoutRectangle
) -> tuple[float, float]:
    """Return the fraction of ``element``'s width and height inside ``container``.

    Disjoint or degenerate inputs yield ``(0.0, 0.0)``.
    """
    overlap = intersection(element, container)
    if overlap is None or element.width == 0 or element.height == 0:
        return 0.0, 0.0
    return overlap.width / element.width, overlap.height / element.height


def is_visible(
    container: LayoutRectangle,
    element: LayoutRectangle,
    percent_width: float = 1.0,
    percent_height: float = 1.0,
) -> bool:
    """Return whether ``element`` is visible enough inside ``container``.

    Parameters
    ----------
    container : LayoutRectangle
        The ancestor's viewable region.
    element : LayoutRectangle
        The monitored element, in the same coordinate space.
    percent_width, percent_height : float
        Minimum fraction of the element's own width/height that must lie within
        the container. Each axis is checked independently. Use ``1.0`` on both
        axes for "fully visible" and small values for "any part visible".

    Returns
    -------
    bool
        ``False`` for disjoint rectangles (touching edges included) and for a
        zero-sized element, whatever the thresholds.
    """
    overlap = intersection(element, container)
    if overlap is None:
        return False
    if element.width == 0 or element.height == 0:
        return False
    return (
        overlap.width / element.width >= percent_width
        and overlap.height / element.height >= percent_height
    )


RectArrayLike = Union[np.ndarray, Sequence[Sequence[float]], Sequence[LayoutRectangle]]


def _as_rect_array(elements: RectArrayLike) -> np.ndarray:
    if isinstance(elements, np.ndarray):
        arr = elements.astype(float, copy=False)
    else:
        rows = [
            (e.x, e.y, e.width, e.height) if isinstance(e, LayoutRectangle) else tuple(e)
            for e in elements
        ]
        arr = np.asarray(rows, dtype=float)
    if arr.size == 0:
        return arr.reshape(0, 4)
    if arr.ndim != 2 or arr.shape[1] != 4:
        raise ValueError(f"elements must have shape (N, 4), got {arr.shape}")
    return arr


def visible_mask(
    container: LayoutRectangle,
    elements: RectArrayLike,
    percent_width: float = 1.0,
    percent_height: float = 1.0,
) -> np.ndarray:
    """Vectorised :func:`is_visible` over many elements.

    Parameters
    ----------
    container : LayoutRectangle
        The shared container rectangle.
    elements : array-like
        ``(N, 4)`` rows of ``x, y, width, height`` or a sequence of
        :class:`LayoutRectangle`.

    Returns
    -------
    numpy.ndarray
        Boolean array of length ``N``; entry ``i`` equals
        ``is_visible(container, elements[i], percent_width, percent_height)``.
    """
    arr = _as_rect_array(elements)
    x, y, w, h = arr[:, 0], arr[:, 1], arr[:, 2], arr[:, 3]

    left = np.maximum(x, container.x)
    right = np.minimum(x + w, container.right)
    top = np.maximum(y, container.y)
    bottom = np.minimum(y + h, container.bottom)

    overlaps = (right > left) & (bottom > top) & (w != 0) & (h != 0)
    safe_w = np.where(w != 0, w, 1.0)
    safe_h = np.where(h != 0, h, 1.0)
    frac_w = (right - left) / safe_w
    frac_h = (bottom - top) / safe_h
    return overlaps & (frac_w >= percent_width) & (frac_h >= percent_height)
